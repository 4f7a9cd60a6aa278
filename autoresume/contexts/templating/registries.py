"""
Template registry.

Loads and caches the Jinja2 templates used for LaTeX generation.
"""

import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template, TemplateNotFound

load_dotenv()

DEFAULT_TEMPLATE_PATH = Path(__file__).parent / "template"
TEMPLATE_PATH = Path(os.getenv("RESUME_TEMPLATE_PATH") or DEFAULT_TEMPLATE_PATH)
TEMPLATE_SUFFIX = ".tex.jinja"


class TemplateRegistry:
    """
    Registry for loading and caching Jinja2 templates for LaTeX generation.

    Templates live in {template_dir}/{name}.tex.jinja and use custom
    delimiters to avoid conflicts with LaTeX syntax:
    - Variable: <<< var >>>
    - Block: <%% block %%>
    - Comment: <# comment #>
    """

    def __init__(self, template_dir: Optional[Path] = None):
        """
        Initialize the template registry.

        Args:
            template_dir: Directory holding the templates. Defaults to
                          RESUME_TEMPLATE_PATH from environment, else the
                          packaged template directory
        """
        if template_dir is None:
            template_dir = TEMPLATE_PATH

        self.template_dir = Path(template_dir)
        self._cache: Dict[str, Template] = {}

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            # Catches silent failures
            undefined=StrictUndefined,
            # Custom delimiters to avoid LaTeX brace conflicts
            variable_start_string="<<<",
            variable_end_string=">>>",
            block_start_string="<%%",
            block_end_string="%%>",
            comment_start_string="<#",
            comment_end_string="#>",
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            # Values are escaped for LaTeX before rendering
            autoescape=False,
        )

    def get_template(self, name: str) -> Template:
        """
        Get a template by name, loading and caching it if necessary.

        Args:
            name: Template name without suffix (e.g., 'resume')

        Raises:
            TemplateNotFound: If template file doesn't exist
            TemplateSyntaxError: If template has Jinja2 syntax errors
        """
        if name in self._cache:
            return self._cache[name]

        try:
            template = self.env.get_template(f"{name}{TEMPLATE_SUFFIX}")
        except TemplateNotFound as e:
            raise TemplateNotFound(f"Template '{name}' not found at {self.get_template_path(name)}") from e

        self._cache[name] = template
        return template

    def get_template_path(self, name: str) -> Path:
        return self.template_dir / f"{name}{TEMPLATE_SUFFIX}"

    def clear_cache(self):
        """Clear the template cache."""
        self._cache.clear()

    def is_cached(self, name: str) -> bool:
        return name in self._cache
