"""
Configuration for auto-resume.

Two layers:
- Environment (via .env): paths, compiler, provider selection and secrets.
- Profile file (YAML): personal information, GitHub account, LLM and fetch
  settings. Loaded with OmegaConf onto the dataclass schema below, so unknown
  keys and wrongly typed values are rejected at load time.

Example profile:

    resume:
      full_name: Ada Lovelace
      city: London
      country: UK
      email: ada@example.com
      github: https://github.com/ada
      experience_context: "Analyst at Babbage & Co. since 1842"
    github:
      username: ada
    llm:
      provider: openai
      model: gpt-4o-mini
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from omegaconf import MISSING, OmegaConf
from omegaconf.errors import OmegaConfBaseException

from autoresume.exceptions import ConfigError
from autoresume.utils.retry import RetryPolicy

load_dotenv()

LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))
CACHE_PATH = Path(os.getenv("CACHE_PATH", ".autoresume-cache"))
DEFAULT_PROFILE_PATH = Path(os.getenv("PROFILE_PATH", "config.yaml"))


@dataclass
class ResumeItem:
    """A static resume entry (education, experience, skills or project)."""

    title: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None
    items: List[str] = field(default_factory=list)


@dataclass
class PersonalInfo:
    """
    Personal details plus static fallback sections.

    The *_context strings are free text handed to the content generator.
    Static sections are used when the generator returns nothing for them.
    """

    full_name: str = MISSING
    city: str = ""
    country: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None
    site: Optional[str] = None
    education: List[ResumeItem] = field(default_factory=list)
    skills: List[ResumeItem] = field(default_factory=list)
    experience: List[ResumeItem] = field(default_factory=list)
    projects: List[ResumeItem] = field(default_factory=list)
    education_context: Optional[str] = None
    experience_context: Optional[str] = None
    skills_context: Optional[str] = None


@dataclass
class GithubConfig:
    username: str = MISSING
    token: Optional[str] = None
    # Simultaneous per-repository detail fetches
    parallelism: int = 8


@dataclass
class LLMConfig:
    provider: str = "openai"
    model: Optional[str] = None
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    max_retries: int = 3


@dataclass
class FetchConfig:
    max_retries: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float = 30.0
    timeout_s: float = 30.0
    cache_ttl_s: float = 6 * 3600.0
    cache_dir: Optional[str] = None


@dataclass
class AppConfig:
    resume: PersonalInfo = field(default_factory=PersonalInfo)
    github: GithubConfig = field(default_factory=GithubConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)

    def retry_policy(self, max_retries: Optional[int] = None) -> RetryPolicy:
        """Backoff policy built from the fetch settings."""
        return RetryPolicy(
            max_retries=self.fetch.max_retries if max_retries is None else max_retries,
            base_delay=self.fetch.base_delay_s,
            max_delay=self.fetch.max_delay_s,
        )

    @property
    def cache_dir(self) -> Path:
        return Path(self.fetch.cache_dir) if self.fetch.cache_dir else CACHE_PATH


def load_config(config_path: Path = DEFAULT_PROFILE_PATH) -> AppConfig:
    """
    Load the profile YAML onto the configuration schema.

    Secrets missing from the file are filled from the environment
    (GITHUB_TOKEN, LLM_API_KEY) and LLM_PROVIDER overrides nothing that the
    file sets explicitly.

    Args:
        config_path: Path to the profile YAML

    Returns:
        Validated AppConfig

    Raises:
        ConfigError: File missing, unparsable, or not matching the schema
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    schema = OmegaConf.structured(AppConfig)
    try:
        raw = OmegaConf.load(config_path)
        merged = OmegaConf.merge(schema, raw)
        config: AppConfig = OmegaConf.to_object(merged)
    except (OmegaConfBaseException, yaml.YAMLError, ValueError) as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e

    if not config.github.username.strip():
        raise ConfigError(f"github.username is required in {config_path}")
    if not config.resume.full_name.strip():
        raise ConfigError(f"resume.full_name is required in {config_path}")
    if config.github.parallelism < 1:
        raise ConfigError("github.parallelism must be at least 1")

    if not config.github.token:
        config.github.token = os.getenv("GITHUB_TOKEN") or None
    if not config.llm.api_key:
        config.llm.api_key = os.getenv("LLM_API_KEY") or None
    if "provider" not in (raw.get("llm") or {}):
        config.llm.provider = os.getenv("LLM_PROVIDER", config.llm.provider)

    return config
