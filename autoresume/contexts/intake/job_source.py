"""
Job posting text resolution.

The posting comes from exactly one of: a URL (fetched and reduced to visible
text), a local file, or, when neither is given, a generic template so a resume
can still be produced without a target job.
"""

import re
from pathlib import Path
from typing import Optional, Union

from bs4 import BeautifulSoup

from autoresume.contexts.intake.logger import _log_debug, _log_info, _log_warning
from autoresume.exceptions import JobFileNotFound, JobFileUnreadable, ResolutionError
from autoresume.utils.http import ResilientFetcher

HTML_ACCEPT = "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"

# Elements whose text is never shown to a reader
INVISIBLE_TAGS = ["script", "style", "noscript", "template", "svg"]

GENERIC_JOB_TEMPLATE = """\
Software Engineer

We are looking for a software engineer to design, build and maintain reliable
software systems.

Responsibilities:
- Design, implement and test features across the stack
- Write clean, maintainable and well-documented code
- Review code and collaborate with other engineers
- Diagnose and fix production issues

Requirements:
- Solid experience with at least one general-purpose programming language
- Familiarity with version control, automated testing and CI/CD
- Understanding of data structures, algorithms and system design
- Good communication and teamwork skills

Nice to have:
- Open source contributions
- Experience with cloud platforms and containers
"""

_HTML_SNIFF = re.compile(r"<\s*(!doctype\s+html|html|body)\b", re.IGNORECASE)


def html_to_text(html: str) -> str:
    """
    Visible text of an HTML document.

    Drops script, style, noscript and template content, puts block elements
    on their own lines, and collapses runs of blank lines.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(INVISIBLE_TAGS):
        tag.decompose()

    lines = (line.strip() for line in soup.get_text("\n").splitlines())
    text = "\n".join(lines)
    text = re.sub(r"[ \t]+", " ", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def looks_like_html(text: str) -> bool:
    return bool(_HTML_SNIFF.search(text[:2048]))


class JobSourceResolver:
    """
    Resolves the raw job posting text.

    Args:
        fetcher: Shared fetcher used for job URLs
    """

    def __init__(self, fetcher: ResilientFetcher):
        self.fetcher = fetcher

    async def resolve(self, url: Optional[str] = None, file: Optional[Union[str, Path]] = None) -> str:
        """
        Return the job posting text.

        Args:
            url: Job posting URL
            file: Local file holding the posting (plain text or saved HTML)

        Returns:
            Posting text; GENERIC_JOB_TEMPLATE when neither source is given

        Raises:
            ResolutionError: Both sources given, or the page has no visible text
            JobFileNotFound: file does not exist
            JobFileUnreadable: file cannot be read or decoded, or is empty
            FetchError: url could not be fetched within the retry budget
        """
        if url and file:
            raise ResolutionError("Give either a job URL or a job file, not both")

        if url:
            return await self._from_url(url)
        if file:
            return self._from_file(Path(file))

        _log_info("No job posting given, using the generic template")
        return GENERIC_JOB_TEMPLATE

    async def _from_url(self, url: str) -> str:
        _log_info(f"Fetching job posting: {url}")
        response = await self.fetcher.get(url, headers={"Accept": HTML_ACCEPT})
        body = response.text()

        content_type = response.headers.get("content-type", "")
        text = html_to_text(body) if "html" in content_type or looks_like_html(body) else body.strip()
        if not text:
            raise ResolutionError(f"Job page has no visible text: {url}")

        _log_debug(f"Job posting text: {len(text)} chars (from {len(response.body)} bytes)")
        return text

    def _from_file(self, path: Path) -> str:
        _log_info(f"Reading job posting: {path}")
        if not path.exists():
            raise JobFileNotFound(f"Job file not found: {path}")
        if not path.is_file():
            raise JobFileUnreadable(f"Job file is not a regular file: {path}")

        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise JobFileUnreadable(f"Job file is not UTF-8 text: {path} ({e.reason})") from e
        except OSError as e:
            raise JobFileUnreadable(f"Cannot read job file {path}: {e}") from e

        if looks_like_html(text):
            _log_warning(f"{path.name} looks like HTML, extracting visible text")
            text = html_to_text(text)

        text = text.strip()
        if not text:
            raise JobFileUnreadable(f"Job file is empty: {path}")
        return text
