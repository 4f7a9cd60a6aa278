"""
LaTeX text helpers: escaping, unescaping, inline markup and length caps.

Escaping is a single pass over the input, so no replacement is ever applied to
the output of another (escaping `\\` then `{` in sequence would mangle
`\\textbackslash{}`). unescape_latex() is the exact inverse of escape_latex().
"""

import re
from urllib.parse import quote

# Reserved characters and their literal-text spellings
LATEX_ESCAPES = {
    "\\": r"\textbackslash{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
}

_UNESCAPE_PATTERN = re.compile(
    r"\\textbackslash\{\}|\\textasciitilde\{\}|\\textasciicircum\{\}|\\([&%$#_{}])"
)
_UNESCAPE_WORDS = {
    r"\textbackslash{}": "\\",
    r"\textasciitilde{}": "~",
    r"\textasciicircum{}": "^",
}

# **bold** and `code` spans in generated text
_INLINE_MARKUP_PATTERN = re.compile(r"(\*\*.+?\*\*|`[^`]+`)")


def escape_latex(plaintext_str: str) -> str:
    """
    Escape LaTeX reserved characters so text is typeset literally.

    Conversions:
    - \\ -> \\textbackslash{}
    - & % $ # _ { } -> backslash-prefixed
    - ~ -> \\textasciitilde{}
    - ^ -> \\textasciicircum{}

    Example:
        >>> escape_latex("AI & Machine Learning")
        'AI \\\\& Machine Learning'
        >>> escape_latex("87% on-time delivery")
        '87\\\\% on-time delivery'
    """
    if not plaintext_str:
        return ""
    return "".join(LATEX_ESCAPES.get(char, char) for char in plaintext_str)


def unescape_latex(latex_str: str) -> str:
    """Inverse of escape_latex(): recover the literal text."""
    if not latex_str:
        return ""

    def _replace(match: re.Match) -> str:
        if match.group(1) is not None:
            return match.group(1)
        return _UNESCAPE_WORDS[match.group(0)]

    return _UNESCAPE_PATTERN.sub(_replace, latex_str)


def render_inline_markup(text: str) -> str:
    """
    Escape text, turning **bold** into \\textbf{} and `code` into \\texttt{}.

    Span contents are escaped as well. Unpaired markers stay literal.

    Example:
        >>> render_inline_markup("**Go**: 5 years & counting")
        '\\\\textbf{Go}: 5 years \\\\& counting'
    """
    if not text:
        return ""

    parts = []
    for segment in _INLINE_MARKUP_PATTERN.split(text):
        if not segment:
            continue
        if segment.startswith("**") and segment.endswith("**") and len(segment) > 4:
            parts.append(rf"\textbf{{{escape_latex(segment[2:-2])}}}")
        elif segment.startswith("`") and segment.endswith("`") and len(segment) > 2:
            parts.append(rf"\texttt{{{escape_latex(segment[1:-1])}}}")
        else:
            parts.append(escape_latex(segment))
    return "".join(parts)


def escape_url(url: str) -> str:
    """
    Make a URL safe as the first argument of \\href.

    Whitespace, braces and backslashes are percent-encoded, and so are $, &
    and ~, which break when the link sits inside another macro's argument.
    % and # are backslash-escaped as hyperref expects.
    """
    if not url:
        return ""
    url = quote(url.strip(), safe=":/?=%#@+,;!'()*[]._-").replace("~", "%7E")
    return url.replace("%", r"\%").replace("#", r"\#")


def strip_url(url: str) -> str:
    """Display form of a URL: no scheme, no leading www., no trailing slash."""
    display = re.sub(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", "", url.strip())
    display = re.sub(r"^www\.", "", display)
    return display.rstrip("/")


def squash_whitespace(text: str) -> str:
    """Collapse runs of whitespace (including newlines) to single spaces."""
    return " ".join(text.split())


def truncate(text: str, limit: int, ellipsis: str = "...") -> str:
    """
    Cap text at limit characters, ending in ellipsis when cut.

    Cuts on the last word boundary inside the limit when there is one.
    """
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    if limit <= len(ellipsis):
        return text[:limit]

    cut = text[: limit - len(ellipsis)]
    boundary = cut.rfind(" ")
    if boundary > len(cut) // 2:
        cut = cut[:boundary]
    return cut.rstrip() + ellipsis
