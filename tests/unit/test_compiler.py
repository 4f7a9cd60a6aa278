"""Unit tests for LaTeX compilation helpers (no LaTeX installation needed)."""

import pytest

from autoresume.contexts.rendering.compiler import (
    _compiler_command,
    _parse_latex_log,
    compile_document,
    compile_latex,
)
from autoresume.exceptions import CompilationError

PDFLATEX_LOG = r"""This is pdfTeX, Version 3.141592653-2.6-1.40.25
(./resume.tex
LaTeX2e <2023-11-01>
! Undefined control sequence.
l.12 \badmacro

Overfull \hbox (12.3pt too wide) in paragraph at lines 20--21
LaTeX Warning: Reference `sec:x' on page 1 undefined on input line 30.
Package hyperref Warning: Token not allowed in a PDF string on input line 7.
! Emergency stop.
"""

TECTONIC_LOG = """note: Running TeX ...
error: resume.tex:12: Undefined control sequence
error: halted on potentially-recoverable error as specified
"""


@pytest.mark.unit
def test_parse_pdflatex_log():
    errors, warnings = _parse_latex_log(PDFLATEX_LOG)

    assert errors == ["Undefined control sequence.", "Emergency stop."]
    assert "Reference `sec:x' on page 1 undefined on input line 30." in warnings
    assert "Token not allowed in a PDF string on input line 7." in warnings
    assert "12.3pt too wide" in warnings


@pytest.mark.unit
def test_parse_tectonic_log():
    errors, _ = _parse_latex_log(TECTONIC_LOG)

    assert errors[0] == "resume.tex:12: Undefined control sequence"
    assert len(errors) == 2


@pytest.mark.unit
def test_clean_log_has_no_errors():
    errors, warnings = _parse_latex_log("Output written on resume.pdf (1 page, 30000 bytes).")
    assert errors == []
    assert warnings == []


@pytest.mark.unit
def test_compiler_commands():
    assert _compiler_command("pdflatex", "resume.tex") == [
        "pdflatex",
        "-interaction=nonstopmode",
        "-halt-on-error",
        "resume.tex",
    ]
    assert _compiler_command("/usr/local/bin/tectonic", "resume.tex")[1:] == ["--keep-logs", "--outdir", ".", "resume.tex"]


@pytest.mark.unit
def test_missing_compiler_is_reported():
    result = compile_latex(r"\documentclass{article}", compiler="no-such-latex-compiler-xyz")

    assert not result.success
    assert result.pdf is None
    assert "not found" in result.errors[0]


@pytest.mark.unit
def test_compile_document_raises_on_failure():
    with pytest.raises(CompilationError) as exc_info:
        compile_document(r"\documentclass{article}", compiler="no-such-latex-compiler-xyz")

    assert exc_info.value.stage == "compile"
    assert exc_info.value.errors
