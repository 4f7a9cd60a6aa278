"""
LaTeX Compilation Module

Compiles LaTeX source to PDF bytes with pdflatex (or tectonic) in a
throwaway directory.
"""

import os
import re
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from autoresume.contexts.rendering.logger import _log_debug, _log_info, log_compilation_result
from autoresume.exceptions import CompilationError
from autoresume.utils.pdf_processing import page_count

load_dotenv()

LATEX_COMPILER = os.getenv("LATEX_COMPILER", "pdflatex")
COMPILE_TIMEOUT_S = float(os.getenv("LATEX_TIMEOUT_S", "120"))

# Compilers that resolve cross-references themselves in a single run
SELF_REFERENCING_COMPILERS = {"tectonic"}

JOB_NAME = "resume"


@dataclass
class CompilationResult:
    """
    Result of LaTeX compilation.

    Attributes:
        success: Whether compilation succeeded
        pdf: Generated PDF (None if failed)
        log: Compiler log (the .log file, or stdout/stderr when there is none)
        errors: List of parsed LaTeX errors
        warnings: List of parsed LaTeX warnings
        page_count: Number of pages in generated PDF (None if not available)
    """

    success: bool
    pdf: Optional[bytes] = None
    log: str = ""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    page_count: Optional[int] = None


def _parse_latex_log(log_content: str) -> Tuple[List[str], List[str]]:
    """
    Parse LaTeX log file for errors and warnings.

    Args:
        log_content: Content of the .log file

    Returns:
        Tuple of (errors, warnings)
    """
    errors = []
    warnings = []

    # LaTeX error pattern: "! Error message"
    error_pattern = re.compile(r"^! (.+)$", re.MULTILINE)
    for match in error_pattern.finditer(log_content):
        errors.append(match.group(1).strip())

    # Tectonic reports errors as "error: message"
    for match in re.finditer(r"^error: (.+)$", log_content, re.MULTILINE):
        if match.group(1).strip() not in errors:
            errors.append(match.group(1).strip())

    # Additional error patterns that don't start with "!"
    additional_error_patterns = [
        r"Undefined control sequence",
        r"File ended while scanning use of",
        r"Emergency stop",
    ]
    for pattern in additional_error_patterns:
        match = re.search(rf"({pattern}.*?)$", log_content, re.MULTILINE)
        if match and not any(match.group(1) in error for error in errors):
            errors.append(match.group(1))

    warning_patterns = [
        r"LaTeX Warning: (.+)",
        r"Package \w+ Warning: (.+)",
        r"Overfull \\hbox \((.+)\)",
        r"Underfull \\hbox \((.+)\)",
    ]
    for pattern in warning_patterns:
        for match in re.finditer(pattern, log_content, re.MULTILINE):
            warnings.append(match.group(1).strip())

    return errors, warnings


def _compiler_command(compiler: str, tex_name: str) -> List[str]:
    if Path(compiler).name in SELF_REFERENCING_COMPILERS:
        return [compiler, "--keep-logs", "--outdir", ".", tex_name]
    return [compiler, "-interaction=nonstopmode", "-halt-on-error", tex_name]


def compile_latex(
    source: str,
    compiler: str = LATEX_COMPILER,
    num_passes: int = 2,
    timeout_s: float = COMPILE_TIMEOUT_S,
) -> CompilationResult:
    """
    Compile LaTeX source to PDF in a temporary directory.

    Args:
        source: LaTeX document source
        compiler: Compiler executable (pdflatex, xelatex, lualatex or tectonic)
        num_passes: Compiler runs (default: 2 for cross-references); tectonic
            always runs once
        timeout_s: Limit per compiler run

    Returns:
        CompilationResult with success status and diagnostic information
    """
    if Path(compiler).name in SELF_REFERENCING_COMPILERS:
        num_passes = 1

    with tempfile.TemporaryDirectory(prefix="autoresume-") as tmp:
        compile_dir = Path(tmp)
        tex_file = compile_dir / f"{JOB_NAME}.tex"
        tex_file.write_text(source, encoding="utf-8")

        all_output = []
        for _ in range(max(1, num_passes)):
            try:
                result = subprocess.run(
                    _compiler_command(compiler, tex_file.name),
                    cwd=compile_dir,
                    capture_output=True,
                    text=True,
                    encoding="utf-8",
                    errors="replace",  # Replace invalid UTF-8 bytes instead of crashing
                    timeout=timeout_s,
                )
            except FileNotFoundError:
                return CompilationResult(success=False, errors=[f"LaTeX compiler not found: {compiler}"])
            except subprocess.TimeoutExpired:
                return CompilationResult(
                    success=False,
                    errors=[f"{compiler} did not finish within {timeout_s:.0f}s"],
                    log="\n".join(all_output),
                )

            all_output.append(result.stdout)
            all_output.append(result.stderr)
            # Non-zero return means a fatal error; the log tells which
            if result.returncode != 0:
                break

        # pdflatex writes log files in latin-1 encoding (font metadata contains non-UTF-8)
        log_file = compile_dir / f"{JOB_NAME}.log"
        log_content = log_file.read_text(encoding="latin-1") if log_file.exists() else ""
        if not log_content:
            log_content = "\n".join(part for part in all_output if part)
        errors, warnings = _parse_latex_log(log_content)

        pdf_path = compile_dir / f"{JOB_NAME}.pdf"
        pdf = pdf_path.read_bytes() if pdf_path.exists() else None

    if pdf is None and not errors:
        errors.append("PDF file was not generated")

    return CompilationResult(
        # A PDF without LaTeX errors counts as success even on a non-zero return
        success=pdf is not None and not errors,
        pdf=pdf if not errors else None,
        log=log_content,
        errors=errors,
        warnings=warnings,
        page_count=page_count(pdf) if pdf is not None and not errors else None,
    )


def compile_document(
    source: str,
    compiler: str = LATEX_COMPILER,
    num_passes: int = 2,
    verbose: bool = False,
) -> bytes:
    """
    Compile LaTeX source and return the PDF.

    Raises:
        CompilationError: Compiler missing, timed out, or reported errors
    """
    _log_info(f"Compiling with {compiler} ({num_passes} passes)")
    _log_debug(f"  Source: {len(source)} chars")

    start_time = time.time()
    result = compile_latex(source, compiler=compiler, num_passes=num_passes)
    log_compilation_result(result, time.time() - start_time, verbose=verbose)

    if not result.success:
        raise CompilationError("LaTeX compilation failed", errors=result.errors, log=result.log)
    return result.pdf
