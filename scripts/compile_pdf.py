#!/usr/bin/env python3
"""
PDF Compilation CLI

Recompiles a LaTeX resume (e.g. one saved with --latex and edited by hand)
using the rendering context.

Examples:\n

    compile_pdf.py resume.tex                        # Writes resume.pdf

    compile_pdf.py resume.tex -o out/final.pdf       # Custom output path

    compile_pdf.py resume.tex --compiler tectonic    # Single-pass tectonic build
"""

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from autoresume.config import LOGS_PATH
from autoresume.contexts.rendering.compiler import LATEX_COMPILER, compile_document
from autoresume.contexts.rendering.logger import setup_rendering_logger
from autoresume.exceptions import CompilationError
from autoresume.utils.pdf_processing import page_count
from autoresume.utils.timestamp import now

load_dotenv()

app = typer.Typer(
    help="Compile a LaTeX resume to PDF",
    add_completion=False,
)


@app.command()
def main(
    tex_file: Annotated[
        Path,
        typer.Argument(help="LaTeX source to compile", exists=True, dir_okay=False, readable=True),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output PDF path (default: next to the source)"),
    ] = None,
    compiler: Annotated[
        str,
        typer.Option("--compiler", help="LaTeX compiler executable"),
    ] = LATEX_COMPILER,
    num_passes: Annotated[
        int,
        typer.Option(
            "--passes",
            "-p",
            help="Number of compiler passes (default: 2 for cross-references)",
            min=1,
            max=5,
        ),
    ] = 2,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log the full compiler output"),
    ] = False,
):
    """
    Compile a LaTeX file to PDF.

    Examples:\n

        $ compile_pdf.py resume.tex                     # Compile resume

        $ compile_pdf.py resume.tex --verbose           # Verbose output
    """
    output = output or tex_file.with_suffix(".pdf")
    log_file = setup_rendering_logger(LOGS_PATH / f"render_{now()}")

    typer.secho(f"\nCompiling: {tex_file}", fg=typer.colors.BLUE, bold=True)
    typer.echo(f"Compiler: {compiler} ({num_passes} passes)")
    typer.echo("")

    source = tex_file.read_text(encoding="utf-8")
    try:
        pdf = compile_document(source, compiler=compiler, num_passes=num_passes, verbose=verbose)
    except CompilationError as e:
        typer.secho(f"✗ Compilation failed with {len(e.errors)} errors", fg=typer.colors.RED, bold=True)
        for error in e.errors[:10]:
            typer.secho(f"  - {error}", fg=typer.colors.RED)
        if len(e.errors) > 10:
            typer.echo(f"  ... and {len(e.errors) - 10} more")
        typer.echo(f"  Log: {log_file}\n")
        raise typer.Exit(code=1)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(pdf)

    typer.secho("✓ Compilation succeeded", fg=typer.colors.GREEN, bold=True)
    pages = page_count(pdf)
    if pages is not None:
        typer.echo(f"  Pages: {pages}")
    typer.echo(f"  PDF: {output}")
    typer.echo(f"  Log: {log_file}")
    typer.echo("")


if __name__ == "__main__":
    app()
