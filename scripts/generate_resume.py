#!/usr/bin/env python3
"""
Resume Generation CLI

Builds a tailored PDF resume from a GitHub profile and a job posting:
collects public repositories, ranks them against the job, lets you pick the
ones to feature, generates the content and compiles it with LaTeX.

Examples:\n

    generate_resume.py --job-url https://example.com/jobs/123        # Tailor to a posting

    generate_resume.py --job-file posting.txt --language pt          # Portuguese resume

    generate_resume.py --latex --edit                                # Review the .tex first

    generate_resume.py --config profiles/ada.yaml --no-cache -v      # Fresh fetch, debug logs
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from autoresume.config import DEFAULT_PROFILE_PATH, load_config
from autoresume.contexts.rendering.compiler import LATEX_COMPILER
from autoresume.contexts.templating.locales import Language
from autoresume.exceptions import AutoResumeError, CompilationError, UserAborted
from autoresume.pipeline import PipelineOptions, run_pipeline, setup_pipeline_logger

load_dotenv()

app = typer.Typer(
    help="Generate a tailored LaTeX/PDF resume from a GitHub profile and a job posting",
    add_completion=False,
)


@app.command()
def main(
    config_path: Annotated[
        Path,
        typer.Option("--config", "-c", help="Profile YAML (personal info, GitHub user, LLM settings)"),
    ] = DEFAULT_PROFILE_PATH,
    job_url: Annotated[
        Optional[str],
        typer.Option("--job-url", "-u", help="URL of the job posting"),
    ] = None,
    job_file: Annotated[
        Optional[Path],
        typer.Option("--job-file", "-f", help="File holding the job posting (text or saved HTML)"),
    ] = None,
    language: Annotated[
        str,
        typer.Option("--language", "-l", help="Resume language: en or pt"),
    ] = "en",
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output PDF path"),
    ] = Path("resume.pdf"),
    save_latex: Annotated[
        bool,
        typer.Option("--latex", help="Also save the LaTeX source next to the PDF"),
    ] = False,
    edit: Annotated[
        bool,
        typer.Option("--edit", "-e", help="Open the LaTeX source in $EDITOR before compiling"),
    ] = False,
    parallelism: Annotated[
        Optional[int],
        typer.Option("--parallelism", "-p", help="Simultaneous repository fetches (default: from config)", min=1),
    ] = None,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Do not read or write the on-disk response cache"),
    ] = False,
    compiler: Annotated[
        str,
        typer.Option("--compiler", help="LaTeX compiler executable"),
    ] = LATEX_COMPILER,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logs and compiler diagnostics"),
    ] = False,
):
    """
    Generate a resume.

    Without --job-url or --job-file a generic software engineering posting is
    used. Exits 0 when the resume is written or the selection is cancelled,
    1 on any failure.
    """
    if job_url and job_file:
        typer.secho("Error: use either --job-url or --job-file, not both\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        config = load_config(config_path)
    except AutoResumeError as e:
        typer.secho(f"Error: {e.message}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    log_file = setup_pipeline_logger(config.github.username, console_level="DEBUG" if verbose else "INFO")

    options = PipelineOptions(
        output=output,
        job_url=job_url,
        job_file=job_file,
        language=Language.from_code(language),
        save_latex=save_latex,
        edit=edit,
        parallelism=parallelism,
        use_cache=not no_cache,
        compiler=compiler,
        verbose=verbose,
    )

    typer.secho(f"\nGenerating resume for {config.resume.full_name}", fg=typer.colors.BLUE, bold=True)
    typer.echo(f"  GitHub: {config.github.username}")
    typer.echo(f"  Job: {job_url or job_file or 'generic template'}")
    typer.echo(f"  Language: {options.language.display_name}")
    typer.echo("")

    try:
        result = asyncio.run(run_pipeline(config, options))
    except (UserAborted, KeyboardInterrupt):
        typer.secho("\nCancelled, no resume written.", fg=typer.colors.YELLOW, bold=True)
        raise typer.Exit(code=0)
    except CompilationError as e:
        typer.secho(f"\n✗ [{e.stage}] {e}", fg=typer.colors.RED, bold=True, err=True)
        if e.tex_path:
            typer.echo(f"  LaTeX source: {e.tex_path}", err=True)
        typer.echo(f"  Log: {log_file}", err=True)
        raise typer.Exit(code=1)
    except AutoResumeError as e:
        typer.secho(f"\n✗ [{e.stage}] {e.message}", fg=typer.colors.RED, bold=True, err=True)
        typer.echo(f"  Log: {log_file}", err=True)
        raise typer.Exit(code=1)

    typer.secho("\n✓ Resume generated", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  PDF: {result.pdf_path}")
    if result.page_count is not None:
        typer.echo(f"  Pages: {result.page_count}")
    if result.tex_path:
        typer.echo(f"  LaTeX: {result.tex_path}")
    typer.echo(f"  Projects: {len(result.selection)}")
    typer.echo(f"  Log: {log_file}")
    typer.echo("")


if __name__ == "__main__":
    app()
