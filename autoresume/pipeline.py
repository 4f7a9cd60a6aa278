"""
End-to-end resume pipeline.

    (collect GitHub profile || resolve job text) -> extract job -> rank
    -> select (human) -> generate content -> assemble -> (edit) -> compile

One httpx client and one response cache, wrapped in a ResilientFetcher, are
built per run and handed to the collector and the job source resolver. Model
calls run one after another. The selection dialogue blocks on the terminal,
so it runs in a daemon thread: an interrupt ends the run without waiting for
a pending input() to return.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

import httpx
import typer
from loguru import logger

from autoresume.config import LOGS_PATH, AppConfig
from autoresume.contexts.generation.content_generator import generate_content
from autoresume.contexts.intake.github_collector import GithubCollector
from autoresume.contexts.intake.job_source import JobSourceResolver
from autoresume.contexts.rendering.compiler import LATEX_COMPILER, compile_document
from autoresume.contexts.selection.controller import SelectionController, SelectionResult
from autoresume.contexts.targeting.job_description import extract_job_description
from autoresume.contexts.targeting.ranking import RankedRepository, rank_repositories
from autoresume.contexts.templating.assembler import assemble
from autoresume.contexts.templating.locales import Language
from autoresume.exceptions import CompilationError, UserAborted
from autoresume.utils.cache import ResponseCache
from autoresume.utils.http import ResilientFetcher, create_client
from autoresume.utils.llm import LLMProvider, get_provider
from autoresume.utils.logger import setup_logger
from autoresume.utils.pdf_processing import page_count
from autoresume.utils.timestamp import now

CONTEXT_PREFIX = "[pipeline]"

T = TypeVar("T")


@dataclass(frozen=True)
class PipelineOptions:
    """
    Per-run options (the CLI flags).

    Attributes:
        output: Where the PDF is written
        job_url: Job posting URL
        job_file: Job posting file
        language: Section header and content language
        save_latex: Also write the .tex next to the PDF
        edit: Open the .tex in $EDITOR before compiling
        parallelism: Overrides github.parallelism
        use_cache: Whether responses are cached on disk across runs
        compiler: LaTeX compiler executable
        verbose: More compiler diagnostics in the logs
    """

    output: Path
    job_url: Optional[str] = None
    job_file: Optional[Path] = None
    language: Language = Language.ENGLISH
    save_latex: bool = False
    edit: bool = False
    parallelism: Optional[int] = None
    use_cache: bool = True
    compiler: str = LATEX_COMPILER
    verbose: bool = False


@dataclass(frozen=True)
class PipelineResult:
    pdf_path: Path
    tex_path: Optional[Path]
    selection: SelectionResult
    page_count: Optional[int]


def setup_pipeline_logger(username: str, console_level: str = "INFO") -> Path:
    """Configure loguru for one pipeline run under LOGS_PATH/pipeline_<timestamp>/."""
    return setup_logger(
        context_name="pipeline",
        log_dir=LOGS_PATH / f"pipeline_{now()}",
        extra_provenance={"GitHub user": username},
        console_level=console_level,
    )


def select_interactively(ranked: Sequence[RankedRepository]) -> SelectionResult:
    return SelectionController(ranked).run()


def edit_in_editor(source: str) -> str:
    """Open source in $EDITOR; an unsaved editor session keeps the original."""
    edited = typer.edit(source, extension=".tex", require_save=True)
    return source if edited is None else edited


async def _gather_or_cancel(*aws: Awaitable[Any]) -> List[Any]:
    """gather() that cancels the remaining awaitables when one fails."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


async def _run_in_daemon_thread(func: Callable[..., T], *args: Any) -> T:
    """
    Run a blocking call in a daemon thread and await its result.

    Unlike asyncio.to_thread, the thread is not joined at loop shutdown, so a
    call stuck in input() cannot keep the process alive after Ctrl-C.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(result: Any, error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is None:
            future.set_result(result)
        else:
            future.set_exception(error)

    def target() -> None:
        try:
            result = func(*args)
        except BaseException as e:
            outcome = (None, e)
        else:
            outcome = (result, None)
        if not loop.is_closed():
            loop.call_soon_threadsafe(settle, *outcome)

    threading.Thread(target=target, name="selection", daemon=True).start()
    return await future


def _save_failed_source(source: str, output: Path, error: CompilationError) -> Path:
    tex_path = output.with_suffix(".tex")
    tex_path.parent.mkdir(parents=True, exist_ok=True)
    tex_path.write_text(source, encoding="utf-8")
    error.tex_path = tex_path
    logger.error(f"{CONTEXT_PREFIX} LaTeX source kept for inspection: {tex_path}")
    return tex_path


async def run_pipeline(
    config: AppConfig,
    options: PipelineOptions,
    provider: Optional[LLMProvider] = None,
    client: Optional[httpx.AsyncClient] = None,
    select: Callable[[Sequence[RankedRepository]], SelectionResult] = select_interactively,
    edit_source: Callable[[str], str] = edit_in_editor,
    compile_source: Callable[..., bytes] = compile_document,
) -> PipelineResult:
    """
    Run the whole pipeline and write the PDF.

    Args:
        config: Loaded profile
        options: Run options
        provider: LLM provider (default: built from config.llm)
        client: HTTP client (default: a new client, closed at the end)
        select: Selection step, run in a daemon thread
        edit_source: Editor step, used when options.edit is set
        compile_source: LaTeX compiler step

    Returns:
        PipelineResult with the written paths

    Raises:
        AutoResumeError subclasses from every stage; UserAborted when the user
        cancels the selection. On CompilationError the .tex is written next to
        the output and its path set on the error.
    """
    start_time = time.time()
    retry_policy = config.retry_policy()
    if provider is None:
        provider = get_provider(
            provider_name=config.llm.provider,
            model=config.llm.model,
            api_key=config.llm.api_key,
            endpoint=config.llm.endpoint,
            retry_policy=config.retry_policy(config.llm.max_retries),
        )

    cache = ResponseCache(
        cache_dir=config.cache_dir if options.use_cache else None,
        default_ttl=config.fetch.cache_ttl_s,
    )
    owns_client = client is None
    if owns_client:
        client = create_client(timeout_s=config.fetch.timeout_s)

    try:
        fetcher = ResilientFetcher(client, cache=cache, retry_policy=retry_policy, ttl=config.fetch.cache_ttl_s)
        collector = GithubCollector(
            fetcher,
            token=config.github.token,
            parallelism=options.parallelism or config.github.parallelism,
        )
        resolver = JobSourceResolver(fetcher)

        repositories, raw_job = await _gather_or_cancel(
            collector.collect(config.github.username),
            resolver.resolve(url=options.job_url, file=options.job_file),
        )
        logger.info(f"{CONTEXT_PREFIX} Network calls so far: {fetcher.network_calls}")
    finally:
        if owns_client:
            await client.aclose()

    max_retries = config.llm.max_retries
    job = await extract_job_description(provider, raw_job, max_retries=max_retries)
    ranked = await rank_repositories(provider, repositories, job, max_retries=max_retries)

    try:
        selection = await _run_in_daemon_thread(select, ranked)
    except (KeyboardInterrupt, asyncio.CancelledError) as e:
        # asyncio.run turns SIGINT into cancellation of the main task
        raise UserAborted("Selection interrupted") from e

    content = await generate_content(
        provider, config.resume, job, selection, options.language, max_retries=max_retries
    )
    document = assemble(config.resume, job, content, options.language)

    source = document.source
    if options.edit:
        source = await asyncio.to_thread(edit_source, source)

    output = Path(options.output)
    tex_path = None
    if options.save_latex:
        tex_path = output.with_suffix(".tex")
        tex_path.parent.mkdir(parents=True, exist_ok=True)
        tex_path.write_text(source, encoding="utf-8")
        logger.info(f"{CONTEXT_PREFIX} LaTeX source saved to {tex_path}")

    try:
        pdf = await asyncio.to_thread(compile_source, source, options.compiler, 2, options.verbose)
    except CompilationError as e:
        _save_failed_source(source, output, e)
        raise

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(pdf)
    pages = page_count(pdf)
    logger.success(
        f"{CONTEXT_PREFIX} Resume written to {output} ({pages or '?'} pages, {time.time() - start_time:.1f}s)"
    )
    return PipelineResult(pdf_path=output, tex_path=tex_path, selection=selection, page_count=pages)
