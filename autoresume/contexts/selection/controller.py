"""
Interactive repository selection.

SelectionController is a small state machine:

    PRESENTING -> AWAITING_CHOICE -> (RESOLVING_MANUAL_ADDS) -> FROZEN

with ABORTED reachable from any waiting state. It blocks on user input, so
async callers run it in a worker thread (asyncio.to_thread). Input and output
are injectable callables; tests drive it with scripted answers.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

import typer

from autoresume.contexts.intake.repository import Repository
from autoresume.contexts.selection.logger import _log_debug, _log_info
from autoresume.contexts.targeting.ranking import RankedRepository
from autoresume.exceptions import SelectionError, UserAborted

DEFAULT_SELECTION_SIZE = 5
ABORT_WORDS = {"q", "quit", "abort"}
MAX_STARS = 5


class SelectionState(Enum):
    PRESENTING = "presenting"
    AWAITING_CHOICE = "awaiting_choice"
    RESOLVING_MANUAL_ADDS = "resolving_manual_adds"
    FROZEN = "frozen"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ManualRepository:
    """
    A project the user adds by hand.

    Needs a name plus a URL or a description.
    """

    name: str
    url: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        if not self.name.strip():
            raise ValueError("manual repository needs a name")
        if not (self.url or "").strip() and not (self.description or "").strip():
            raise ValueError(f"manual repository {self.name!r} needs a URL or a description")


@dataclass(frozen=True)
class SelectionResult:
    """
    The approved repository set.

    Attributes:
        chosen: Ranked repositories in the order the user picked them
        manually_added: User-supplied projects, in entry order
    """

    chosen: Tuple[Repository, ...] = ()
    manually_added: Tuple[ManualRepository, ...] = ()

    def __len__(self) -> int:
        return len(self.chosen) + len(self.manually_added)


def parse_indices(text: str, count: int) -> List[int]:
    """
    Parse a 1-based index list such as "1, 3 2" into 0-based positions.

    Order is kept; repeated indices collapse to their first occurrence.

    Raises:
        SelectionError: Non-numeric token, index out of 1..count, or nothing given
    """
    tokens = [token for token in re.split(r"[,\s]+", text.strip()) if token]
    if not tokens:
        raise SelectionError("Enter at least one repository number")

    positions = []
    for token in tokens:
        if not token.isdigit():
            raise SelectionError(f"Invalid input: {token!r}. Enter numbers separated by commas or spaces.")
        index = int(token)
        if not 1 <= index <= count:
            raise SelectionError(f"Invalid number: {index}. Choose between 1 and {count}.")
        if index - 1 not in positions:
            positions.append(index - 1)
    return positions


def relevance_stars(score: int, total: int) -> str:
    """Star bar for a rank: the best entry gets MAX_STARS, the worst at least one."""
    if total <= 0:
        return ""
    filled = math.ceil(MAX_STARS * (total - score + 1) / total)
    filled = max(1, min(MAX_STARS, filled))
    return "★" * filled + "☆" * (MAX_STARS - filled)


def _echo(message: str = "", fg: Optional[str] = None, bold: bool = False) -> None:
    typer.secho(message, fg=fg, bold=bold)


def _read(prompt: str) -> str:
    return input(typer.style(prompt, fg=typer.colors.CYAN))


class SelectionController:
    """
    Runs the selection dialogue over a ranking.

    Args:
        ranked: Ranking, best first
        read: Prompt -> answer. EOFError or KeyboardInterrupt aborts
        echo: Writes a line; accepts fg and bold keywords
    """

    def __init__(
        self,
        ranked: Sequence[RankedRepository],
        read: Callable[[str], str] = _read,
        echo: Callable[..., None] = _echo,
    ):
        self.ranked = list(ranked)
        self.read = read
        self.echo = echo
        self.state = SelectionState.PRESENTING
        self._chosen: List[Repository] = []
        self._manual: List[ManualRepository] = []

    def run(self) -> SelectionResult:
        """
        Run the dialogue to completion.

        Returns:
            The frozen SelectionResult

        Raises:
            UserAborted: User typed an abort word, sent EOF or pressed Ctrl-C
            SelectionError: Controller already finished (frozen or aborted)
        """
        if self.state is not SelectionState.PRESENTING:
            raise SelectionError(f"Selection already finished ({self.state.value})")

        try:
            self._present()
            if self.ranked:
                self.state = SelectionState.AWAITING_CHOICE
                self._await_choice()
            if self._wants_manual_adds():
                self.state = SelectionState.RESOLVING_MANUAL_ADDS
                self._resolve_manual_adds()
        except (EOFError, KeyboardInterrupt) as e:
            self.state = SelectionState.ABORTED
            raise UserAborted("Selection cancelled") from e
        except UserAborted:
            self.state = SelectionState.ABORTED
            raise

        self.state = SelectionState.FROZEN
        result = SelectionResult(chosen=tuple(self._chosen), manually_added=tuple(self._manual))
        _log_info(f"Selected {len(result.chosen)} ranked and {len(result.manually_added)} manual repositories")
        for repo in result.chosen:
            _log_debug(f"  {repo.name}")
        return result

    def _ask(self, prompt: str) -> str:
        answer = self.read(prompt).strip()
        if answer.lower() in ABORT_WORDS:
            raise UserAborted("Selection cancelled")
        return answer

    def _present(self) -> None:
        self.echo()
        self.echo("=== Repository Selection ===", fg=typer.colors.CYAN, bold=True)
        if not self.ranked:
            self.echo("No repositories to choose from.", fg=typer.colors.YELLOW)
            return

        self.echo(
            f"Select repositories to include in your resume "
            f"(Enter for the top {min(DEFAULT_SELECTION_SIZE, len(self.ranked))}, 'q' to quit):",
            fg=typer.colors.CYAN,
        )
        self.echo()
        total = len(self.ranked)
        for entry in self.ranked:
            stars = relevance_stars(entry.score, total)
            self.echo(f"{entry.score:>2}. [{stars}] {entry.repository.name}", bold=True)
            self.echo(f"    {entry.rationale}")
        self.echo()

    def _await_choice(self) -> None:
        while True:
            answer = self._ask("Repository numbers (e.g. '1,2,3'): ")
            if not answer:
                picked = self.ranked[:DEFAULT_SELECTION_SIZE]
                self.echo(f"Using the top {len(picked)} repositories.", fg=typer.colors.YELLOW)
                self._chosen = [entry.repository for entry in picked]
                return
            try:
                positions = parse_indices(answer, len(self.ranked))
            except SelectionError as e:
                self.echo(e.message, fg=typer.colors.RED)
                continue
            self._chosen = [self.ranked[position].repository for position in positions]
            return

    def _wants_manual_adds(self) -> bool:
        while True:
            answer = self._ask("Add repositories manually? (y/N): ").lower()
            if answer in ("y", "yes"):
                return True
            if answer in ("", "n", "no"):
                return False
            self.echo("Please enter 'y' or 'n'.", fg=typer.colors.RED)

    def _find_ranked(self, name: str) -> Optional[Repository]:
        wanted = name.strip().rstrip("/").lower()
        for entry in self.ranked:
            repo = entry.repository
            if wanted in (repo.name.lower(), repo.full_name.lower(), repo.url.rstrip("/").lower()):
                return repo
        return None

    def _resolve_manual_adds(self) -> None:
        self.echo("Add projects by name (press Enter on an empty name to finish).", fg=typer.colors.CYAN)
        while True:
            name = self._ask("Name: ")
            if not name:
                return

            existing = self._find_ranked(name)
            if existing is not None:
                if existing in self._chosen:
                    self.echo(f"Already selected: {existing.name}", fg=typer.colors.YELLOW)
                else:
                    self._chosen.append(existing)
                    self.echo(f"Added from your profile: {existing.name}", fg=typer.colors.GREEN)
                continue

            if any(manual.name.lower() == name.lower() for manual in self._manual):
                self.echo(f"Already added: {name}", fg=typer.colors.YELLOW)
                continue

            url = self._ask("URL (optional): ") or None
            description = self._ask("Description (optional): ") or None
            try:
                manual = ManualRepository(name=name, url=url, description=description)
            except ValueError as e:
                self.echo(f"Not added: {e}", fg=typer.colors.RED)
                continue
            self._manual.append(manual)
            self.echo(f"Added: {name}", fg=typer.colors.GREEN)
