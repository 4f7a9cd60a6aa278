"""Unit tests for the interactive selection state machine."""

import pytest

from autoresume.contexts.selection.controller import (
    ManualRepository,
    SelectionController,
    SelectionState,
    parse_indices,
    relevance_stars,
)
from autoresume.contexts.targeting.ranking import RankedRepository
from autoresume.exceptions import SelectionError, UserAborted


@pytest.fixture
def ranked(make_repo):
    names = ["k8s-operator", "api-gateway", "helm-charts", "django-blog", "dotfiles", "notes", "scratch"]
    return [
        RankedRepository(repository=make_repo(name), score=score, rationale=f"{name} rationale")
        for score, name in enumerate(names, start=1)
    ]


def scripted(*answers):
    """read() replaying answers; EOF once they run out."""
    queue = list(answers)

    def read(prompt):
        read.prompts.append(prompt)
        if not queue:
            raise EOFError
        return queue.pop(0)

    read.prompts = []
    return read


class Console:
    def __init__(self):
        self.lines = []

    def __call__(self, message="", fg=None, bold=False):
        self.lines.append(message)

    def text(self):
        return "\n".join(self.lines)


def names(repositories):
    return [repo.name for repo in repositories]


@pytest.mark.unit
def test_parse_indices():
    assert parse_indices("1, 3 2", 5) == [0, 2, 1]
    assert parse_indices("2,2,1", 5) == [1, 0]
    assert parse_indices(" 4 ", 4) == [3]


@pytest.mark.unit
@pytest.mark.parametrize("text", ["", "0", "6", "one", "1,-2", "1.5"])
def test_parse_indices_rejects(text):
    with pytest.raises(SelectionError):
        parse_indices(text, 5)


@pytest.mark.unit
def test_relevance_stars():
    assert relevance_stars(1, 5) == "★★★★★"
    assert relevance_stars(5, 5) == "★☆☆☆☆"
    assert relevance_stars(1, 1) == "★★★★★"
    assert relevance_stars(20, 20).count("★") == 1
    assert relevance_stars(1, 0) == ""


@pytest.mark.unit
def test_choice_in_typed_order(ranked):
    console = Console()
    controller = SelectionController(ranked, read=scripted("3, 1", "n"), echo=console)

    result = controller.run()

    assert names(result.chosen) == ["helm-charts", "k8s-operator"]
    assert result.manually_added == ()
    assert controller.state is SelectionState.FROZEN
    assert "★★★★★" in console.text()
    assert "k8s-operator rationale" in console.text()


@pytest.mark.unit
def test_invalid_choice_is_asked_again(ranked):
    console = Console()
    read = scripted("9", "abc", "2", "")

    result = SelectionController(ranked, read=read, echo=console).run()

    assert names(result.chosen) == ["api-gateway"]
    assert "Invalid number: 9" in console.text()
    assert "Invalid input: 'abc'" in console.text()
    assert read.prompts.count("Repository numbers (e.g. '1,2,3'): ") == 3


@pytest.mark.unit
def test_empty_choice_takes_top_five(ranked):
    result = SelectionController(ranked, read=scripted("", "no"), echo=Console()).run()

    assert names(result.chosen) == ["k8s-operator", "api-gateway", "helm-charts", "django-blog", "dotfiles"]


@pytest.mark.unit
def test_manual_additions(ranked):
    read = scripted(
        "1",
        "y",
        "compiler-course",
        "https://gitlab.com/ada/compiler-course",
        "",
        "talk-slides",
        "",
        "Conference talk on Go",
        "",
    )

    result = SelectionController(ranked, read=read, echo=Console()).run()

    assert names(result.chosen) == ["k8s-operator"]
    assert result.manually_added == (
        ManualRepository(name="compiler-course", url="https://gitlab.com/ada/compiler-course"),
        ManualRepository(name="talk-slides", description="Conference talk on Go"),
    )
    assert len(result) == 3


@pytest.mark.unit
def test_manual_name_of_ranked_repository_selects_it(ranked):
    console = Console()
    read = scripted("1", "y", "dotfiles", "ada/k8s-operator", "")

    result = SelectionController(ranked, read=read, echo=console).run()

    assert names(result.chosen) == ["k8s-operator", "dotfiles"]
    assert result.manually_added == ()
    assert "Already selected: k8s-operator" in console.text()


@pytest.mark.unit
def test_manual_entry_needs_url_or_description(ranked):
    console = Console()
    read = scripted("1", "y", "mystery", "", "", "")

    result = SelectionController(ranked, read=read, echo=console).run()

    assert result.manually_added == ()
    assert "Not added" in console.text()


@pytest.mark.unit
def test_repeated_manual_name_is_skipped(ranked):
    console = Console()
    read = scripted("1", "y", "side-project", "https://x.dev", "", "Side-Project", "")

    result = SelectionController(ranked, read=read, echo=console).run()

    assert len(result.manually_added) == 1
    assert "Already added: Side-Project" in console.text()


@pytest.mark.unit
@pytest.mark.parametrize("answers", [("q",), ("1", "quit"), ("1", "y", "abort")])
def test_abort_words(ranked, answers):
    controller = SelectionController(ranked, read=scripted(*answers), echo=Console())

    with pytest.raises(UserAborted):
        controller.run()
    assert controller.state is SelectionState.ABORTED


@pytest.mark.unit
def test_end_of_input_aborts(ranked):
    controller = SelectionController(ranked, read=scripted(), echo=Console())

    with pytest.raises(UserAborted):
        controller.run()
    assert controller.state is SelectionState.ABORTED


@pytest.mark.unit
def test_ctrl_c_aborts(ranked):
    def read(prompt):
        raise KeyboardInterrupt

    with pytest.raises(UserAborted):
        SelectionController(ranked, read=read, echo=Console()).run()


@pytest.mark.unit
def test_finished_controller_cannot_run_again(ranked):
    controller = SelectionController(ranked, read=scripted("1", "n"), echo=Console())
    controller.run()

    with pytest.raises(SelectionError):
        controller.run()


@pytest.mark.unit
def test_empty_ranking_goes_straight_to_manual_adds():
    read = scripted("y", "portfolio", "https://ada.dev", "", "")

    result = SelectionController([], read=read, echo=Console()).run()

    assert result.chosen == ()
    assert names(result.manually_added) == ["portfolio"]
    assert "Repository numbers (e.g. '1,2,3'): " not in read.prompts


@pytest.mark.unit
def test_manual_repository_validation():
    with pytest.raises(ValueError):
        ManualRepository(name="  ", url="https://x")
    with pytest.raises(ValueError):
        ManualRepository(name="x")
    assert ManualRepository(name="x", description="d").url is None
