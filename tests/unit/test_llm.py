"""Unit tests for the provider retry wrapper and the structured-output protocol."""

import pytest
from pydantic import BaseModel

from autoresume.exceptions import ConfigError, GenerationError, GenerationTransportError, InvalidOutputError
from autoresume.utils.llm import OutputRejected, PromptContext, get_provider, invoke_structured, parse_json_object
from autoresume.utils.retry import RetryPolicy

from conftest import FakeProvider, RecordingSleep


class Greeting(BaseModel):
    word: str
    count: int = 1


PROMPT = PromptContext(system_prompt="system", user_prompt="Say hello", stage="greeting")


class FlakyProvider(FakeProvider):
    """Treats ConnectionError as a transient transport failure."""

    def _is_transient(self, error):
        return isinstance(error, ConnectionError)


@pytest.mark.unit
def test_parse_json_object_variants():
    assert parse_json_object('{"a": 1}') == {"a": 1}
    assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_object('Sure! Here it is: {"a": {"b": 2}} Hope that helps.') == {"a": {"b": 2}}


@pytest.mark.unit
@pytest.mark.parametrize("text", ["", "   ", "no json here", "[1, 2]"])
def test_parse_json_object_rejects(text):
    with pytest.raises(ValueError):
        parse_json_object(text)


@pytest.mark.unit
async def test_valid_first_response():
    provider = FakeProvider([{"word": "hi"}])

    result = await invoke_structured(provider, PROMPT, Greeting)

    assert result == Greeting(word="hi")
    assert len(provider.calls) == 1
    assert "JSON schema" in provider.calls[0]["user"]


@pytest.mark.unit
async def test_rejected_output_is_reprompted_with_reason():
    provider = FakeProvider(["not json at all", {"wrong": 1}, {"word": "hi", "count": 2}])

    result = await invoke_structured(provider, PROMPT, Greeting, max_retries=3)

    assert result.count == 2
    assert len(provider.calls) == 3
    assert "previous response was rejected" not in provider.calls[0]["user"]
    assert "no JSON object found" in provider.calls[1]["user"]
    assert "schema validation failed" in provider.calls[2]["user"]


@pytest.mark.unit
async def test_semantic_validation_rejects():
    def no_shouting(greeting):
        if greeting.word.isupper():
            raise OutputRejected("word must not be upper case")

    provider = FakeProvider([{"word": "HI"}, {"word": "hi"}])

    result = await invoke_structured(provider, PROMPT, Greeting, validate=no_shouting)

    assert result.word == "hi"
    assert "word must not be upper case" in provider.calls[1]["user"]


@pytest.mark.unit
async def test_invalid_output_after_all_reprompts():
    provider = FakeProvider(["nope", "still nope", "never"])

    with pytest.raises(InvalidOutputError) as exc_info:
        await invoke_structured(provider, PROMPT, Greeting, max_retries=2)

    assert exc_info.value.attempts == 3
    assert exc_info.value.stage == "greeting"
    assert len(provider.calls) == 3


@pytest.mark.unit
async def test_transient_transport_errors_are_retried():
    sleep = RecordingSleep()
    provider = FlakyProvider(
        [ConnectionError(), ConnectionError(), {"word": "hi"}],
        retry_policy=RetryPolicy(max_retries=3, sleep=sleep),
    )

    result = await invoke_structured(provider, PROMPT, Greeting)

    assert result.word == "hi"
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.unit
async def test_transport_failure_after_retries():
    provider = FlakyProvider(
        [ConnectionError() for _ in range(3)],
        retry_policy=RetryPolicy(max_retries=2, sleep=RecordingSleep()),
    )

    with pytest.raises(GenerationTransportError):
        await provider.generate("system", "user")


@pytest.mark.unit
async def test_permanent_provider_error_is_not_retried():
    provider = FlakyProvider([PermissionError("bad key"), {"word": "hi"}])

    with pytest.raises(GenerationError) as exc_info:
        await provider.generate("system", "user")

    assert not isinstance(exc_info.value, GenerationTransportError)
    assert len(provider.calls) == 1


@pytest.mark.unit
def test_unknown_provider_is_a_config_error():
    with pytest.raises(ConfigError):
        get_provider(provider_name="carrier-pigeon")


@pytest.mark.unit
def test_missing_api_key_is_a_config_error(monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ConfigError):
        get_provider(provider_name="openai")
