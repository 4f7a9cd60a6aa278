"""
LLM provider abstraction and structured-output protocol.

Provides a provider-agnostic interface for LLM API calls with transport
retries, plus invoke_structured(): a parse-then-validate boundary that turns
free-form model text into a validated pydantic object, re-prompting with the
rejection reason when the output does not fit.
"""

import json
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Type, TypeVar

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ValidationError

from autoresume.exceptions import (
    ConfigError,
    GenerationError,
    GenerationTransportError,
    InvalidOutputError,
)
from autoresume.utils.retry import RetryPolicy

load_dotenv()

DEFAULT_MAX_TOKENS = 4096

M = TypeVar("M", bound=BaseModel)


class OutputRejected(ValueError):
    """Decoded output is well-formed but violates a semantic rule."""


# --- LLM Provider Classes ---


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMProvider(ABC):
    """
    Abstract base for LLM providers.

    Subclasses must:
    - Set _provider_prefix class attribute (e.g., "anthropic", "openai")
    - Implement _call_api() for the actual API call (no retries)
    - Implement _is_transient() to classify SDK exceptions
    - Set self._api_error to the SDK's base API exception type
    - Call update_model(model) in __init__ to set model and name
    """

    _provider_prefix: str
    _api_error: type = Exception

    name: str
    model: str
    retry_policy: RetryPolicy

    def update_model(self, model: str):
        """Update the model and refresh the provider name."""
        self.model = model
        self.name = f"{self._provider_prefix}/{model}"

    @abstractmethod
    async def _call_api(self, system_prompt: str, user_prompt: str, json_output: bool) -> LLMResponse:
        """Make a single API call (no retries). Implemented by subclasses."""

    def _is_transient(self, error: BaseException) -> bool:
        return False

    async def generate(self, system_prompt: str, user_prompt: str, json_output: bool = False) -> LLMResponse:
        """
        Generate a response, retrying transient transport failures.

        Raises:
            GenerationTransportError: Transient failures outlasted the retry budget
            GenerationError: Provider rejected the request (auth, bad request, ...)
        """
        policy = self.retry_policy.with_predicate(self._is_transient)
        try:
            return await policy.run(
                lambda: self._call_api(system_prompt, user_prompt, json_output),
                description=f"{self.name} request",
            )
        except self._api_error as e:
            if self._is_transient(e):
                raise GenerationTransportError(f"{self.name} unavailable: {e}") from e
            raise GenerationError(f"{self.name} request failed: {e}") from e


def _status_is_transient(error: BaseException) -> bool:
    status = getattr(error, "status_code", None)
    return status is not None and (status == 429 or status >= 500)


class OpenAIProvider(LLMProvider):
    """
    OpenAI-compatible chat completions provider.

    The endpoint is configurable, so any OpenAI-compatible service (including
    Gemini's compatibility endpoint) can be used.
    """

    _provider_prefix = "openai"

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        # Lazy import - only load the SDK if this provider is used
        try:
            import openai
        except ImportError:
            raise ImportError("openai package required. Install with: pip install openai")

        api_key = api_key or os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigError("No API key for the openai provider (set llm.api_key or OPENAI_API_KEY)")

        # SDK-level retries disabled: retry_policy owns the backoff
        self.client = openai.AsyncOpenAI(api_key=api_key, base_url=endpoint or None, max_retries=0)
        self._openai = openai
        self._api_error = openai.APIError
        self.retry_policy = retry_policy or RetryPolicy()
        self.update_model(model)

    def _is_transient(self, error: BaseException) -> bool:
        if isinstance(error, self._openai.APIConnectionError):
            return True
        return isinstance(error, self._openai.APIStatusError) and _status_is_transient(error)

    async def _call_api(self, system_prompt: str, user_prompt: str, json_output: bool) -> LLMResponse:
        kwargs = {"response_format": {"type": "json_object"}} if json_output else {}
        response = await self.client.chat.completions.create(
            model=self.model,
            max_tokens=DEFAULT_MAX_TOKENS,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            **kwargs,
        )
        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=self.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


class AnthropicProvider(LLMProvider):
    """Anthropic Claude messages provider."""

    _provider_prefix = "anthropic"

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        # Lazy import - only load the SDK if this provider is used
        try:
            import anthropic
        except ImportError:
            raise ImportError("anthropic package required. Install with: pip install anthropic")

        api_key = api_key or os.getenv("LLM_API_KEY") or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ConfigError("No API key for the anthropic provider (set llm.api_key or ANTHROPIC_API_KEY)")

        self.client = anthropic.AsyncAnthropic(api_key=api_key, base_url=endpoint or None, max_retries=0)
        self._anthropic = anthropic
        self._api_error = anthropic.APIError
        self.retry_policy = retry_policy or RetryPolicy()
        self.update_model(model)

    def _is_transient(self, error: BaseException) -> bool:
        if isinstance(error, self._anthropic.APIConnectionError):
            return True
        return isinstance(error, self._anthropic.APIStatusError) and _status_is_transient(error)

    async def _call_api(self, system_prompt: str, user_prompt: str, json_output: bool) -> LLMResponse:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=DEFAULT_MAX_TOKENS,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        return LLMResponse(
            content=text,
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# --- Provider Factory ---


def get_provider(
    provider_name: str = None,
    model: str = None,
    api_key: str = None,
    endpoint: str = None,
    retry_policy: RetryPolicy = None,
) -> LLMProvider:
    """
    Get an LLM provider instance.

    Args:
        provider_name: "openai" or "anthropic" (default: from LLM_PROVIDER env var)
        model: Model name (default: provider-specific default)
        api_key: API key (default: provider-specific env var)
        endpoint: Base URL override
        retry_policy: Transport retry policy

    Returns:
        LLMProvider instance
    """
    if provider_name is None:
        provider_name = os.getenv("LLM_PROVIDER", "openai")
    provider_name = provider_name.lower()

    kwargs = {"api_key": api_key, "endpoint": endpoint, "retry_policy": retry_policy}
    if model:
        kwargs["model"] = model

    if provider_name == "openai":
        return OpenAIProvider(**kwargs)
    elif provider_name == "anthropic":
        return AnthropicProvider(**kwargs)
    else:
        raise ConfigError(f"Unknown provider: {provider_name}. Use 'openai' or 'anthropic'")


# --- Response Parsing Utilities ---


def parse_json_object(text: str) -> dict:
    """
    Decode a JSON object from LLM response text.

    Accepts bare JSON, JSON wrapped in markdown code fences, or JSON embedded
    in surrounding prose (outermost braces).

    Raises:
        ValueError: No JSON object could be decoded
    """
    text = text.strip()
    if not text:
        raise ValueError("empty response")

    candidates = [text]

    fenced = re.sub(r"^```(?:json)?\s*", "", text)
    fenced = re.sub(r"\s*```$", "", fenced)
    candidates.append(fenced)

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            result = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(result, dict):
            return result
        raise ValueError(f"expected a JSON object, got {type(result).__name__}")

    raise ValueError("no JSON object found in response")


def _rejection_reason(error: ValueError) -> str:
    if isinstance(error, ValidationError):
        problems = []
        for item in error.errors()[:5]:
            location = ".".join(str(part) for part in item["loc"]) or "<root>"
            problems.append(f"{location}: {item['msg']}")
        return "schema validation failed: " + "; ".join(problems)
    return str(error)


# --- Structured Output ---


@dataclass(frozen=True)
class PromptContext:
    """
    A structured-output request.

    Attributes:
        system_prompt: Instructions for the model
        user_prompt: Task content
        stage: Pipeline stage name, used in logs and errors
    """

    system_prompt: str
    user_prompt: str
    stage: str


def schema_hint(schema: Type[BaseModel]) -> str:
    return json.dumps(schema.model_json_schema(), indent=2)


async def invoke_structured(
    provider: LLMProvider,
    prompt: PromptContext,
    schema: Type[M],
    validate: Optional[Callable[[M], None]] = None,
    max_retries: int = 3,
) -> M:
    """
    Ask the provider for output matching schema, re-prompting on rejection.

    Each response is decoded permissively, validated against schema, then
    passed to validate (which raises OutputRejected for semantic problems).
    A rejected response triggers a new request with the rejection reason
    appended, at most max_retries times. Re-prompts run one after another.

    Args:
        provider: LLM provider
        prompt: System/user prompt pair and stage name
        schema: Pydantic model describing the expected JSON object
        validate: Optional semantic check on the parsed object
        max_retries: Re-prompts allowed after the first response

    Returns:
        Validated schema instance

    Raises:
        InvalidOutputError: Every response was rejected
        GenerationTransportError / GenerationError: Provider call failed
    """
    base_prompt = (
        f"{prompt.user_prompt}\n\n"
        "Respond ONLY with a JSON object that validates against this JSON schema:\n"
        f"{schema_hint(schema)}"
    )
    reasons = []

    for attempt in range(max_retries + 1):
        user_prompt = base_prompt
        if reasons:
            user_prompt += (
                f"\n\nYour previous response was rejected ({reasons[-1]}). "
                "Respond again with corrected JSON only."
            )

        response = await provider.generate(prompt.system_prompt, user_prompt, json_output=True)
        logger.debug(
            f"[{prompt.stage}] response {attempt + 1}: {len(response.content)} chars "
            f"({response.input_tokens} in / {response.output_tokens} out tokens)"
        )

        try:
            parsed = schema.model_validate(parse_json_object(response.content))
            if validate is not None:
                validate(parsed)
            return parsed
        except ValueError as e:
            reason = _rejection_reason(e)
            reasons.append(reason)
            logger.warning(
                f"[{prompt.stage}] output rejected (attempt {attempt + 1}/{max_retries + 1}): {reason}"
            )

    raise InvalidOutputError(
        f"{prompt.stage} output rejected {len(reasons)} times",
        stage=prompt.stage,
        reasons=reasons,
    )
