"""Reasoning-call clients and LLM output parsing."""

import json
import re
from typing import Protocol, TypeVar

from anthropic import Anthropic
from openai import OpenAI
from pydantic import BaseModel, ValidationError

from spec_engine.core.config import get_settings
from spec_engine.core.errors import MalformedResponseError, ReasoningCallError
from spec_engine.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class ReasoningClient(Protocol):
    """Anything that can answer one system prompt + user message with text."""

    def complete(self, system_prompt: str, user_message: str) -> str: ...


class OpenAIReasoningClient:
    """Reasoning calls via OpenAI chat completions."""

    def __init__(self, model: str | None = None, temperature: float | None = None):
        settings = get_settings()
        self.model = model or settings.REASONING_MODEL
        self.temperature = (
            settings.REASONING_TEMPERATURE if temperature is None else temperature
        )
        self.max_tokens = settings.REASONING_MAX_TOKENS
        self._client = OpenAI(api_key=settings.OPENAI_API_KEY)

    def complete(self, system_prompt: str, user_message: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
            )
        except Exception as e:
            raise ReasoningCallError(f"OpenAI call to {self.model} failed: {e}") from e

        raw_output = response.choices[0].message.content or ""
        if not raw_output.strip():
            raise ReasoningCallError(f"OpenAI model {self.model} returned an empty response")
        return raw_output


class AnthropicReasoningClient:
    """Reasoning calls via the Anthropic messages API."""

    def __init__(self, model: str | None = None, temperature: float | None = None):
        settings = get_settings()
        self.model = model or settings.ANTHROPIC_MODEL
        self.temperature = (
            settings.REASONING_TEMPERATURE if temperature is None else temperature
        )
        self.max_tokens = settings.REASONING_MAX_TOKENS
        self._client = Anthropic(api_key=settings.ANTHROPIC_API_KEY)

    def complete(self, system_prompt: str, user_message: str) -> str:
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            )
        except Exception as e:
            raise ReasoningCallError(f"Anthropic call to {self.model} failed: {e}") from e

        raw_output = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if not raw_output.strip():
            raise ReasoningCallError(f"Anthropic model {self.model} returned an empty response")
        return raw_output


def get_reasoning_client(provider: str | None = None) -> ReasoningClient:
    """
    Get the configured reasoning client.

    Args:
        provider: "openai" or "anthropic" (defaults to REASONING_PROVIDER)

    Raises:
        ValueError: For an unknown provider
    """
    provider = (provider or get_settings().REASONING_PROVIDER).lower()
    if provider == "openai":
        return OpenAIReasoningClient()
    if provider == "anthropic":
        return AnthropicReasoningClient()
    raise ValueError(f"Unknown reasoning provider: {provider}")


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json_dict(raw_output: str) -> dict:
    """
    Parse LLM output as a JSON object.

    Raises:
        MalformedResponseError: If the output is not a JSON object
    """
    cleaned = _strip_llm_fences(raw_output or "")
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e}", raw_output) from e
    if not isinstance(parsed, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(parsed).__name__}", raw_output
        )
    return parsed


def parse_llm_json(raw_output: str, model: type[T]) -> T:
    """
    Parse LLM output as JSON and validate against a Pydantic model.

    Handles markdown code fences and surrounding whitespace.

    Args:
        raw_output: Raw string from LLM response
        model: Pydantic model class to validate against

    Returns:
        Validated Pydantic model instance

    Raises:
        MalformedResponseError: If parsing or validation fails
    """
    parsed = parse_llm_json_dict(raw_output)
    try:
        return model.model_validate(parsed)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Response does not match {model.__name__}: {e.error_count()} errors", raw_output
        ) from e
