"""OpenRouter text-generation client with a strict reply contract.

Reply contract: the response body of ``POST /chat/completions`` is an
OpenAI-compatible chat completion JSON object with at least one choice
whose ``message.content`` is a non-empty string. A body that is not JSON
raises :class:`ResponseParseError`; JSON that breaks the contract raises
:class:`ResponseValidationError`.
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from seogenix.config import settings
from seogenix.errors import (
    ConfigAbsentError,
    ResponseParseError,
    ResponseValidationError,
    TransportError,
)
from seogenix.services import logger as log_service


class CompletionMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None


class CompletionChoice(BaseModel):
    message: CompletionMessage


class CompletionUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0


class CompletionReply(BaseModel):
    choices: list[CompletionChoice]
    usage: CompletionUsage | None = None


@dataclass
class GeneratedText:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


def parse_completion(body: str | bytes) -> GeneratedText:
    """Parse and validate a raw chat-completion body."""
    try:
        payload = json.loads(body)
    except (TypeError, ValueError) as e:
        raise ResponseParseError(f"Completion body is not JSON: {e}") from e

    try:
        reply = CompletionReply.model_validate(payload)
    except ValidationError as e:
        raise ResponseValidationError(f"Completion body has the wrong shape: {e}") from e

    if not reply.choices:
        raise ResponseValidationError("Completion has no choices")
    text = (reply.choices[0].message.content or "").strip()
    if not text:
        raise ResponseValidationError("Completion content is empty")

    usage = reply.usage or CompletionUsage()
    return GeneratedText(
        text=text,
        input_tokens=usage.prompt_tokens,
        output_tokens=usage.completion_tokens,
    )


class TextGenerator:
    """Single-shot prompt -> text generation, no retries."""

    def __init__(
        self,
        openai_client: Any | None,
        *,
        model: str,
        max_tokens: int = 200,
        temperature: float = 0.7,
        timeout: float = 15.0,
    ):
        self._client = openai_client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return self._client is not None

    async def generate(self, prompt: str, *, caller: str = "citation_pipeline") -> str:
        if self._client is None:
            raise ConfigAbsentError("OPENROUTER_API_KEY is not configured")

        from openai import APIError

        started = time.monotonic()
        try:
            raw = await self._client.chat.completions.with_raw_response.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                timeout=self.timeout,
            )
        except APIError as e:
            log_service.log_llm_call(
                model=self.model,
                caller=caller,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="error",
                error=str(e),
            )
            raise TransportError(f"Text generation failed: {e}", provider="openrouter") from e

        result = parse_completion(raw.text)
        log_service.log_llm_call(
            model=self.model,
            caller=caller,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return result.text


def get_client() -> Any | None:
    """AsyncOpenAI pointed at OpenRouter, or None when no key is configured."""
    if not settings.openrouter_api_key:
        return None

    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return AsyncOpenAI(api_key=settings.openrouter_api_key, base_url=base_url)


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


_client: Any | None = None


def client() -> Any | None:
    """Get or create the shared OpenRouter client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client


def get_text_generator() -> TextGenerator:
    return TextGenerator(
        client(),
        model=get_model(),
        max_tokens=settings.generation_max_tokens,
        temperature=settings.generation_temperature,
        timeout=settings.generation_timeout_seconds,
    )
