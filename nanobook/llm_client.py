"""OpenRouter model client with a uniform retry, backoff and timeout policy.

Every remote call in nanobook goes through `LLMClient.generate`. The client is
constructed explicitly and passed to agents, the coordinator, the author and
the image service; tests inject a fake transport in place of `AsyncOpenAI`.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Awaitable, Callable

import openai
from loguru import logger

from nanobook.config import settings
from nanobook.errors import LLMTimeoutError
from nanobook.services import logger as log_service

Sleep = Callable[[float], Awaitable[None]]

RETRYABLE_MESSAGE_HINTS = ("429", "rate limit", "resource exhausted", "overloaded")
FATAL_MESSAGE_HINTS = ("403", "permission", "api key", "unauthorized", "forbidden")


class ErrorKind(StrEnum):
    FATAL = "fatal"
    RETRYABLE = "retryable"


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class GenerationRequest:
    model: str
    contents: str | list[dict[str, Any]]
    system_instruction: str | None = None
    response_schema: dict[str, Any] | None = None
    schema_name: str = "response"
    web_search: bool = False
    modalities: list[str] | None = None
    image_config: dict[str, Any] | None = None
    thinking_budget: int | None = None
    max_tokens: int = 8192


@dataclass
class GenerationResponse:
    text: str = ""
    images: list[str] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _status_code(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def classify_error(exc: BaseException) -> ErrorKind:
    """Split remote failures into fatal (never retried) and retryable."""
    if isinstance(exc, (TimeoutError, openai.APIConnectionError)):
        return ErrorKind.RETRYABLE

    status = _status_code(exc)
    if status is not None:
        if status in (408, 429) or status >= 500:
            return ErrorKind.RETRYABLE
        if 400 <= status < 500:
            return ErrorKind.FATAL

    message = str(exc).lower()
    if any(hint in message for hint in RETRYABLE_MESSAGE_HINTS):
        return ErrorKind.RETRYABLE
    if any(hint in message for hint in FATAL_MESSAGE_HINTS):
        return ErrorKind.FATAL
    return ErrorKind.RETRYABLE


def build_completion_kwargs(request: GenerationRequest) -> dict[str, Any]:
    """Map a GenerationRequest onto chat-completions keyword arguments."""
    messages: list[dict[str, Any]] = []
    if request.system_instruction:
        messages.append({"role": "system", "content": request.system_instruction})
    messages.append({"role": "user", "content": request.contents})

    kwargs: dict[str, Any] = {
        "model": request.model,
        "messages": messages,
        "max_tokens": request.max_tokens,
    }
    if request.response_schema is not None:
        kwargs["response_format"] = {
            "type": "json_schema",
            "json_schema": {
                "name": request.schema_name,
                "schema": request.response_schema,
            },
        }

    extra_body: dict[str, Any] = {}
    if request.web_search:
        extra_body["plugins"] = [{"id": "web"}]
    if request.modalities:
        extra_body["modalities"] = list(request.modalities)
    if request.image_config:
        extra_body["image_config"] = dict(request.image_config)
    if request.thinking_budget is not None:
        extra_body["reasoning"] = {"max_tokens": request.thinking_budget}
    if extra_body:
        kwargs["extra_body"] = extra_body
    return kwargs


def _message_text(message: Any) -> str:
    content = _field(message, "content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [_field(part, "text") for part in content if _field(part, "type") in (None, "text")]
        return "\n".join(p for p in parts if isinstance(p, str))
    return ""


def _message_images(message: Any) -> list[str]:
    images = _field(message, "images")
    if images is None:
        extra = getattr(message, "model_extra", None) or {}
        images = extra.get("images")
    urls: list[str] = []
    for image in images or []:
        url = _field(_field(image, "image_url"), "url")
        if isinstance(url, str) and url:
            urls.append(url)
    return urls


def parse_completion(raw: Any) -> GenerationResponse:
    choices = _field(raw, "choices") or []
    message = _field(choices[0], "message") if choices else None
    usage = _field(raw, "usage")
    return GenerationResponse(
        text=_message_text(message),
        images=_message_images(message),
        usage=Usage(
            input_tokens=_field(usage, "prompt_tokens") or 0,
            output_tokens=_field(usage, "completion_tokens") or 0,
        ),
    )


def get_transport() -> openai.AsyncOpenAI:
    """Build the OpenRouter transport via the OpenAI-compatible SDK."""
    if not settings.openrouter_api_key:
        logger.warning(
            "OPENROUTER_API_KEY is not set. Remote model calls will fail until it is configured."
        )
    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    # Retries are owned by LLMClient.generate, not the SDK.
    return openai.AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
        max_retries=0,
    )


def get_model(override: str = "") -> str:
    """Return the per-role override when set, otherwise the default model."""
    if override and override.strip():
        return override.strip()
    return settings.default_model


class LLMClient:
    """Single choke point for remote generation calls.

    Retryable failures (429, 5xx, timeouts, connection errors) are retried with
    exponential backoff: `initial_delay_ms`, then doubled per attempt, for at
    most `max_retries` retries. Fatal failures (401/403, other 4xx) propagate
    on the first occurrence. Each attempt races against `timeout_ms`.
    """

    def __init__(
        self,
        transport: Any | None = None,
        *,
        max_retries: int | None = None,
        initial_delay_ms: int | None = None,
        timeout_ms: int | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.transport = transport if transport is not None else get_transport()
        self.max_retries = max(
            int(settings.llm_max_retries if max_retries is None else max_retries), 0
        )
        self.initial_delay_ms = max(
            int(settings.llm_initial_delay_ms if initial_delay_ms is None else initial_delay_ms), 0
        )
        self.timeout_ms = int(settings.llm_timeout_ms if timeout_ms is None else timeout_ms)
        self._sleep = sleep

    async def _call_once(self, request: GenerationRequest, timeout_ms: int) -> Any:
        call = self.transport.chat.completions.create(**build_completion_kwargs(request))
        if timeout_ms <= 0:
            return await call
        try:
            return await asyncio.wait_for(call, timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            raise LLMTimeoutError(request.model, timeout_ms) from exc

    async def generate(
        self,
        request: GenerationRequest,
        *,
        caller: str = "llm",
        max_retries: int | None = None,
        initial_delay_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> GenerationResponse:
        retries = self.max_retries if max_retries is None else max(int(max_retries), 0)
        delay_ms = self.initial_delay_ms if initial_delay_ms is None else int(initial_delay_ms)
        budget_ms = self.timeout_ms if timeout_ms is None else int(timeout_ms)

        attempt = 0
        while True:
            attempt += 1
            t0 = time.monotonic()
            try:
                raw = await self._call_once(request, budget_ms)
            except Exception as exc:
                elapsed_ms = int((time.monotonic() - t0) * 1000)
                kind = classify_error(exc)
                log_service.log_llm_call(
                    model=request.model,
                    caller=caller,
                    duration_ms=elapsed_ms,
                    status=kind.value,
                    error=str(exc) or type(exc).__name__,
                )
                if kind is ErrorKind.FATAL or attempt > retries:
                    raise
                log_service.log_llm_retry(
                    model=request.model,
                    caller=caller,
                    attempt=attempt,
                    delay_ms=delay_ms,
                    error=str(exc) or type(exc).__name__,
                )
                await self._sleep(delay_ms / 1000)
                delay_ms *= 2
                continue

            response = parse_completion(raw)
            log_service.log_llm_call(
                model=request.model,
                caller=caller,
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            return response
