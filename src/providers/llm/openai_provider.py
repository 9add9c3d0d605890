"""OpenAI-compatible chat-completion adapter for schema-constrained chunking.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
When ``openai_base_url`` is configured the client talks to that endpoint
instead (any OpenAI-compatible API that supports ``json_schema`` response
formats will do).

SDK exceptions are translated into the shared taxonomy by
:func:`map_openai_error`, which the embedding adapter reuses:

    APITimeoutError          -> UpstreamTimeoutError    (retryable)
    RateLimitError (429)     -> RateLimitError          (retryable, retry-after)
    AuthenticationError      -> AuthenticationError     (permanent)
    APIConnectionError       -> UpstreamTransientError  (retryable)
    APIStatusError 5xx       -> UpstreamTransientError  (retryable)
    APIStatusError 4xx       -> UpstreamPermanentError  (permanent)
"""

from __future__ import annotations

from typing import Any

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider, LLMCompletion
from src.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    KMSError,
    RateLimitError,
    UpstreamPermanentError,
    UpstreamTimeoutError,
    UpstreamTransientError,
)

logger = structlog.get_logger(logger_name=__name__)


def _retry_after(exc: openai.APIStatusError) -> float | None:
    headers = getattr(exc.response, "headers", None) or {}
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def map_openai_error(exc: openai.OpenAIError, provider_name: str, model: str) -> KMSError:
    """Translate an ``openai`` SDK exception into the service taxonomy."""
    context = {"model": model}

    # APITimeoutError subclasses APIConnectionError; check it first.
    if isinstance(exc, openai.APITimeoutError):
        return UpstreamTimeoutError(
            message=f"{provider_name} request timed out",
            provider_name=provider_name,
            context=context,
        )
    if isinstance(exc, openai.RateLimitError):
        return RateLimitError(
            message=f"{provider_name} rate limit exceeded",
            provider_name=provider_name,
            retry_after=_retry_after(exc),
            context=context,
        )
    if isinstance(exc, openai.AuthenticationError):
        return AuthenticationError(
            message=f"{provider_name} rejected the API key",
            provider_name=provider_name,
            context=context,
        )
    if isinstance(exc, openai.APIConnectionError):
        return UpstreamTransientError(
            message=f"{provider_name} connection error: {exc}",
            provider_name=provider_name,
            context=context,
        )
    if isinstance(exc, openai.APIStatusError):
        context["status_code"] = exc.status_code
        if exc.status_code >= 500:
            return UpstreamTransientError(
                message=f"{provider_name} server error: {exc.status_code}",
                provider_name=provider_name,
                context=context,
            )
        return UpstreamPermanentError(
            message=f"{provider_name} API error: {exc.status_code}",
            provider_name=provider_name,
            context=context,
        )
    return UpstreamPermanentError(
        message=f"{provider_name} API error: {exc}",
        provider_name=provider_name,
        context=context,
    )


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat-completions API.

    The SDK's own retries are disabled (``max_retries=0``); retry policy is
    owned by the chunker so attempts are counted and logged in one place.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._model = settings.chunking_model
        self._default_timeout = settings.chunking_timeout

        client_kwargs: dict[str, Any] = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(self._default_timeout, connect=5.0),
            "max_retries": 0,
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        # No key: stay constructible so the app can start; calls then fail fast.
        self._client = openai.AsyncOpenAI(**client_kwargs) if self._api_key else None
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        response_format: dict[str, Any],
        timeout: float | None = None,
    ) -> LLMCompletion:
        if self._client is None:
            raise ConfigurationError("OPENAI_API_KEY is not configured", provider_name=self._provider_label)
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format=response_format,
                timeout=timeout or self._default_timeout,
            )
        except openai.OpenAIError as exc:
            raise map_openai_error(exc, self._provider_label, self._model) from exc

        if not response.choices:
            return LLMCompletion(content=None, model=response.model or self._model)

        choice = response.choices[0]
        total_tokens = response.usage.total_tokens if response.usage else None
        logger.info(
            "openai_completion",
            model=self._model,
            provider=self._provider_label,
            finish_reason=choice.finish_reason,
            tokens=total_tokens,
        )
        return LLMCompletion(
            content=choice.message.content,
            refusal=getattr(choice.message, "refusal", None),
            finish_reason=choice.finish_reason,
            model=response.model or self._model,
            total_tokens=total_tokens,
        )

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        """Return 'openai' or 'openai-compatible' depending on configuration."""
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)
