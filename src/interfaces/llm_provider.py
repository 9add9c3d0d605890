"""Abstract base class for chat-completion providers used by the chunker.

The chunker needs more than a string back: it has to tell a refusal from a
length-truncated answer from a normal one.  Providers therefore return an
:class:`LLMCompletion` and translate their SDK's transport errors into the
shared taxonomy in :mod:`src.utils.errors`; interpreting the *content* is
left to the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LLMCompletion:
    """Raw outcome of one structured completion call.

    Attributes
    ----------
    content:
        The message body, or ``None`` when the model produced none.
    refusal:
        The model's refusal text, when it declined the request.
    finish_reason:
        ``"stop"``, ``"length"``, ``"content_filter"`` ...
    model:
        The model that served the request.
    total_tokens:
        Usage reported by the provider, if any.
    """

    content: str | None
    refusal: str | None = None
    finish_reason: str | None = None
    model: str = ""
    total_tokens: int | None = None


# Concrete implementation: OpenAILLMProvider (src/providers/llm/)
class ILLMProvider(ABC):
    """Contract for LLM services that return schema-constrained JSON."""

    @abstractmethod
    async def complete_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        response_format: dict[str, Any],
        timeout: float | None = None,
    ) -> LLMCompletion:
        """Request a completion constrained to *response_format*.

        Parameters
        ----------
        system_prompt:
            Instruction message that sets the model's behaviour.
        user_prompt:
            The text to operate on.
        response_format:
            Provider-specific structured-output descriptor (for OpenAI a
            ``json_schema`` response format).
        timeout:
            Per-call timeout in seconds; provider default when ``None``.

        Returns
        -------
        LLMCompletion
            The unparsed response.

        Raises
        ------
        src.utils.errors.UpstreamTimeoutError
            If the call exceeded *timeout*.
        src.utils.errors.RateLimitError
            If the provider throttled the request.
        src.utils.errors.UpstreamTransientError
            On 5xx and connection failures.
        src.utils.errors.UpstreamPermanentError
            On authentication and other 4xx failures.
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier used for completions."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""
