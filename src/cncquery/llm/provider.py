"""Generative-text provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cncquery.core.types import ConversationTurn


class TextGenerationProvider(ABC):
    """Interface for generative-text providers.

    Implementations raise ``ProviderError`` on failure, with
    ``transient=True`` for timeouts and connection problems so callers can
    decide whether a retry is worthwhile. They do not retry on their own.
    """

    @abstractmethod
    def generate_text(self, prompt: str, timeout: float | None = None) -> str:
        """Complete a single prompt.

        Args:
            prompt: Full prompt text.
            timeout: Seconds before the call is abandoned.

        Returns:
            Generated text.
        """
        ...

    @abstractmethod
    def chat(
        self,
        history: Sequence[ConversationTurn],
        message: str,
        timeout: float | None = None,
    ) -> str:
        """Continue a conversation.

        Args:
            history: Prior turns, oldest first.
            message: The new user message.
            timeout: Seconds before the call is abandoned.

        Returns:
            The assistant's reply.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""
        ...
