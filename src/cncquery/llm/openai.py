"""OpenAI chat-completions provider."""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from cncquery.exceptions import ProviderError
from cncquery.llm.provider import TextGenerationProvider

if TYPE_CHECKING:
    from openai import OpenAI

    from cncquery.core.types import ConversationTurn


class OpenAIProvider(TextGenerationProvider):
    """OpenAI API text provider.

    Example:
        >>> provider = OpenAIProvider()  # Uses OPENAI_API_KEY env var
        >>> provider.generate_text("Say hi", timeout=10)
        'Hi!'
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        temperature: float = 0.0,
    ) -> None:
        """Initialize OpenAI provider.

        Args:
            model: Model name. Defaults to gpt-4o-mini.
            api_key: OpenAI API key. Falls back to OPENAI_API_KEY env var.
            temperature: Sampling temperature. Defaults to 0 for stable SQL.
        """
        try:
            from openai import OpenAI
        except ImportError as e:
            raise ImportError(
                "openai is required for the OpenAI provider. Install it with: pip install openai"
            ) from e

        api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ValueError(
                "No OpenAI API key: set OPENAI_API_KEY or pass api_key. "
                "SQL-only commands (validate, score, sanitize) work without one."
            )

        # Retries belong to the caller, which knows which failures are worth it
        self._client: OpenAI = OpenAI(api_key=api_key, max_retries=0)
        self._model = model
        self._temperature = temperature

    def generate_text(self, prompt: str, timeout: float | None = None) -> str:
        return self._complete([{"role": "user", "content": prompt}], timeout)

    def chat(
        self,
        history: Sequence[ConversationTurn],
        message: str,
        timeout: float | None = None,
    ) -> str:
        messages = [{"role": turn.role, "content": turn.content} for turn in history]
        messages.append({"role": "user", "content": message})
        return self._complete(messages, timeout)

    @property
    def model_name(self) -> str:
        return self._model

    def _complete(self, messages: list[dict[str, Any]], timeout: float | None) -> str:
        import openai

        client = self._client.with_options(timeout=timeout) if timeout else self._client
        try:
            response = client.chat.completions.create(
                model=self._model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self._temperature,
            )
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            raise ProviderError(f"OpenAI request failed: {e}", transient=True) from e
        except (openai.RateLimitError, openai.InternalServerError) as e:
            raise ProviderError(
                f"OpenAI request failed: {e}", transient=True, context={"status": e.status_code}
            ) from e
        except openai.OpenAIError as e:
            raise ProviderError(f"OpenAI request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderError("OpenAI returned an empty completion")
        return content
