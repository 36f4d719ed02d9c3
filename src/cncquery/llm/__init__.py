"""Generative-text providers.

Example:
    >>> from cncquery.llm import get_provider
    >>> provider = get_provider("openai", model="gpt-4o-mini")
    >>> provider.generate_text("SELECT or not?", timeout=10)
"""

from cncquery.llm.provider import TextGenerationProvider

__all__ = [
    "TextGenerationProvider",
    "get_provider",
]


def get_provider(
    provider: str | TextGenerationProvider = "openai",
    **kwargs: object,
) -> TextGenerationProvider:
    """Get a text provider by name or return the provider if already instantiated.

    Args:
        provider: Provider name ("openai") or TextGenerationProvider instance.
        **kwargs: Additional arguments passed to the provider constructor.

    Returns:
        TextGenerationProvider instance.

    Raises:
        ValueError: If provider name is unknown.
        ImportError: If required dependencies are not installed.
    """
    if isinstance(provider, TextGenerationProvider):
        return provider

    if provider == "openai":
        from cncquery.llm.openai import OpenAIProvider

        return OpenAIProvider(**kwargs)  # type: ignore[arg-type]
    raise ValueError(f"Unknown text provider: {provider}. Available: 'openai'")
