"""
Base LLM Provider interface.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator


class LLMProvider(ABC):
    """
    Abstract base class for chat completion providers.
    """

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        **kwargs: Any
    ) -> str:
        """
        Get a completion from the LLM.

        Args:
            messages: List of messages in API format
            model: Model identifier
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional provider-specific options

        Returns:
            The generated text
        """
        pass

    @abstractmethod
    def stream(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        **kwargs: Any
    ) -> AsyncIterator[str]:
        """
        Stream a completion from the LLM.

        Args:
            messages: List of messages in API format
            model: Model identifier
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional provider-specific options

        Yields:
            Non-empty text fragments
        """
        pass

    async def close(self) -> None:
        """Release the underlying client."""
        pass


def chat_messages(system_prompt: str, query: str) -> list[dict[str, Any]]:
    """Build the system + user message pair sent to the provider."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": query},
    ]
