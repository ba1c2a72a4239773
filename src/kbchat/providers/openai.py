"""
OpenAI LLM Provider.
"""

from typing import Any, AsyncIterator

from kbchat.exceptions import LLMError
from kbchat.providers.base import LLMProvider


class OpenAIProvider(LLMProvider):
    """
    LLM Provider for OpenAI-compatible chat completion APIs.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: Any = None
    ):
        self.api_key = api_key
        self.base_url = base_url
        self._client = client

    def _get_client(self):
        """Get or create OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError(
                    "openai package not installed. "
                    "Install with: pip install openai"
                )

            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url
            )
        return self._client

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.7,
        max_tokens: int = 2000,
        **kwargs: Any
    ) -> str:
        """Get a completion from OpenAI."""
        from openai import OpenAIError

        client = self._get_client()

        try:
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs
            )
        except OpenAIError as e:
            raise LLMError(f"Completion with '{model}' failed: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def stream(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.7,
        max_tokens: int = 2000,
        **kwargs: Any
    ) -> AsyncIterator[str]:
        """Stream a completion from OpenAI."""
        from openai import OpenAIError

        client = self._get_client()

        try:
            stream = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
                **kwargs
            )

            async for chunk in stream:
                delta = chunk.choices[0].delta if chunk.choices else None

                # Yield text content only
                if delta is not None and delta.content:
                    yield delta.content
        except OpenAIError as e:
            raise LLMError(f"Streaming completion with '{model}' failed: {e}") from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
