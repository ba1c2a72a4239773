"""
LLM providers for kbchat.
"""

from kbchat.providers.base import LLMProvider, chat_messages
from kbchat.providers.openai import OpenAIProvider

__all__ = [
    "LLMProvider",
    "OpenAIProvider",
    "chat_messages",
]
