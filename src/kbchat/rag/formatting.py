"""Prompt context formatting."""

from .document import SearchResult

GROUNDED_SYSTEM_PROMPT = """You are a helpful assistant. Answer the user's question based on the following knowledge base content. If the knowledge base does not contain the relevant information, say honestly that you don't know.

Knowledge base content:
{context}

Answer concisely and accurately."""

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant. Answer the user's question in a professional and accurate way."


def format_context(results: list[SearchResult]) -> str:
    """Join result contents, in ranked order, into a context block."""
    return "\n\n".join(result.content for result in results)


def build_system_prompt(context: str = "") -> str:
    """Build the system prompt, grounding it on the context when there is one."""
    if context:
        return GROUNDED_SYSTEM_PROMPT.format(context=context)
    return DEFAULT_SYSTEM_PROMPT
