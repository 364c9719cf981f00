"""Prompt templates that wrap retrieved context for the answering LLM.

The chat completion call itself lives outside this package; callers take
the messages built here and send them to whichever chat model they use.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from knowledge_rag.models import SearchResult

CONTEXT_SEPARATOR = "\n\n---\n\n"

DEFAULT_SYSTEM_PROMPT = """\
You are a helpful assistant with access to a knowledge base of documents.
Answer the user's question accurately, using the provided context first and
your general knowledge second.

## Instructions:

1. **Primary source**: prefer information from the provided context when it is relevant.
2. **Source attribution**: when you use the context, name the source document
   (e.g. "According to [document name]...").
3. **Honesty**: if the context does not contain the answer, say so before giving
   general guidance.
4. **Clarity**: structure longer answers with markdown headings or lists.

## Context format:
[CONTEXT FROM KNOWLEDGE BASE]
[Score: X.XXX] Content from document...

[USER QUESTION]
The user's actual question...
"""


def create_rag_prompt(context: str, user_query: str) -> str:
    """Wrap *user_query* with retrieved *context*.

    The query is returned unchanged when there is no context, so a chat
    without knowledge-base hits degrades to a plain conversation.
    """
    if not context.strip():
        return user_query

    return (
        "[CONTEXT FROM KNOWLEDGE BASE]\n"
        f"{context}\n\n"
        "[USER QUESTION]\n"
        f"{user_query}\n\n"
        "Answer the question using the context above and cite the source where relevant."
    )


def format_context_for_prompt(results: list[SearchResult]) -> str:
    """Render search results with a ``[Source: ... | Score: ...]`` header each."""
    if not results:
        return ""

    parts: list[str] = []
    for result in results:
        source = result.metadata.filename or "Unknown document"
        parts.append(f"[Source: {source} | Score: {result.score:.3f}]\n{result.content}")
    return CONTEXT_SEPARATOR.join(parts)


def build_chat_messages(
    context: str,
    user_query: str,
    *,
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
) -> list[BaseMessage]:
    """Return LangChain messages ready for a chat model's ``.invoke()``."""
    return [
        SystemMessage(content=system_prompt),
        HumanMessage(content=create_rag_prompt(context, user_query)),
    ]
