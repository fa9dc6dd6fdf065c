"""
Prompt templates that wrap an assembled RAG context.

Formatting only; ranking happens in kb_rag.rag.context.
"""

from typing import List, Optional, Sequence

from kb_rag.core.contracts import ContextResult, Source

NO_CONTEXT_PLACEHOLDER = "(No relevant context found)"

BANNER = "=" * 63


def build_rag_prompt(context: str, query: str, sources: Sequence[Source] = ()) -> str:
    """
    Build the prompt segment handed verbatim to the LLM layer.

    Args:
        context: Assembled context (may be empty)
        query: Original query
        sources: Sources to cite

    Returns:
        Prompt string
    """
    parts: List[str] = [
        "Use the following context from the user's documents to answer their query."
    ]

    if sources:
        parts.append(
            "Cite your sources using the document titles provided. "
            f"The following {len(sources)} document(s) were used:"
        )
        for source in sources:
            parts.append(f"  - {source.title} ({source.category})")

    parts.extend(
        [
            "",
            "**Context**",
            "---",
            context or NO_CONTEXT_PLACEHOLDER,
            "---",
            "",
            "**Query**",
            query,
        ]
    )

    return "\n".join(parts)


def format_rag_for_prompt(result: Optional[ContextResult]) -> str:
    """
    Render a context as a framed knowledge-base block for generation prompts.

    Returns an empty string when there is no context, so callers can
    concatenate unconditionally.
    """
    if result is None or not result.context:
        return ""

    parts = [BANNER, "ADDITIONAL CONTEXT (Knowledge Base)", BANNER, ""]

    if result.sources:
        parts.append("Sources used:")
        parts.extend(f"  - {source.title}" for source in result.sources)
        parts.append("")

    parts.extend([result.context, "", BANNER])

    return "\n".join(parts)
