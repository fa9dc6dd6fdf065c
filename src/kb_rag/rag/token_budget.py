"""
Token budget management for RAG context assembly.

Token counts here are estimates from a fixed characters-per-token ratio, NOT
the output of a model tokenizer. They are good enough for budget planning and
must not be used for billing.
"""

import math
from typing import Dict, List, Optional, Sequence, TypeVar

from kb_rag.core.contracts import Chunk, TokenBudget

# English text is typically ~4 characters per token; Portuguese is similar.
CHARS_PER_TOKEN = 4

# Formatting overhead per assembled context (see estimate_context_overhead)
SEPARATOR_TOKENS = 8  # "\n\n---\n\n" between chunks
HEADER_TOKENS = 10  # "[Title (category)]\n" per chunk
SOURCES_TOKENS = 50  # sources section

DEFAULT_BUDGET_MODEL = "voyage-4-large"

DEFAULT_TOKEN_BUDGETS: Dict[str, TokenBudget] = {
    "voyage-4-large": TokenBudget(total=32000, system=1000, context=8000, response=4000, reserved=1000),
    "claude-opus-4": TokenBudget(total=200000, system=2000, context=16000, response=8000, reserved=2000),
    "claude-sonnet-4": TokenBudget(total=200000, system=2000, context=12000, response=6000, reserved=2000),
    "gpt-5": TokenBudget(total=128000, system=1500, context=10000, response=5000, reserved=1500),
}

C = TypeVar("C", bound=Chunk)


def estimate_tokens(text: Optional[str]) -> int:
    """
    Estimate token count for text.

    Args:
        text: Text to estimate (None or empty gives 0)

    Returns:
        ceil(len(text) / CHARS_PER_TOKEN)
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def get_token_budget(model: str, custom_total: Optional[int] = None) -> TokenBudget:
    """
    Get token budget for a model.

    Unknown models fall back to DEFAULT_BUDGET_MODEL. A custom total rescales
    every allocation with the profile's own ratios.

    Args:
        model: Model identifier
        custom_total: Optional custom total budget

    Returns:
        TokenBudget allocation
    """
    budget = DEFAULT_TOKEN_BUDGETS.get(model) or DEFAULT_TOKEN_BUDGETS[DEFAULT_BUDGET_MODEL]

    if custom_total:
        return TokenBudget(
            total=custom_total,
            system=budget.system * custom_total // budget.total,
            context=budget.context * custom_total // budget.total,
            response=budget.response * custom_total // budget.total,
            reserved=budget.reserved * custom_total // budget.total,
        )

    return budget


def get_available_context_tokens(budget: TokenBudget) -> int:
    """
    Tokens left for context once system prompt and response are reserved.

    The result can be zero or negative for a misconfigured budget; callers
    clamp it before using it as a packing ceiling.
    """
    return budget.total - budget.system - budget.response - budget.reserved


def estimate_context_overhead(chunk_count: int, include_sources: bool) -> int:
    """
    Estimate formatting overhead of an assembled context.

    Args:
        chunk_count: Number of chunks being assembled
        include_sources: Whether a sources section is included

    Returns:
        Estimated overhead tokens
    """
    overhead = max(0, chunk_count - 1) * SEPARATOR_TOKENS
    overhead += max(0, chunk_count) * HEADER_TOKENS
    if include_sources:
        overhead += SOURCES_TOKENS
    return overhead


def count_chunks_that_fit(chunks: Sequence[Chunk], max_tokens: int) -> int:
    """Number of leading chunks whose running token total stays within max_tokens."""
    total = 0
    count = 0
    for chunk in chunks:
        tokens = chunk.token_count()
        if total + tokens > max_tokens:
            break
        total += tokens
        count += 1
    return count


def select_chunks_within_budget(chunks: Sequence[C], max_tokens: int) -> List[C]:
    """
    Select the leading chunks that fit within a token budget.

    Greedy by input order: selection stops at the first chunk that would
    overflow the budget. A smaller chunk further down is not considered, which
    keeps score priority intact at the cost of some unused budget.

    Args:
        chunks: Chunks sorted by score (descending)
        max_tokens: Maximum tokens available (<= 0 selects nothing)

    Returns:
        Chunks that fit within budget
    """
    return list(chunks[: count_chunks_that_fit(chunks, max_tokens)])


def truncate_context_to_fit(context: str, max_tokens: int) -> str:
    """
    Truncate an already formatted context to a token limit.

    Cuts at the last chunk separator when one lies beyond 80% of the target
    length; otherwise cuts at the target length.
    """
    current_tokens = estimate_tokens(context)
    if current_tokens <= max_tokens:
        return context

    target_length = int(max(0, max_tokens) / current_tokens * len(context))

    separator = "\n\n---"
    boundary = context.rfind(separator, 0, target_length + len(separator))
    if boundary > target_length * 0.8:
        return context[:boundary].strip()

    return context[:target_length].strip()


def format_token_count(count: int) -> str:
    """Format a token count for display ("1.2k", "345")."""
    if count >= 1000:
        return f"{count / 1000:.1f}k"
    return str(count)
