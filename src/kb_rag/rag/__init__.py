"""
RAG context assembly: token budgets, relevance filters, assembler and prompts.
"""

from kb_rag.rag.context import (
    ContextAssembler,
    assemble_context_or_none,
    assemble_rag_context,
    assemble_sources,
    chunk_from_hit,
    format_context,
    get_relevant_documents,
)
from kb_rag.rag.filters import (
    apply_relevance_criteria,
    boost_by_recency,
    calculate_text_similarity,
    deduplicate_chunks,
    diversify_chunks,
    filter_by_relevance,
    limit_chunks_per_document,
    validate_chunk,
)
from kb_rag.rag.prompt import build_rag_prompt, format_rag_for_prompt
from kb_rag.rag.token_budget import (
    DEFAULT_TOKEN_BUDGETS,
    count_chunks_that_fit,
    estimate_context_overhead,
    estimate_tokens,
    format_token_count,
    get_available_context_tokens,
    get_token_budget,
    select_chunks_within_budget,
    truncate_context_to_fit,
)

__all__ = [
    "ContextAssembler",
    "assemble_rag_context",
    "assemble_context_or_none",
    "get_relevant_documents",
    "assemble_sources",
    "chunk_from_hit",
    "format_context",
    "apply_relevance_criteria",
    "filter_by_relevance",
    "validate_chunk",
    "limit_chunks_per_document",
    "deduplicate_chunks",
    "calculate_text_similarity",
    "diversify_chunks",
    "boost_by_recency",
    "build_rag_prompt",
    "format_rag_for_prompt",
    "DEFAULT_TOKEN_BUDGETS",
    "estimate_tokens",
    "get_token_budget",
    "get_available_context_tokens",
    "estimate_context_overhead",
    "count_chunks_that_fit",
    "select_chunks_within_budget",
    "truncate_context_to_fit",
    "format_token_count",
]
