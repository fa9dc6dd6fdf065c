"""
Core contracts, errors and logging for kb-rag.
"""

from kb_rag.core.contracts import (
    DEFAULT_RAG_OPTIONS,
    RAG_CATEGORIES,
    Chunk,
    ContextResult,
    CorpusRecord,
    DocumentMatch,
    FilterOptions,
    RagCategory,
    RagContextOptions,
    RagStats,
    RelevanceFilterResult,
    ResolvedRagOptions,
    SearchHit,
    SearchOptions,
    Source,
    TokenBudget,
)
from kb_rag.core.errors import CorpusFormatError, KbRagError, SearchResultError

__all__ = [
    "RAG_CATEGORIES",
    "RagCategory",
    "Chunk",
    "Source",
    "TokenBudget",
    "ContextResult",
    "RelevanceFilterResult",
    "FilterOptions",
    "RagContextOptions",
    "ResolvedRagOptions",
    "DEFAULT_RAG_OPTIONS",
    "SearchOptions",
    "SearchHit",
    "DocumentMatch",
    "RagStats",
    "CorpusRecord",
    "KbRagError",
    "SearchResultError",
    "CorpusFormatError",
]
