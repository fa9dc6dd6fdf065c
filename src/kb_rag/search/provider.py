"""
Search provider contract.

The embedding/vector search that produces candidate chunks lives outside this
package. Anything implementing SearchProvider can feed the context assembler;
provider output is validated here (coerce_hit) before the assembler turns it
into Chunk records.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Protocol, Union

from kb_rag.core.contracts import RAG_CATEGORIES, SearchHit, SearchOptions
from kb_rag.core.errors import SearchResultError
from kb_rag.search.hybrid import combine_hybrid_scores

HitLike = Union[SearchHit, Mapping[str, Any]]

# camelCase keys accepted from JSON providers
_HIT_ALIASES = {
    "documentId": "document_id",
    "documentTitle": "document_title",
    "chunkIndex": "chunk_index",
    "startPosition": "start_position",
    "endPosition": "end_position",
}

_REQUIRED_HIT_FIELDS = ("text", "document_id", "document_title", "score")


class SearchProvider(Protocol):
    """Upstream search collaborator."""

    def search(self, user_id: str, query: str, options: SearchOptions) -> List[SearchHit]:
        """Semantic search; hits sorted by score descending."""
        ...

    def hybrid_search(self, user_id: str, query: str, options: SearchOptions) -> List[SearchHit]:
        """Semantic + keyword search; hits sorted by combined score descending."""
        ...


class BaseSearchProvider(ABC):
    """
    Base class for providers that only implement semantic search.

    hybrid_search re-scores the semantic hits with keyword overlap.
    """

    @abstractmethod
    def search(self, user_id: str, query: str, options: SearchOptions) -> List[SearchHit]:
        """Semantic search; hits sorted by score descending."""

    def hybrid_search(self, user_id: str, query: str, options: SearchOptions) -> List[SearchHit]:
        hits = self.search(user_id, query, options)
        return combine_hybrid_scores(
            hits,
            query,
            semantic_weight=options.semantic_weight,
            keyword_weight=options.keyword_weight,
        )


def _optional_int(value: Any, name: str) -> Any:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SearchResultError(f"Search hit field '{name}' must be an integer, got {value!r}")


def hit_from_mapping(data: Mapping[str, Any]) -> SearchHit:
    """
    Build a SearchHit from a provider row.

    Accepts snake_case or camelCase keys and ignores unknown keys. A missing
    category becomes "general" and a missing chunk index becomes 0.

    Raises:
        SearchResultError: required field missing or value of the wrong type
    """
    row = {_HIT_ALIASES.get(key, key): value for key, value in data.items()}

    missing = [name for name in _REQUIRED_HIT_FIELDS if row.get(name) is None]
    if missing:
        raise SearchResultError(f"Search hit missing required field(s): {', '.join(missing)}")

    try:
        score = float(row["score"])
    except (TypeError, ValueError):
        raise SearchResultError(f"Search hit score must be a number, got {row['score']!r}")

    return SearchHit(
        text=str(row["text"]),
        document_id=_optional_int(row["document_id"], "document_id"),
        document_title=str(row["document_title"]),
        chunk_index=_optional_int(row.get("chunk_index"), "chunk_index") or 0,
        score=score,
        category=row.get("category") or "general",
        start_position=_optional_int(row.get("start_position"), "start_position"),
        end_position=_optional_int(row.get("end_position"), "end_position"),
    )


def coerce_hit(hit: HitLike) -> SearchHit:
    """
    Validate a provider hit, converting mappings to SearchHit.

    Raises:
        SearchResultError: malformed hit, unknown category or negative chunk index
    """
    if not isinstance(hit, SearchHit):
        hit = hit_from_mapping(hit)

    if hit.category not in RAG_CATEGORIES:
        raise SearchResultError(f"Unknown category '{hit.category}' for document {hit.document_id}")
    if hit.chunk_index < 0:
        raise SearchResultError(f"Negative chunk index {hit.chunk_index} for document {hit.document_id}")

    return hit
