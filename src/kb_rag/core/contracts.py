"""
Core data structures (dataclasses) for kb-rag.

All records that cross a stage boundary are defined here as explicit
dataclasses. Records handed between pipeline stages are frozen; stages build
new instances instead of mutating their inputs.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

RagCategory = Literal[
    "general",
    "products",
    "offers",
    "brand",
    "audience",
    "competitors",
    "content",
]

RAG_CATEGORIES: Tuple[str, ...] = (
    "general",
    "products",
    "offers",
    "brand",
    "audience",
    "competitors",
    "content",
)


@dataclass(frozen=True)
class Chunk:
    """
    A unit of retrieved text.

    chunk_index is the zero-based position of the chunk inside its document.
    start_position/end_position are character offsets into the source document
    when the ingestion pipeline recorded them.
    """

    text: str
    document_id: int  # not unique across users
    document_title: str
    chunk_index: int
    score: float  # similarity in [0, 1], higher is better
    category: str = "general"
    start_position: Optional[int] = None
    end_position: Optional[int] = None
    estimated_tokens: Optional[int] = None  # cache

    def token_count(self) -> int:
        """Cached token estimate, or estimate_tokens(text) when none was attached."""
        if self.estimated_tokens is not None:
            return self.estimated_tokens

        # token_budget imports this module
        from kb_rag.rag.token_budget import estimate_tokens

        return estimate_tokens(self.text)


@dataclass
class Source:
    """A document cited by an assembled context."""

    id: int
    title: str
    category: str
    score: float  # max score among contributing chunks
    chunk_count: int = 1


@dataclass(frozen=True)
class TokenBudget:
    """
    Token allocation for a target model.

    system + response + reserved <= total is expected but not enforced.
    """

    total: int
    system: int
    context: int
    response: int
    reserved: int


@dataclass
class ContextResult:
    """Output of a single context assembly call."""

    context: str
    sources: List[Source] = field(default_factory=list)
    tokens_used: int = 0
    chunks_included: int = 0
    truncated: bool = False

    @classmethod
    def empty(cls, truncated: bool = False) -> "ContextResult":
        return cls(context="", sources=[], tokens_used=0, chunks_included=0, truncated=truncated)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RelevanceFilterResult:
    """Outcome of validating one chunk against the filter criteria."""

    passed: bool
    reason: Optional[str] = None
    adjusted_score: Optional[float] = None


@dataclass(frozen=True)
class FilterOptions:
    """Relevance filter configuration."""

    min_score: float = 0.6
    max_chunks_per_document: int = 3  # 0 disables the cap
    min_chunk_length: int = 50  # characters
    deduplicate: bool = True
    deduplication_threshold: float = 0.95
    categories: Optional[Tuple[str, ...]] = None  # None or empty: all categories
    category_boosts: Optional[Mapping[str, float]] = None


@dataclass(frozen=True)
class ResolvedRagOptions:
    """RagContextOptions merged with DEFAULT_RAG_OPTIONS; built once per call."""

    categories: Optional[Tuple[str, ...]]
    document_ids: Optional[Tuple[int, ...]]
    threshold: float
    max_chunks: int
    max_tokens: int
    include_sources: bool
    hybrid: bool
    semantic_weight: float
    keyword_weight: float
    category_boosts: Optional[Mapping[str, float]] = None
    model: Optional[str] = None
    budget_total: Optional[int] = None


DEFAULT_RAG_OPTIONS = ResolvedRagOptions(
    categories=None,
    document_ids=None,
    threshold=0.6,
    max_chunks=10,
    max_tokens=4000,
    include_sources=True,
    hybrid=False,
    semantic_weight=0.7,
    keyword_weight=0.3,
)

# camelCase names accepted by RagContextOptions.from_dict
_OPTION_ALIASES = {
    "documentIds": "document_ids",
    "maxChunks": "max_chunks",
    "maxTokens": "max_tokens",
    "includeSources": "include_sources",
    "semanticWeight": "semantic_weight",
    "keywordWeight": "keyword_weight",
    "categoryBoosts": "category_boosts",
    "budgetTotal": "budget_total",
}


@dataclass(frozen=True)
class RagContextOptions:
    """
    Call-site options for context assembly.

    Every field is optional; None means "use the default from
    DEFAULT_RAG_OPTIONS".
    """

    categories: Optional[Tuple[str, ...]] = None
    document_ids: Optional[Tuple[int, ...]] = None
    threshold: Optional[float] = None
    max_chunks: Optional[int] = None
    max_tokens: Optional[int] = None
    include_sources: Optional[bool] = None
    hybrid: Optional[bool] = None
    semantic_weight: Optional[float] = None
    keyword_weight: Optional[float] = None
    category_boosts: Optional[Mapping[str, float]] = None
    model: Optional[str] = None  # token budget profile, see get_token_budget
    budget_total: Optional[int] = None

    def resolve(self, defaults: ResolvedRagOptions = DEFAULT_RAG_OPTIONS) -> ResolvedRagOptions:
        """Merge these options over the defaults."""
        merged = {}
        for f in fields(ResolvedRagOptions):
            value = getattr(self, f.name)
            merged[f.name] = getattr(defaults, f.name) if value is None else value

        if merged["categories"] is not None:
            merged["categories"] = tuple(merged["categories"])
        if merged["document_ids"] is not None:
            merged["document_ids"] = tuple(int(d) for d in merged["document_ids"])
        if merged["category_boosts"] is not None:
            merged["category_boosts"] = dict(merged["category_boosts"])

        return ResolvedRagOptions(**merged)

    def merged_with(self, overrides: "RagContextOptions") -> "RagContextOptions":
        """Return a copy where every non-None field of overrides wins."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for f in fields(overrides):
            value = getattr(overrides, f.name)
            if value is not None:
                values[f.name] = value
        return RagContextOptions(**values)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RagContextOptions":
        """
        Build options from a JSON-style mapping.

        Accepts snake_case field names and their camelCase equivalents.
        Unknown keys raise ValueError.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown RAG option: {key}")
            values[name] = value

        if values.get("categories") is not None:
            values["categories"] = tuple(values["categories"])
        if values.get("document_ids") is not None:
            try:
                values["document_ids"] = tuple(int(d) for d in values["document_ids"])
            except (TypeError, ValueError):
                raise ValueError(f"documentIds must be a list of integers, got {values['document_ids']!r}")

        return cls(**values)


@dataclass(frozen=True)
class SearchOptions:
    """Filters and limits passed to a search provider."""

    categories: Optional[Tuple[str, ...]] = None
    document_ids: Optional[Tuple[int, ...]] = None
    threshold: float = 0.7
    limit: int = 10
    semantic_weight: float = 0.7
    keyword_weight: float = 0.3


@dataclass(frozen=True)
class SearchHit:
    """One result row returned by a search provider."""

    text: str
    document_id: int
    document_title: str
    chunk_index: int
    score: float
    category: str = "general"
    start_position: Optional[int] = None
    end_position: Optional[int] = None


@dataclass
class DocumentMatch:
    """A document relevant to a query, scored by its best chunk."""

    id: int
    title: str
    category: str
    score: float


@dataclass
class RagStats:
    """Counts describing a user's RAG-ready corpus."""

    total_documents: int
    total_chunks: int
    documents_by_category: Dict[str, int] = field(default_factory=dict)
    has_embedded_documents: bool = False


@dataclass
class CorpusRecord:
    """One chunk row of a corpus snapshot."""

    user_id: str
    document_id: int
    document_title: str
    chunk_index: int
    text: str
    category: str = "general"
    start_position: Optional[int] = None
    end_position: Optional[int] = None
    embedded: bool = True
    deleted: bool = False
