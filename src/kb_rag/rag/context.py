"""
Context assembly for RAG.

Turns a query into a token-bounded, cited context string:

    search -> filter / per-document cap / dedupe -> diversify -> pack -> format

Everything after the provider call is a pure transformation of small lists.
"""

from typing import Dict, List, Optional, Sequence

from kb_rag.core.contracts import (
    Chunk,
    ContextResult,
    DocumentMatch,
    FilterOptions,
    RagContextOptions,
    ResolvedRagOptions,
    SearchHit,
    SearchOptions,
    Source,
)
from kb_rag.core.logger import get_logger
from kb_rag.rag.filters import diversify_chunks, filter_by_relevance
from kb_rag.rag.token_budget import (
    estimate_context_overhead,
    estimate_tokens,
    get_available_context_tokens,
    get_token_budget,
    select_chunks_within_budget,
)
from kb_rag.search.provider import HitLike, SearchProvider, coerce_hit

logger = get_logger(__name__)

CHUNK_SEPARATOR = "\n\n---\n\n"

# Fixed pipeline parameters
MAX_CHUNKS_PER_DOCUMENT = 3
MIN_DIVERSE_DOCUMENTS = 3
CANDIDATE_MULTIPLIER = 2  # candidates requested per chunk wanted
DEDUPLICATION_THRESHOLD = 0.95


def chunk_from_hit(hit: HitLike) -> Chunk:
    """
    Convert a provider hit into a Chunk with its token estimate attached.

    Raises:
        SearchResultError: malformed hit
    """
    hit = coerce_hit(hit)
    return Chunk(
        text=hit.text,
        document_id=hit.document_id,
        document_title=hit.document_title,
        chunk_index=hit.chunk_index,
        score=hit.score,
        category=hit.category,
        start_position=hit.start_position,
        end_position=hit.end_position,
        estimated_tokens=estimate_tokens(hit.text),
    )


def format_chunk(chunk: Chunk) -> str:
    """Render one chunk as "[title (category)]" followed by its text."""
    return f"[{chunk.document_title} ({chunk.category})]\n{chunk.text}"


def format_context(chunks: Sequence[Chunk]) -> str:
    """Join formatted chunks with CHUNK_SEPARATOR."""
    return CHUNK_SEPARATOR.join(format_chunk(chunk) for chunk in chunks)


def assemble_sources(chunks: Sequence[Chunk], include_sources: bool = True) -> List[Source]:
    """
    Group chunks by document for citation.

    Args:
        chunks: Selected chunks
        include_sources: Whether to build sources at all

    Returns:
        One Source per document (score = best chunk score), sorted by score
        descending
    """
    if not include_sources or not chunks:
        return []

    by_document: Dict[int, Source] = {}
    for chunk in chunks:
        source = by_document.get(chunk.document_id)
        if source is None:
            by_document[chunk.document_id] = Source(
                id=chunk.document_id,
                title=chunk.document_title,
                category=chunk.category,
                score=chunk.score,
                chunk_count=1,
            )
        else:
            source.chunk_count += 1
            source.score = max(source.score, chunk.score)

    return sorted(by_document.values(), key=lambda source: source.score, reverse=True)


def _search_options(opts: ResolvedRagOptions, limit: int) -> SearchOptions:
    return SearchOptions(
        categories=opts.categories,
        document_ids=opts.document_ids,
        threshold=opts.threshold,
        limit=limit,
        semantic_weight=opts.semantic_weight,
        keyword_weight=opts.keyword_weight,
    )


class ContextAssembler:
    """
    Assembles RAG context from a search provider's results.

    Holds no per-call state; one instance can serve concurrent requests.
    """

    def __init__(self, provider: SearchProvider):
        """
        Initialize assembler.

        Args:
            provider: Upstream search provider
        """
        self.provider = provider

    def search(self, user_id: str, query: str, opts: ResolvedRagOptions) -> List[Chunk]:
        """
        Fetch candidate chunks (2 x max_chunks) from the provider.

        Provider errors propagate unchanged.
        """
        search_options = _search_options(opts, limit=opts.max_chunks * CANDIDATE_MULTIPLIER)
        if opts.hybrid:
            hits = self.provider.hybrid_search(user_id, query, search_options)
        else:
            hits = self.provider.search(user_id, query, search_options)
        return [chunk_from_hit(hit) for hit in hits]

    def packing_ceiling(self, opts: ResolvedRagOptions) -> int:
        """Token ceiling for the context: max_tokens, capped by the model budget if set."""
        if opts.model is None:
            return opts.max_tokens

        budget = get_token_budget(opts.model, opts.budget_total)
        available = max(0, get_available_context_tokens(budget))
        return min(opts.max_tokens, available)

    def assemble(
        self, user_id: str, query: str, options: Optional[RagContextOptions] = None
    ) -> ContextResult:
        """
        Assemble RAG context for a query.

        Args:
            user_id: User whose documents are searched
            query: Search query
            options: Call-site options (defaults from DEFAULT_RAG_OPTIONS)

        Returns:
            ContextResult; empty when nothing matches
        """
        opts = (options or RagContextOptions()).resolve()

        chunks = self.search(user_id, query, opts)
        if not chunks:
            logger.info("No RAG candidates for user %s", user_id)
            return ContextResult.empty()

        filtered = filter_by_relevance(
            chunks,
            FilterOptions(
                min_score=opts.threshold,
                max_chunks_per_document=MAX_CHUNKS_PER_DOCUMENT,
                deduplicate=True,
                deduplication_threshold=DEDUPLICATION_THRESHOLD,
                categories=opts.categories,
                category_boosts=opts.category_boosts,
            ),
        )
        diversified = diversify_chunks(filtered, min(MIN_DIVERSE_DOCUMENTS, len(filtered)))

        ceiling = self.packing_ceiling(opts)
        if ceiling <= 0:
            logger.warning(
                "Token budget leaves no room for context (max_tokens=%d, model=%s)",
                opts.max_tokens,
                opts.model,
            )
            return ContextResult.empty(truncated=True)

        overhead = estimate_context_overhead(
            min(opts.max_chunks, len(diversified)), opts.include_sources
        )
        selected = select_chunks_within_budget(diversified, ceiling - overhead)

        context = format_context(selected)
        # Headers longer than the overhead estimate can still overflow.
        while selected and estimate_tokens(context) > ceiling:
            selected = selected[:-1]
            context = format_context(selected)

        logger.debug(
            "RAG pipeline: %d candidates, %d filtered, %d diversified, %d selected",
            len(chunks),
            len(filtered),
            len(diversified),
            len(selected),
        )

        return ContextResult(
            context=context,
            sources=assemble_sources(selected, opts.include_sources),
            tokens_used=estimate_tokens(context),
            chunks_included=len(selected),
            truncated=len(selected) < len(diversified),
        )

    def relevant_documents(
        self, user_id: str, query: str, options: Optional[RagContextOptions] = None
    ) -> List[DocumentMatch]:
        """
        Documents matching a query, each scored by its best chunk.

        Lighter than assemble(): one semantic search of max_chunks hits,
        no filtering or packing.
        """
        opts = (options or RagContextOptions()).resolve()
        hits: List[SearchHit] = [
            coerce_hit(hit)
            for hit in self.provider.search(user_id, query, _search_options(opts, opts.max_chunks))
        ]

        by_document: Dict[int, DocumentMatch] = {}
        for hit in hits:
            existing = by_document.get(hit.document_id)
            if existing is None or hit.score > existing.score:
                by_document[hit.document_id] = DocumentMatch(
                    id=hit.document_id,
                    title=hit.document_title,
                    category=hit.category,
                    score=hit.score,
                )

        return sorted(by_document.values(), key=lambda match: match.score, reverse=True)


def assemble_rag_context(
    provider: SearchProvider,
    user_id: str,
    query: str,
    options: Optional[RagContextOptions] = None,
) -> ContextResult:
    """
    Assemble RAG context for a query (functional form of ContextAssembler).

    Example:
        >>> result = assemble_rag_context(
        ...     provider, user_id, "What is our brand voice?",
        ...     RagContextOptions(categories=("brand",), max_tokens=3000),
        ... )
    """
    return ContextAssembler(provider).assemble(user_id, query, options)


def get_relevant_documents(
    provider: SearchProvider,
    user_id: str,
    query: str,
    options: Optional[RagContextOptions] = None,
) -> List[DocumentMatch]:
    """Documents relevant to a query, best first (useful for UI previews)."""
    return ContextAssembler(provider).relevant_documents(user_id, query, options)


def assemble_context_or_none(
    provider: SearchProvider,
    user_id: str,
    query: str,
    options: Optional[RagContextOptions] = None,
) -> Optional[ContextResult]:
    """
    Assemble context for a generation job that must not fail because of RAG.

    Returns None when assembly raises (the error is logged) or when no chunk
    made it into the context; callers then generate without RAG context.
    """
    try:
        result = assemble_rag_context(provider, user_id, query, options)
    except Exception:
        logger.exception("RAG context assembly failed for user %s", user_id)
        return None

    if not result.context or result.chunks_included == 0:
        return None
    return result
