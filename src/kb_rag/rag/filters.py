"""
Relevance filters for RAG context assembly.

Every function takes chunks sorted by score (descending) and returns a new
list; inputs are never mutated.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence

from kb_rag.core.contracts import Chunk, FilterOptions, RelevanceFilterResult
from kb_rag.search.tokenizer import significant_words

DEFAULT_FILTERS = FilterOptions()

SECONDS_PER_DAY = 24 * 60 * 60


def apply_relevance_criteria(
    chunks: Sequence[Chunk], options: FilterOptions = DEFAULT_FILTERS
) -> List[Chunk]:
    """
    Drop chunks below the score/length thresholds or outside the categories,
    then apply category boosts.

    Boosting changes scores, so the result is re-sorted by score (descending,
    stable for ties).

    Args:
        chunks: Chunks to filter
        options: Filter options

    Returns:
        Filtered chunks
    """
    filtered = [
        chunk
        for chunk in chunks
        if chunk.score >= options.min_score and len(chunk.text) >= options.min_chunk_length
    ]

    if options.categories:
        allowed = set(options.categories)
        filtered = [chunk for chunk in filtered if chunk.category in allowed]

    if options.category_boosts:
        boosts = options.category_boosts
        filtered = [
            replace(chunk, score=min(1.0, chunk.score * boosts.get(chunk.category, 1.0)))
            for chunk in filtered
        ]
        filtered.sort(key=lambda chunk: chunk.score, reverse=True)

    return filtered


def filter_by_relevance(
    chunks: Sequence[Chunk], options: FilterOptions = DEFAULT_FILTERS
) -> List[Chunk]:
    """
    Full relevance filter: criteria, per-document cap, then deduplication.

    Args:
        chunks: Chunks sorted by score (descending)
        options: Filter options

    Returns:
        Filtered chunks, still sorted by score
    """
    filtered = apply_relevance_criteria(chunks, options)

    if options.max_chunks_per_document > 0:
        filtered = limit_chunks_per_document(filtered, options.max_chunks_per_document)

    if options.deduplicate:
        filtered = deduplicate_chunks(filtered, options.deduplication_threshold)

    return filtered


def limit_chunks_per_document(chunks: Sequence[Chunk], max_per_document: int) -> List[Chunk]:
    """
    Keep at most max_per_document chunks per document.

    Documents appear in first-seen order, each followed by its retained
    chunks in score order.
    """
    by_document: Dict[int, List[Chunk]] = {}
    for chunk in chunks:
        kept = by_document.setdefault(chunk.document_id, [])
        if len(kept) < max_per_document:
            kept.append(chunk)

    result: List[Chunk] = []
    for kept in by_document.values():
        result.extend(kept)
    return result


def calculate_text_similarity(text1: str, text2: str) -> float:
    """
    Jaccard similarity of the significant word sets of two texts.

    Two texts without significant words are identical (1.0); if only one
    is empty the similarity is 0.0.

    Example:
        >>> calculate_text_similarity("hello world", "hello world again")
        0.6666666666666666
    """
    words1 = significant_words(text1)
    words2 = significant_words(text2)

    if not words1 and not words2:
        return 1.0
    if not words1 or not words2:
        return 0.0

    return len(words1 & words2) / len(words1 | words2)


def deduplicate_chunks(chunks: Sequence[Chunk], threshold: float) -> List[Chunk]:
    """
    Remove chunks nearly identical to a higher-scored chunk.

    A chunk is dropped when its similarity to ANY already accepted chunk is
    >= threshold. Pairwise comparison is O(n^2); candidate lists are tens of
    chunks. Switch to locality-sensitive hashing before feeding hundreds.

    Args:
        chunks: Chunks sorted by score (descending)
        threshold: Similarity at or above which a chunk is a duplicate

    Returns:
        Deduplicated chunks
    """
    if len(chunks) <= 1:
        return list(chunks)

    unique: List[Chunk] = []
    for chunk in chunks:
        if any(calculate_text_similarity(chunk.text, kept.text) >= threshold for kept in unique):
            continue
        unique.append(chunk)

    return unique


def validate_chunk(
    chunk: Chunk, options: FilterOptions = DEFAULT_FILTERS
) -> RelevanceFilterResult:
    """
    Check one chunk against the filter criteria.

    Reports the first failing criterion, checked in the order
    score, length, category.
    """
    if chunk.score < options.min_score:
        return RelevanceFilterResult(
            passed=False,
            reason=f"Score {chunk.score:.2f} below threshold {options.min_score}",
        )

    if len(chunk.text) < options.min_chunk_length:
        return RelevanceFilterResult(
            passed=False,
            reason=f"Chunk length {len(chunk.text)} below minimum {options.min_chunk_length}",
        )

    if options.categories and chunk.category not in options.categories:
        return RelevanceFilterResult(
            passed=False,
            reason=f"Category '{chunk.category}' not in allowed categories",
        )

    adjusted_score = None
    if options.category_boosts and chunk.category in options.category_boosts:
        adjusted_score = min(1.0, chunk.score * options.category_boosts[chunk.category])

    return RelevanceFilterResult(passed=True, adjusted_score=adjusted_score)


def boost_by_recency(
    chunks: Sequence[Chunk],
    last_embedded_at: Mapping[int, datetime],
    decay_factor: float = 0.01,
    now: Optional[datetime] = None,
) -> List[Chunk]:
    """
    Scale scores down for documents that have not been re-embedded recently.

    The multiplier is 1 - days_since_embedding * decay_factor, floored at
    0.5; scores stay capped at 1.0. Order is left untouched.

    Args:
        chunks: Chunks to boost
        last_embedded_at: Document ID -> last embedding time (aware datetimes)
        decay_factor: Decay per day (0.01 = 1% per day)
        now: Reference time (defaults to the current UTC time)

    Returns:
        Chunks with adjusted scores
    """
    now = now or datetime.now(timezone.utc)

    boosted = []
    for chunk in chunks:
        embedded_at = last_embedded_at.get(chunk.document_id)
        if embedded_at is None:
            boosted.append(chunk)
            continue

        days_since = (now - embedded_at).total_seconds() / SECONDS_PER_DAY
        factor = max(0.5, 1 - days_since * decay_factor)
        boosted.append(replace(chunk, score=min(1.0, chunk.score * factor)))

    return boosted


def diversify_chunks(chunks: Sequence[Chunk], min_documents: int) -> List[Chunk]:
    """
    Take chunks in order until min_documents documents are represented.

    Accumulation stops once at least min_documents distinct documents AND at
    least 2 * min_documents chunks have been taken. When the input spans
    fewer documents than requested every chunk is returned.

    Args:
        chunks: Chunks sorted by score (descending)
        min_documents: Minimum distinct documents to include (<= 0: no target)

    Returns:
        Diversified chunks
    """
    if min_documents <= 0:
        return list(chunks)

    result: List[Chunk] = []
    seen_documents = set()

    for chunk in chunks:
        seen_documents.add(chunk.document_id)
        result.append(chunk)

        if len(seen_documents) >= min_documents and len(result) >= min_documents * 2:
            break

    return result
