"""
Hybrid score fusion: semantic similarity blended with keyword overlap.
"""

from dataclasses import replace
from typing import List, Sequence

from kb_rag.core.contracts import SearchHit
from kb_rag.search.tokenizer import significant_words


def keyword_overlap_score(query: str, text: str) -> float:
    """
    Fraction of the query's significant words found in the text.

    Matching is substring-based on the lower-cased text, so "brand" also
    matches "branding".
    """
    query_words = significant_words(query)
    if not query_words:
        return 0.0

    text_lower = text.lower()
    matches = sum(1 for word in query_words if word in text_lower)
    return matches / len(query_words)


def combine_hybrid_scores(
    hits: Sequence[SearchHit],
    query: str,
    semantic_weight: float = 0.7,
    keyword_weight: float = 0.3,
) -> List[SearchHit]:
    """
    Re-score semantic hits with keyword overlap and re-sort.

    Semantic scores are divided by max(top score, 1) so they stay in [0, 1];
    the combined score is semantic * semantic_weight + keyword *
    keyword_weight.

    Args:
        hits: Semantic search hits
        query: Original query
        semantic_weight: Weight of the semantic score
        keyword_weight: Weight of the keyword score

    Returns:
        Hits with combined scores, sorted descending
    """
    if not hits:
        return []

    max_semantic = max(max(hit.score for hit in hits), 1.0)

    combined = [
        replace(
            hit,
            score=(hit.score / max_semantic) * semantic_weight
            + keyword_overlap_score(query, hit.text) * keyword_weight,
        )
        for hit in hits
    ]
    combined.sort(key=lambda hit: hit.score, reverse=True)
    return combined
