"""
Search layer: provider contract, hybrid fusion and the local BM25 provider.
"""

from kb_rag.search.bm25_index import BM25Index
from kb_rag.search.hybrid import combine_hybrid_scores, keyword_overlap_score
from kb_rag.search.local import LocalSearchProvider
from kb_rag.search.provider import (
    BaseSearchProvider,
    SearchProvider,
    coerce_hit,
    hit_from_mapping,
)
from kb_rag.search.tokenizer import WordTokenizer, significant_words

__all__ = [
    "SearchProvider",
    "BaseSearchProvider",
    "LocalSearchProvider",
    "BM25Index",
    "WordTokenizer",
    "coerce_hit",
    "hit_from_mapping",
    "combine_hybrid_scores",
    "keyword_overlap_score",
    "significant_words",
]
