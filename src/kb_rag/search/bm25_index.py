"""
BM25 lexical index over corpus records.

Used by LocalSearchProvider as an offline stand-in for vector search.
Indexes are built in memory per query over the caller's filtered records;
intended for snapshots of up to a few thousand chunks.

Uses BM25L rather than BM25Okapi: Okapi IDF is zero or negative for terms
present in half the documents or more, which on per-user snapshots of a few
documents would score every match at or below zero.
"""

from typing import List, Optional, Sequence, Tuple

from rank_bm25 import BM25L

from kb_rag.core.contracts import CorpusRecord
from kb_rag.search.tokenizer import WordTokenizer


class BM25Index:
    """BM25 index over a list of corpus records."""

    def __init__(self, k1: float = 1.5, b: float = 0.75, use_stopwords: bool = True):
        """
        Initialize BM25 index.

        Args:
            k1: BM25 term frequency saturation
            b: BM25 length normalization
            use_stopwords: Whether the tokenizer drops stopwords
        """
        self.k1 = k1
        self.b = b
        self.tokenizer = WordTokenizer(use_stopwords=use_stopwords)
        self.bm25: Optional[BM25L] = None
        self.records: List[CorpusRecord] = []
        self.token_sets: List[set] = []

    def build(self, records: Sequence[CorpusRecord]):
        """
        Build BM25 index from records.

        Args:
            records: Records to index
        """
        if not records:
            raise ValueError("Cannot build index from empty record list")

        self.records = list(records)
        tokenized_corpus = [self.tokenizer.tokenize(record.text) for record in self.records]
        self.token_sets = [set(tokens) for tokens in tokenized_corpus]

        # rank_bm25 divides by the average document length
        if not any(tokenized_corpus):
            tokenized_corpus = [[""] for _ in tokenized_corpus]
        self.bm25 = BM25L(tokenized_corpus, k1=self.k1, b=self.b)

    def search(self, query: str, top_k: int = 10) -> List[Tuple[CorpusRecord, float]]:
        """
        Search index with query.

        Only records sharing at least one query term are returned.

        Args:
            query: Query string
            top_k: Number of results to return

        Returns:
            List of (record, raw BM25 score) tuples, sorted by score descending
        """
        if self.bm25 is None:
            raise ValueError("Index not built. Call build() first.")

        query_tokens = self.tokenizer.tokenize(query)
        if not query_tokens:
            return []

        scores = self.bm25.get_scores(query_tokens)
        query_set = set(query_tokens)

        matched = [idx for idx in range(len(self.records)) if self.token_sets[idx] & query_set]
        top_indices = sorted(matched, key=lambda i: scores[i], reverse=True)[:top_k]
        return [(self.records[idx], float(scores[idx])) for idx in top_indices]
