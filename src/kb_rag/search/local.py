"""
Local search provider backed by a corpus snapshot.

Scores chunks lexically with BM25 and rescales them to [0, 1] by dividing by
the best score of the query, so the top hit always scores 1.0. This lets the
assembler run offline (CLI, tests); it does not approximate embedding
similarity.
"""

from typing import List

from kb_rag.core.contracts import SearchHit, SearchOptions
from kb_rag.core.logger import get_logger
from kb_rag.search.bm25_index import BM25Index
from kb_rag.search.provider import BaseSearchProvider
from kb_rag.storage.corpus_store import CorpusStore

logger = get_logger(__name__)


class LocalSearchProvider(BaseSearchProvider):
    """BM25 search over the records of a CorpusStore."""

    def __init__(self, store: CorpusStore, k1: float = 1.5, b: float = 0.75):
        """
        Initialize provider.

        Args:
            store: Corpus snapshot to search
            k1: BM25 term frequency saturation
            b: BM25 length normalization
        """
        self.store = store
        self.k1 = k1
        self.b = b

    def search(self, user_id: str, query: str, options: SearchOptions) -> List[SearchHit]:
        """
        Search the user's records.

        Args:
            user_id: Owner of the records
            query: Query string
            options: Category/document filters, threshold and limit

        Returns:
            Hits with normalized scores >= threshold, sorted descending
        """
        records = self.store.records_for(
            user_id,
            categories=options.categories,
            document_ids=options.document_ids,
        )
        if not records or options.limit <= 0:
            return []

        index = BM25Index(k1=self.k1, b=self.b)
        index.build(records)
        results = index.search(query, top_k=len(records))

        if not results or results[0][1] <= 0:
            logger.debug("No lexical matches for user %s among %d records", user_id, len(records))
            return []

        top_score = results[0][1]
        hits = []
        for record, raw_score in results:
            score = max(0.0, raw_score) / top_score
            if score < options.threshold:
                continue
            hits.append(
                SearchHit(
                    text=record.text,
                    document_id=record.document_id,
                    document_title=record.document_title,
                    chunk_index=record.chunk_index,
                    score=score,
                    category=record.category,
                    start_position=record.start_position,
                    end_position=record.end_position,
                )
            )
            if len(hits) >= options.limit:
                break

        return hits
