"""
Storage layer: corpus snapshots.
"""

from kb_rag.storage.corpus_store import CorpusStore, record_from_dict

__all__ = [
    "CorpusStore",
    "record_from_dict",
]
