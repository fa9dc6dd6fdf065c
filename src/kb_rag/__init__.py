"""
kb-rag - token-bounded, cited context assembly for retrieval-augmented generation.
"""

from kb_rag.core import ContextResult, RagContextOptions, Source
from kb_rag.rag import ContextAssembler, assemble_rag_context, build_rag_prompt
from kb_rag.search import LocalSearchProvider, SearchProvider
from kb_rag.storage import CorpusStore

__version__ = "0.1.0"

__all__ = [
    "assemble_rag_context",
    "build_rag_prompt",
    "ContextAssembler",
    "ContextResult",
    "RagContextOptions",
    "Source",
    "SearchProvider",
    "LocalSearchProvider",
    "CorpusStore",
]
