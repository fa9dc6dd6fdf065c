"""
Tests for the context assembly pipeline against stub search providers.
"""

import pytest

from kb_rag.core.contracts import ContextResult, RagContextOptions, SearchHit
from kb_rag.core.errors import SearchResultError
from kb_rag.rag.context import (
    CHUNK_SEPARATOR,
    ContextAssembler,
    assemble_context_or_none,
    assemble_rag_context,
    assemble_sources,
    chunk_from_hit,
    get_relevant_documents,
)
from kb_rag.rag.token_budget import estimate_tokens
from kb_rag.search.provider import BaseSearchProvider


class StaticProvider(BaseSearchProvider):
    """Returns a fixed hit list and records every call."""

    def __init__(self, hits):
        self.hits = hits
        self.calls = []

    def search(self, user_id, query, options):
        self.calls.append(("search", user_id, query, options))
        return list(self.hits)


class FailingProvider(BaseSearchProvider):
    def search(self, user_id, query, options):
        raise ConnectionError("vector store unreachable")


def passage(document_id, chunk_index, length=400):
    """Distinct text of exactly `length` characters."""
    words = " ".join(f"word{document_id}x{chunk_index}n{i}" for i in range(length))
    return words[:length]


def make_hit(document_id, score, chunk_index=0, category="general", title=None, length=400):
    return SearchHit(
        text=passage(document_id, chunk_index, length),
        document_id=document_id,
        document_title=title or f"Doc {document_id}",
        chunk_index=chunk_index,
        score=score,
        category=category,
    )


def test_empty_search_results():
    """No candidates is not an error: the result is empty."""
    result = assemble_rag_context(StaticProvider([]), "user-1", "obscure query")

    assert result.context == ""
    assert result.sources == []
    assert result.tokens_used == 0
    assert result.chunks_included == 0
    assert result.truncated is False


def test_requests_twice_max_chunks():
    provider = StaticProvider([])
    assemble_rag_context(
        provider,
        "user-1",
        "query",
        RagContextOptions(max_chunks=7, categories=("brand",), document_ids=(3, 4), threshold=0.5),
    )

    _, user_id, query, options = provider.calls[0]
    assert user_id == "user-1"
    assert options.limit == 14
    assert options.categories == ("brand",)
    assert options.document_ids == (3, 4)
    assert options.threshold == 0.5


def test_context_format_and_sources():
    hits = [
        make_hit(1, 0.95, chunk_index=0, category="brand", title="Brand Guide"),
        make_hit(2, 0.9, chunk_index=0, category="products", title="Catalog"),
        make_hit(1, 0.85, chunk_index=1, category="brand", title="Brand Guide"),
    ]
    result = assemble_rag_context(StaticProvider(hits), "user-1", "brand voice")

    blocks = result.context.split(CHUNK_SEPARATOR)
    assert len(blocks) == 3
    assert blocks[0] == "[Brand Guide (brand)]\n" + hits[0].text
    assert blocks[1] == "[Brand Guide (brand)]\n" + hits[2].text
    assert blocks[2] == "[Catalog (products)]\n" + hits[1].text

    assert result.chunks_included == 3
    assert result.tokens_used == estimate_tokens(result.context)
    assert result.truncated is False
    assert [(s.id, s.chunk_count, s.score) for s in result.sources] == [(1, 2, 0.95), (2, 1, 0.9)]


def test_packing_boundary_with_overhead():
    """Five 100-token chunks, 250 tokens left after overhead: two are packed."""
    hits = [make_hit(i, 0.9 - i * 0.01) for i in range(1, 6)]
    # overhead for 5 chunks with sources: 4 * 8 + 5 * 10 + 50 = 132
    result = assemble_rag_context(StaticProvider(hits), "user-1", "q", RagContextOptions(max_tokens=382))

    assert result.chunks_included == 2
    assert result.truncated is True
    assert result.tokens_used <= 382


def test_budget_invariant_across_budgets():
    hits = [make_hit(i, 0.95 - i * 0.01, length=150 + 37 * i) for i in range(1, 11)]
    for max_tokens in (0, 10, 60, 150, 300, 700, 4000):
        result = assemble_rag_context(
            StaticProvider(hits), "user-1", "q", RagContextOptions(max_tokens=max_tokens)
        )
        assert result.tokens_used <= max(0, max_tokens)


def test_long_titles_cannot_overflow_budget():
    """Headers longer than the overhead estimate are trimmed back under the ceiling."""
    title = "A very long document title " * 10
    hits = [make_hit(i, 0.9, title=f"{title}{i}", length=100) for i in range(1, 5)]
    result = assemble_rag_context(StaticProvider(hits), "user-1", "q", RagContextOptions(max_tokens=200))

    assert result.tokens_used <= 200
    assert result.truncated is True


def test_tiny_budget_selects_nothing():
    hits = [make_hit(1, 0.9), make_hit(2, 0.8)]
    result = assemble_rag_context(StaticProvider(hits), "user-1", "q", RagContextOptions(max_tokens=10))

    assert result.chunks_included == 0
    assert result.context == ""
    assert result.truncated is True


def test_budget_without_room_for_overhead_yields_zero_chunks():
    """A ceiling smaller than the formatting overhead packs nothing."""
    hits = [make_hit(1, 0.9)]
    # voyage-4-large rescaled to 5 tokens leaves a ceiling of 5, overhead is 60
    result = assemble_rag_context(
        StaticProvider(hits), "user-1", "q", RagContextOptions(model="voyage-4-large", budget_total=5)
    )
    assert result.chunks_included == 0
    assert result.context == ""
    assert result.truncated is True


def test_non_positive_ceiling_returns_empty_truncated():
    hits = [make_hit(1, 0.9)]
    result = assemble_rag_context(StaticProvider(hits), "user-1", "q", RagContextOptions(max_tokens=-5))

    assert result == ContextResult.empty(truncated=True)


def test_model_budget_caps_max_tokens():
    hits = [make_hit(i, 0.9 - i * 0.01) for i in range(1, 6)]
    # gpt-5 rescaled to 1000: available = 1000 - 11 - 39 - 11 = 939
    result = assemble_rag_context(
        StaticProvider(hits),
        "user-1",
        "q",
        RagContextOptions(model="gpt-5", budget_total=1000, max_tokens=100000),
    )
    assert result.tokens_used <= 939
    assert result.chunks_included == 5


def test_threshold_filters_candidates():
    hits = [make_hit(1, 0.9), make_hit(2, 0.65), make_hit(3, 0.4)]
    result = assemble_rag_context(StaticProvider(hits), "user-1", "q", RagContextOptions(threshold=0.6))

    assert {s.id for s in result.sources} == {1, 2}


def test_everything_filtered_out():
    hits = [make_hit(1, 0.3), make_hit(2, 0.2)]
    result = assemble_rag_context(StaticProvider(hits), "user-1", "q")

    assert result.chunks_included == 0
    assert result.context == ""
    assert result.truncated is False


def test_per_document_cap_in_final_selection():
    hits = [make_hit(1, 0.99 - i * 0.01, chunk_index=i) for i in range(6)]
    hits += [make_hit(2, 0.5, chunk_index=0)]
    result = assemble_rag_context(StaticProvider(hits), "user-1", "q", RagContextOptions(threshold=0.1))

    by_document = {s.id: s.chunk_count for s in result.sources}
    assert by_document[1] == 3
    assert all(count <= 3 for count in by_document.values())


def test_sources_omitted_when_disabled():
    result = assemble_rag_context(
        StaticProvider([make_hit(1, 0.9)]), "user-1", "q", RagContextOptions(include_sources=False)
    )
    assert result.sources == []
    assert result.chunks_included == 1


def test_category_boosts_reorder_context():
    hits = [
        make_hit(1, 0.8, category="general", title="General"),
        make_hit(2, 0.7, category="brand", title="Brand"),
    ]
    result = assemble_rag_context(
        StaticProvider(hits), "user-1", "q", RagContextOptions(category_boosts={"brand": 2.0})
    )
    assert result.context.startswith("[Brand (brand)]")
    assert result.sources[0].id == 2


def test_hybrid_mode_uses_hybrid_search():
    hits = [
        SearchHit(text="Pricing " + passage(1, 0, 200), document_id=1, document_title="A", chunk_index=0, score=0.9),
        SearchHit(text="Brand voice " + passage(2, 0, 200), document_id=2, document_title="B", chunk_index=0, score=0.85),
    ]
    result = assemble_rag_context(
        StaticProvider(hits),
        "user-1",
        "brand voice",
        RagContextOptions(hybrid=True, threshold=0.0),
    )
    # B: 0.85 * 0.7 + 1.0 * 0.3 = 0.895 beats A: 0.9 * 0.7 = 0.63
    assert result.sources[0].id == 2
    assert result.sources[0].score == pytest.approx(0.895)


def test_provider_errors_propagate():
    with pytest.raises(ConnectionError):
        assemble_rag_context(FailingProvider(), "user-1", "q")


def test_malformed_hit_is_rejected():
    provider = StaticProvider([{"text": "no document id", "documentTitle": "X", "score": 0.9}])
    with pytest.raises(SearchResultError):
        assemble_rag_context(provider, "user-1", "q")


def test_chunk_from_hit_mapping():
    chunk = chunk_from_hit(
        {
            "text": "x" * 10,
            "documentId": "12",
            "documentTitle": "Offers",
            "chunkIndex": None,
            "score": "0.75",
            "category": None,
            "embedding": [0.1, 0.2],
        }
    )
    assert chunk.document_id == 12
    assert chunk.chunk_index == 0
    assert chunk.score == 0.75
    assert chunk.category == "general"
    assert chunk.estimated_tokens == 3


def test_chunk_from_hit_unknown_category():
    with pytest.raises(SearchResultError):
        chunk_from_hit({"text": "x", "document_id": 1, "document_title": "X", "score": 0.9, "category": "secret"})


def test_assemble_sources_groups_and_sorts():
    chunks = [
        chunk_from_hit(make_hit(1, 0.7, chunk_index=0)),
        chunk_from_hit(make_hit(2, 0.9, chunk_index=0)),
        chunk_from_hit(make_hit(1, 0.8, chunk_index=1)),
    ]
    sources = assemble_sources(chunks)
    assert [(s.id, s.score, s.chunk_count) for s in sources] == [(2, 0.9, 1), (1, 0.8, 2)]
    assert assemble_sources(chunks, include_sources=False) == []


def test_single_chunk_documents_pack_in_score_order():
    """With one chunk per document the packed selection follows score order."""
    hits = [make_hit(i, 0.99 - i * 0.02) for i in range(1, 9)]
    assembler = ContextAssembler(StaticProvider(hits))
    result = assembler.assemble("user-1", "q", RagContextOptions(max_tokens=600))

    titles = [block.split("\n", 1)[0] for block in result.context.split(CHUNK_SEPARATOR)]
    expected = [f"[Doc {i} (general)]" for i in range(1, 9)][: result.chunks_included]
    assert titles == expected


def test_chunks_grouped_by_document_before_packing():
    """
    A document's chunks stay together, documents in first-seen order.

    The packer can therefore take a weaker chunk of the first document over
    a stronger chunk of a later one.
    """
    hits = [
        make_hit(1, 0.95, chunk_index=0),
        make_hit(2, 0.9, chunk_index=0),
        make_hit(1, 0.7, chunk_index=1),
        make_hit(1, 0.65, chunk_index=2),
    ]

    full = assemble_rag_context(StaticProvider(hits), "user-1", "q", RagContextOptions(include_sources=False))
    assert full.context.split(CHUNK_SEPARATOR) == [
        f"[{hit.document_title} (general)]\n{hit.text}" for hit in (hits[0], hits[2], hits[3], hits[1])
    ]

    # overhead for 4 chunks without sources: 3 * 8 + 4 * 10 = 64, leaving 204
    packed = assemble_rag_context(
        StaticProvider(hits), "user-1", "q", RagContextOptions(max_tokens=268, include_sources=False)
    )
    assert packed.context.split(CHUNK_SEPARATOR) == [
        "[Doc 1 (general)]\n" + hits[0].text,
        "[Doc 1 (general)]\n" + hits[2].text,
    ]
    assert packed.truncated is True


def test_provider_without_search_cannot_be_created():
    class NoSearch(BaseSearchProvider):
        pass

    with pytest.raises(TypeError):
        NoSearch()


def test_relevant_documents_keeps_best_score():
    hits = [make_hit(1, 0.7), make_hit(2, 0.9), make_hit(1, 0.95, chunk_index=1)]
    provider = StaticProvider(hits)
    matches = get_relevant_documents(provider, "user-1", "q")

    assert [(m.id, m.score) for m in matches] == [(1, 0.95), (2, 0.9)]
    assert provider.calls[0][3].limit == 10
    assert provider.calls[0][3].threshold == 0.6


def test_assemble_context_or_none():
    assert assemble_context_or_none(FailingProvider(), "user-1", "q") is None
    assert assemble_context_or_none(StaticProvider([]), "user-1", "q") is None

    result = assemble_context_or_none(StaticProvider([make_hit(1, 0.9)]), "user-1", "q")
    assert result is not None
    assert result.chunks_included == 1
