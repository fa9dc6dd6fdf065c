"""
Tests for RAG option resolution and config parsing.
"""

import pytest

from kb_rag.core.contracts import DEFAULT_RAG_OPTIONS, RagContextOptions


def test_resolve_uses_defaults():
    opts = RagContextOptions().resolve()
    assert opts == DEFAULT_RAG_OPTIONS
    assert opts.threshold == 0.6
    assert opts.max_chunks == 10
    assert opts.max_tokens == 4000
    assert opts.include_sources is True
    assert opts.hybrid is False


def test_resolve_keeps_explicit_falsy_values():
    """Only None falls back to the default; False and 0 are kept."""
    opts = RagContextOptions(include_sources=False, threshold=0.0, max_tokens=0).resolve()
    assert opts.include_sources is False
    assert opts.threshold == 0.0
    assert opts.max_tokens == 0


def test_resolve_normalizes_collections():
    opts = RagContextOptions(categories=["brand"], document_ids=["3", 4]).resolve()
    assert opts.categories == ("brand",)
    assert opts.document_ids == (3, 4)


def test_from_dict_accepts_camel_case():
    opts = RagContextOptions.from_dict(
        {"maxTokens": 3000, "includeSources": False, "categories": ["brand", "offers"], "threshold": 0.5}
    )
    assert opts.max_tokens == 3000
    assert opts.include_sources is False
    assert opts.categories == ("brand", "offers")
    assert opts.threshold == 0.5


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ValueError, match="Unknown RAG option"):
        RagContextOptions.from_dict({"maxTokenz": 3000})


def test_merged_with_overrides_non_none_fields():
    base = RagContextOptions(max_tokens=3000, threshold=0.5, hybrid=True)
    merged = base.merged_with(RagContextOptions(max_tokens=1000, include_sources=False))

    assert merged.max_tokens == 1000
    assert merged.include_sources is False
    assert merged.threshold == 0.5
    assert merged.hybrid is True


def test_from_dict_coerces_document_ids():
    opts = RagContextOptions.from_dict({"documentIds": ["3", 4]})
    assert opts.document_ids == (3, 4)


def test_from_dict_rejects_non_integer_document_ids():
    """Bad ids fail while parsing the config, not later during assembly."""
    with pytest.raises(ValueError, match="documentIds"):
        RagContextOptions.from_dict({"documentIds": ["x"]})
    with pytest.raises(ValueError, match="documentIds"):
        RagContextOptions.from_dict({"document_ids": 7})
