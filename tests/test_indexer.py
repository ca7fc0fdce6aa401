"""Tests for the code indexer and the index holder."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest

from huginn.core.error_handling import IndexingError, IndexUnavailable
from huginn.core.indexer import (
    CodeBlockInput,
    CodeIndexer,
    Index,
    IndexHolder,
    build_index,
    compute_stats,
)


def test_single_typescript_block_builds_stats() -> None:
    index = build_index([{"id": "a", "code": "const x = 1;", "language": "typescript"}])

    assert index.stats.total == 1
    assert index.stats.by_language == {"typescript": 1}
    assert len(index) == 1


def test_empty_input_gives_empty_index() -> None:
    index = build_index([])

    assert index.entries == ()
    assert index.stats.total == 0
    assert index.stats.by_language == {}
    assert index.stats.average_complexity == 0.0


def test_sample_entries_ordered_by_weight(sample_index: Index) -> None:
    ids = [entry.id for entry in sample_index.entries]
    assert ids == ["counter", "user-service", "login-form", "card-styles"]

    weights = [entry.weight for entry in sample_index.entries]
    assert weights == sorted(weights, reverse=True)


def test_sample_stats(sample_index: Index) -> None:
    stats = sample_index.stats

    assert stats.total == 4
    assert stats.by_language == {"css": 1, "typescript": 3}
    assert sum(stats.by_language.values()) == stats.total
    assert stats.by_category["components"] == 2
    assert stats.by_category["services"] == 1
    assert stats.by_category["forms"] == 1
    assert stats.average_complexity > 1.0

    patterns = {item["pattern"]: item["count"] for item in stats.most_used_patterns}
    assert patterns["Form Controls"] == 1
    assert patterns["Injectable Service"] == 1


def test_weight_formula() -> None:
    index = build_index(
        [
            {
                "id": "full",
                "code": "x",
                "language": "typescript",
                "title": "T",
                "description": "D",
                "categories": ["components"],
            },
            {"id": "bare", "code": "y", "language": "typescript", "categories": ["mystery"]},
        ]
    )

    assert index.get("full").weight == pytest.approx(6.1)
    # No metadata bonus and unknown categories rank as "other"
    assert index.get("bare").weight == pytest.approx(0.1)


def test_line_weight_is_capped() -> None:
    code = "\n".join(f"line {i}" for i in range(500))
    index = build_index([{"id": "long", "code": code, "language": "text", "categories": ["other"]}])

    assert index.get("long").code_block.line_count == 500
    assert index.get("long").weight == pytest.approx(20.0)


def test_entry_defaults(sample_index: Index) -> None:
    styles = sample_index.get("card-styles")

    assert styles.title == "css Example"
    assert styles.categories == frozenset({"components"})
    assert styles.concept_path == "components"
    assert "css" in styles.keywords

    service = sample_index.get("user-service")
    assert service.language == "typescript"
    assert {"user", "service", "http", "injectable", "httpclient"} <= service.keywords
    # Comment text contributes keywords too
    assert "load" in service.keywords


def test_keywords_non_empty_with_title() -> None:
    index = build_index([{"id": "t", "code": "", "language": "", "title": "Only a title"}])

    entry = index.get("t")
    assert entry.keywords
    assert entry.code_block.line_count == 0
    assert entry.language == "text"


def test_caller_categories_and_tags_win(sample_blocks: List[Dict[str, Any]]) -> None:
    block = dict(sample_blocks[0], categories=["Performance"], tags=["Best Practice"])
    entry = build_index([block]).get("counter")

    assert entry.categories == frozenset({"performance"})
    assert entry.tags == frozenset({"best-practice"})
    assert entry.concept_path == "performance"


def test_build_is_deterministic(sample_blocks: List[Dict[str, Any]]) -> None:
    first = build_index(sample_blocks)
    second = build_index(list(reversed(sample_blocks)))

    assert [e.id for e in first.entries] == [e.id for e in second.entries]
    assert first.stats == second.stats
    assert first.equivalent(second)


def test_duplicate_ids_fail_the_build(sample_blocks: List[Dict[str, Any]]) -> None:
    with pytest.raises(IndexingError, match="Duplicate"):
        build_index(sample_blocks + [dict(sample_blocks[0])])


def test_invalid_blocks_fail_the_build() -> None:
    with pytest.raises(IndexingError):
        build_index([{"code": "x"}])
    with pytest.raises(IndexingError):
        build_index([{"id": "no-code"}])


def test_block_input_accepts_source_text_keys() -> None:
    block = CodeBlockInput.from_dict({"id": "a", "sourceText": "let a;", "language": "js", "origin": "docs"})

    assert block.code == "let a;"
    assert block.extra == {"origin": "docs"}

    entry = CodeIndexer().create_entry(block)
    assert entry.language == "javascript"
    assert entry.extra == {"origin": "docs"}


def test_index_lookups(sample_index: Index) -> None:
    assert sample_index.get("missing") is None
    assert [e.id for e in sample_index.entries_by_language("ts")] == ["counter", "user-service", "login-form"]
    assert [e.id for e in sample_index.entries_by_category("Forms")] == ["login-form"]


def test_compute_stats_counts_each_category(sample_index: Index) -> None:
    stats = compute_stats(sample_index.entries)
    expected = sum(len(e.categories) for e in sample_index.entries)

    assert sum(stats.by_category.values()) == expected


def test_holder_requires_an_index() -> None:
    holder = IndexHolder()

    assert holder.current is None
    with pytest.raises(IndexUnavailable):
        holder.require()


def test_holder_rebuild_swaps_versions(sample_blocks: List[Dict[str, Any]]) -> None:
    holder = IndexHolder()

    first = holder.rebuild(sample_blocks[:2])
    second = holder.rebuild(sample_blocks)

    assert second.version > first.version
    assert holder.require() is second
    assert holder.last_update is not None
    assert not holder.is_indexing


def test_holder_keeps_previous_index_on_failure(sample_blocks: List[Dict[str, Any]]) -> None:
    holder = IndexHolder()
    good = holder.rebuild(sample_blocks)

    with pytest.raises(IndexingError):
        holder.rebuild(sample_blocks + [dict(sample_blocks[1])])

    assert holder.current is good
    assert not holder.is_indexing


def test_holder_rebuild_is_idempotent(sample_blocks: List[Dict[str, Any]]) -> None:
    holder = IndexHolder()
    first = holder.rebuild(sample_blocks)
    second = holder.rebuild(sample_blocks)

    assert first.equivalent(second)


def test_holder_async_rebuild(sample_blocks: List[Dict[str, Any]]) -> None:
    holder = IndexHolder()
    built = asyncio.run(holder.rebuild_async(sample_blocks))

    assert holder.current is built
    assert built.stats.total == 4
    assert built.equivalent(build_index(sample_blocks))


def test_holder_load_bumps_version(sample_index: Index) -> None:
    holder = IndexHolder()
    holder.rebuild([])
    loaded = holder.load(sample_index)

    assert holder.current is loaded
    assert loaded.version > 1
    assert loaded.equivalent(sample_index)
