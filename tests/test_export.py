"""Tests for index export and import."""

from __future__ import annotations

import json

import pytest
from hypothesis import given, settings, strategies as st

from huginn.core.error_handling import IndexImportError
from huginn.core.indexer import EXPORT_FORMAT_VERSION, Index, build_index, export_index, import_index


def test_export_round_trip(sample_index: Index) -> None:
    restored = import_index(export_index(sample_index))

    assert restored.equivalent(sample_index)
    assert [e.id for e in restored.entries] == [e.id for e in sample_index.entries]
    assert restored.version == sample_index.version


def test_export_metadata(sample_index: Index) -> None:
    payload = json.loads(export_index(sample_index))

    assert payload["metadata"]["format_version"] == EXPORT_FORMAT_VERSION
    assert payload["metadata"]["generator"] == "huginn"
    assert payload["stats"]["by_language"] == {"css": 1, "typescript": 3}
    assert payload["entries"][0]["code_block"]["source_text"] == sample_index.entries[0].code_block.source_text
    assert payload["entries"][0]["keywords"] == sorted(payload["entries"][0]["keywords"])


def test_malformed_json_is_rejected() -> None:
    with pytest.raises(IndexImportError) as excinfo:
        import_index("{not json")

    assert excinfo.value.path == "$"
    assert "Malformed JSON" in excinfo.value.reason


def test_missing_required_entry_field_names_the_entry(sample_index: Index) -> None:
    payload = json.loads(export_index(sample_index))
    del payload["entries"][0]["title"]

    with pytest.raises(IndexImportError) as excinfo:
        import_index(json.dumps(payload))

    assert excinfo.value.path == "$.entries[0]"
    assert "title" in str(excinfo.value)


def test_first_violation_is_reported(sample_index: Index) -> None:
    payload = json.loads(export_index(sample_index))
    payload["entries"][2]["weight"] = "heavy"
    payload["entries"][1]["code_block"]["line_count"] = -1

    with pytest.raises(IndexImportError) as excinfo:
        import_index(json.dumps(payload))

    assert excinfo.value.path == "$.entries[1].code_block.line_count"


def test_missing_top_level_keys() -> None:
    with pytest.raises(IndexImportError) as excinfo:
        import_index(json.dumps({"entries": []}))
    assert excinfo.value.path == "$"

    with pytest.raises(IndexImportError):
        import_index(json.dumps([1, 2, 3]))


def test_duplicate_ids_are_rejected(sample_index: Index) -> None:
    payload = json.loads(export_index(sample_index))
    payload["entries"].append(dict(payload["entries"][0]))

    with pytest.raises(IndexImportError) as excinfo:
        import_index(json.dumps(payload))

    assert excinfo.value.path == "$.entries[4].id"
    assert "Duplicate" in excinfo.value.reason


def test_unknown_fields_survive_round_trip() -> None:
    index = build_index([{"id": "a", "code": "x = 1", "language": "python", "origin": "docs/a.md"}])
    payload = json.loads(export_index(index))
    payload["entries"][0]["reviewed"] = True
    payload["generator_notes"] = {"source": "nightly"}

    restored = import_index(json.dumps(payload))

    assert restored.get("a").extra == {"origin": "docs/a.md", "reviewed": True}
    assert restored.extra == {"generator_notes": {"source": "nightly"}}

    again = json.loads(export_index(restored))
    assert again["entries"][0]["reviewed"] is True
    assert again["generator_notes"] == {"source": "nightly"}


def test_stale_stats_are_recomputed(sample_index: Index) -> None:
    payload = json.loads(export_index(sample_index))
    payload["stats"]["total"] = 99

    restored = import_index(json.dumps(payload))

    assert restored.stats == sample_index.stats


block_strategy = st.fixed_dictionaries(
    {
        "code": st.text(max_size=120),
        "language": st.sampled_from(["typescript", "css", "python", "text", "ts"]),
        "title": st.text(max_size=20),
        "description": st.text(max_size=40),
        "tags": st.lists(st.text(alphabet="abcdef-", min_size=1, max_size=6), max_size=3),
    }
)


@given(blocks=st.lists(block_strategy, max_size=6))
@settings(max_examples=50, deadline=None)
def test_round_trip_preserves_equivalence(blocks) -> None:
    index = build_index([dict(block, id=f"block-{i}") for i, block in enumerate(blocks)])

    restored = import_index(export_index(index))

    assert restored.equivalent(index)


def test_unknown_nested_fields_survive_round_trip(sample_index: Index) -> None:
    payload = json.loads(export_index(sample_index))
    payload["entries"][0]["code_block"]["encoding"] = "utf-8"
    payload["stats"]["by_tier"] = {"Low": 4}
    payload["metadata"]["source_commit"] = "abc123"

    restored = import_index(json.dumps(payload))
    again = json.loads(export_index(restored))

    assert restored.entries[0].code_block.extra == {"encoding": "utf-8"}
    assert again["entries"][0]["code_block"]["encoding"] == "utf-8"
    assert again["stats"]["by_tier"] == {"Low": 4}
    assert again["metadata"]["source_commit"] == "abc123"
    assert again["metadata"]["generator"] == "huginn"
    # Unknown stats keys do not make the recomputed stats differ
    assert restored.stats == sample_index.stats
