"""Tests for markdown code block extraction."""

from __future__ import annotations

from pathlib import Path

from huginn.core.extraction import MarkdownCodeExtractor, extract_code_blocks, extract_front_matter

DOCUMENT = """---
title: Signals Guide
tags: [signals, state]
categories: components
---
Intro paragraph.

```ts
const a = signal(1);
```

# Derived state

First paragraph.

Use computed for
derived values.
```typescript
const b = computed(() => a() * 2);
```
"""


def test_blocks_follow_document_order() -> None:
    blocks = extract_code_blocks(DOCUMENT, "docs/signals.md")

    assert [b.id for b in blocks] == ["docs/signals.md#1", "docs/signals.md#2"]
    assert [b.language for b in blocks] == ["ts", "typescript"]
    assert blocks[0].code == "const a = signal(1);"


def test_titles_and_descriptions() -> None:
    first, second = extract_code_blocks(DOCUMENT, "docs/signals.md")

    # No heading above the first fence so the front matter title is used
    assert first.title == "Signals Guide"
    assert first.description == "Intro paragraph."
    assert second.title == "Derived state"
    assert second.description == "Use computed for derived values."


def test_front_matter_applies_to_every_block() -> None:
    for block in extract_code_blocks(DOCUMENT, "docs/signals.md"):
        assert block.tags == ("signals", "state")
        assert block.categories == ("components",)
        assert not block.constitutional


def test_source_lines_are_one_based() -> None:
    first, second = extract_code_blocks(DOCUMENT, "docs/signals.md")

    assert first.extra == {"source_path": "docs/signals.md", "source_line": 8}
    assert second.extra["source_line"] == 18


def test_unclosed_fence_runs_to_end() -> None:
    (block,) = extract_code_blocks("# Title\n\n```python\nx = 1\ny = 2", "a.md")

    assert block.code == "x = 1\ny = 2"
    assert block.language == "python"


def test_fence_without_info_is_text() -> None:
    (block,) = extract_code_blocks("~~~\nplain\n~~~\n")

    assert block.language == "text"
    assert block.id == "document#1"
    assert block.categories is None


def test_front_matter_edge_cases() -> None:
    assert extract_front_matter("no front matter") == {}
    assert extract_front_matter("---\n- a\n- b\n---\nbody") == {}
    assert extract_front_matter("---\ntitle: [unclosed\n---\nbody") == {}
    assert extract_front_matter("---\nconstitutional: true\n---\n") == {"constitutional": True}


def test_extractor_scans_docs_tree(project_root: Path, sample_docs: Path) -> None:
    extractor = MarkdownCodeExtractor({"docs_paths": ["docs"]}, project_root=project_root)

    files = extractor.scan_documents()
    assert [f.name for f in files] == ["services.md", "signals.md"]

    blocks = extractor.extract()
    assert [b.id for b in blocks] == [
        "docs/services.md#1",
        "docs/services.md#2",
        "docs/signals.md#1",
    ]
    assert blocks[1].title == "Card styles"
    assert blocks[1].description == ""
    assert blocks[2].tags == ("signals",)
    assert blocks[2].description == "A counter component built with signals."


def test_extractor_skips_missing_and_large_files(project_root: Path, sample_docs: Path) -> None:
    extractor = MarkdownCodeExtractor(
        {"docs_paths": ["missing", "docs"], "max_file_size": 10},
        project_root=project_root,
    )

    assert extractor.extract() == []
