"""
Code Indexer - builds immutable search indexes from code blocks.

Every build is total: the whole corpus is re-processed and a brand-new
``Index`` snapshot is produced. ``IndexHolder`` owns the "current" snapshot
and swaps it atomically, so readers never see a partially built index.
"""

import asyncio
import json
import threading
import time
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import jsonschema

from .categories import (
    auto_categorize,
    auto_tag,
    category_priority,
    detect_patterns,
    extract_code_keywords,
    normalize_category,
    normalize_language,
)
from .complexity import complexity_score
from .error_handling import (
    HuginnError,
    IndexImportError,
    IndexingError,
    IndexUnavailable,
    handle_error,
    log_info,
    log_progress,
    log_success,
    log_warning,
)
from .tokenizer import extract_comments, extract_keywords

EXPORT_FORMAT_VERSION = "1.0"


@dataclass(frozen=True)
class CodeBlock:
    """Source of one example; never modified once indexed."""

    language: str
    source_text: str
    line_count: int
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_source(cls, language: str, source_text: str) -> "CodeBlock":
        line_count = len(source_text.split("\n")) if source_text else 0
        return cls(normalize_language(language), source_text, line_count)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "language": self.language,
            "source_text": self.source_text,
            "line_count": self.line_count,
        }
        for key, value in self.extra.items():
            payload.setdefault(key, value)
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CodeBlock":
        return cls(
            language=data["language"],
            source_text=data["source_text"],
            line_count=data["line_count"],
            extra={k: v for k, v in data.items() if k not in _CODE_BLOCK_KEYS},
        )


_CODE_BLOCK_KEYS = frozenset({"language", "source_text", "line_count"})


@dataclass
class CodeBlockInput:
    """A raw code block handed over by content extraction."""

    id: str
    code: str
    language: str = "text"
    title: str = ""
    description: str = ""
    tags: Tuple[str, ...] = ()
    categories: Optional[Tuple[str, ...]] = None
    constitutional: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN_KEYS = (
        "id",
        "code",
        "source_text",
        "sourceText",
        "language",
        "title",
        "description",
        "tags",
        "categories",
        "constitutional",
    )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CodeBlockInput":
        code = data.get("code")
        if code is None:
            code = data.get("source_text", data.get("sourceText"))
        categories = data.get("categories")
        return cls(
            id=data.get("id"),
            code=code,
            language=data.get("language") or "text",
            title=data.get("title") or "",
            description=data.get("description") or "",
            tags=tuple(data.get("tags") or ()),
            categories=tuple(categories) if categories is not None else None,
            constitutional=bool(data.get("constitutional", False)),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN_KEYS},
        )

    @classmethod
    def coerce(cls, value: Union["CodeBlockInput", Mapping[str, Any]]) -> "CodeBlockInput":
        if isinstance(value, CodeBlockInput):
            return value
        if isinstance(value, Mapping):
            return cls.from_dict(value)
        raise IndexingError(f"Unsupported code block input: {type(value).__name__}")


@dataclass(frozen=True)
class IndexEntry:
    """One searchable code example."""

    id: str
    title: str
    description: str
    code_block: CodeBlock
    keywords: FrozenSet[str]
    categories: FrozenSet[str]
    weight: float
    tags: FrozenSet[str] = frozenset()
    concept_path: str = "general"
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def language(self) -> str:
        return self.code_block.language

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "code_block": self.code_block.to_dict(),
            "keywords": sorted(self.keywords),
            "categories": sorted(self.categories),
            "tags": sorted(self.tags),
            "weight": self.weight,
            "concept_path": self.concept_path,
        }
        # Unknown fields ride along untouched; known keys always win
        for key, value in self.extra.items():
            payload.setdefault(key, value)
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IndexEntry":
        block = data["code_block"]
        categories = frozenset(data["categories"])
        return cls(
            id=data["id"],
            title=data["title"],
            description=data["description"],
            code_block=CodeBlock.from_dict(block),
            keywords=frozenset(data["keywords"]),
            categories=categories,
            weight=float(data["weight"]),
            tags=frozenset(data.get("tags", ())),
            concept_path=data.get("concept_path") or "general",
            extra={k: v for k, v in data.items() if k not in _ENTRY_KEYS},
        )


_ENTRY_KEYS = frozenset(
    {
        "id",
        "title",
        "description",
        "code_block",
        "keywords",
        "categories",
        "tags",
        "weight",
        "concept_path",
    }
)


@dataclass(frozen=True)
class IndexStats:
    """Aggregates rebuilt together with the index."""

    total: int = 0
    by_language: Dict[str, int] = field(default_factory=dict, hash=False)
    by_category: Dict[str, int] = field(default_factory=dict, hash=False)
    average_complexity: float = 0.0
    most_used_patterns: Tuple[Dict[str, Any], ...] = field(default=(), hash=False)
    # Unknown imported keys; not part of the aggregates
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "total": self.total,
            "by_language": dict(self.by_language),
            "by_category": dict(self.by_category),
            "average_complexity": self.average_complexity,
            "most_used_patterns": [dict(p) for p in self.most_used_patterns],
        }
        for key, value in self.extra.items():
            payload.setdefault(key, value)
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IndexStats":
        return cls(
            total=int(data["total"]),
            by_language=dict(data["by_language"]),
            by_category=dict(data["by_category"]),
            average_complexity=float(data["average_complexity"]),
            most_used_patterns=tuple(dict(p) for p in data.get("most_used_patterns", ())),
            extra={k: v for k, v in data.items() if k not in _STATS_KEYS},
        )


_STATS_KEYS = frozenset({"total", "by_language", "by_category", "average_complexity", "most_used_patterns"})


@dataclass(frozen=True)
class Index:
    """Immutable snapshot of indexed entries and their statistics."""

    entries: Tuple[IndexEntry, ...] = ()
    stats: IndexStats = field(default_factory=IndexStats)
    version: int = field(default=0, compare=False)
    built_at: float = field(default=0.0, compare=False)
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    # Unknown keys of the exported "metadata" object
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    _by_id: Dict[str, IndexEntry] = field(
        default_factory=dict, init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self):
        object.__setattr__(self, "_by_id", {entry.id: entry for entry in self.entries})

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[IndexEntry]:
        return iter(self.entries)

    def get(self, entry_id: str) -> Optional[IndexEntry]:
        return self._by_id.get(entry_id)

    def entries_by_category(self, category: str) -> List[IndexEntry]:
        key = normalize_category(category)
        return [entry for entry in self.entries if key in entry.categories]

    def entries_by_language(self, language: str) -> List[IndexEntry]:
        key = normalize_language(language)
        return [entry for entry in self.entries if entry.language == key]

    def equivalent(self, other: "Index") -> bool:
        """Entry-set equality plus equal stats, ignoring entry order and version."""
        if not isinstance(other, Index):
            return False
        return self._by_id == other._by_id and self.stats == other.stats


class CodeIndexer:
    """Turns code block inputs into ``Index`` snapshots."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, verbose: bool = False):
        config = config or {}
        self.max_line_weight = int(config.get("max_line_weight", 200))
        self.metadata_bonus = float(config.get("metadata_bonus", 5.0))
        self.priority_overrides = dict(config.get("category_priority") or {})
        self.verbose = verbose

    def _calculate_weight(self, block: CodeBlock, has_metadata: bool, categories: Iterable[str]) -> float:
        """``min(lines, cap) / 10`` + metadata bonus + highest category priority."""
        base = min(block.line_count, self.max_line_weight) / 10
        bonus = self.metadata_bonus if has_metadata else 0.0
        priority = category_priority(categories, self.priority_overrides)
        return round(max(base + bonus + priority, 0.0), 4)

    def _extract_keywords(
        self, raw: CodeBlockInput, block: CodeBlock, categories: List[str], tags: List[str]
    ) -> FrozenSet[str]:
        keywords = set(extract_keywords(raw.title))
        keywords |= extract_keywords(raw.description)
        keywords |= extract_keywords(extract_comments(block.source_text, block.language))
        keywords.update(extract_code_keywords(block.source_text))
        keywords.update(categories)
        keywords.update(tags)
        keywords.add(block.language)
        return frozenset(k for k in keywords if k)

    def _generate_description(self, block: CodeBlock, categories: List[str], tags: List[str]) -> str:
        parts = []
        if categories:
            parts.append(f"{categories[0]} example")
        if tags:
            parts.append(f"featuring {', '.join(tags[:3])}")
        parts.append(f"{block.line_count} lines of {block.language}")
        return ", ".join(parts)

    def create_entry(self, raw: CodeBlockInput) -> IndexEntry:
        """Build one entry; raises ``IndexingError`` for unusable input."""
        if not isinstance(raw.id, str) or not raw.id.strip():
            raise IndexingError("Code block is missing a non-empty 'id'")
        if not isinstance(raw.code, str):
            raise IndexingError(f"Code block '{raw.id}' has no source text")

        block = CodeBlock.from_source(raw.language, raw.code)

        if raw.categories is not None:
            categories = [normalize_category(c) for c in raw.categories if normalize_category(c)]
        else:
            categories = auto_categorize(block.source_text, block.language, raw.constitutional)
        categories = list(dict.fromkeys(categories))

        tags = [normalize_category(t) for t in raw.tags if normalize_category(t)]
        if not raw.tags:
            tags = auto_tag(block.source_text)
        tags = list(dict.fromkeys(tags))

        title = raw.title.strip()
        description = raw.description.strip()
        has_metadata = bool(title and description)

        return IndexEntry(
            id=raw.id,
            title=title or f"{block.language} Example",
            description=description or self._generate_description(block, categories, tags),
            code_block=block,
            keywords=self._extract_keywords(raw, block, categories, tags),
            categories=frozenset(categories),
            weight=self._calculate_weight(block, has_metadata, categories),
            tags=frozenset(tags),
            concept_path=categories[0] if categories else "general",
            extra=dict(raw.extra),
        )

    def _iter_entries(self, blocks: Iterable[Any]) -> Iterator[IndexEntry]:
        seen = set()
        for position, value in enumerate(blocks):
            raw = CodeBlockInput.coerce(value)
            if raw.id in seen:
                raise IndexingError(f"Duplicate code block id '{raw.id}' at position {position}")
            seen.add(raw.id)
            yield self.create_entry(raw)

    def _finalize(self, entries: List[IndexEntry], version: int, started: float) -> Index:
        entries.sort(key=lambda e: (-e.weight, e.title, e.id))
        index = Index(
            entries=tuple(entries),
            stats=compute_stats(entries),
            version=version,
            built_at=time.time(),
        )
        if self.verbose:
            log_success(
                f"Index build complete: {len(entries)} entries in {time.time() - started:.2f}s",
                "🎉",
                operation="index_build_complete",
                version=version,
                by_language=index.stats.by_language,
            )
        return index

    def build_index(self, blocks: Iterable[Any], version: int = 1) -> Index:
        """Build a complete index from ``blocks``; empty input gives an empty index."""
        started = time.time()
        blocks = list(blocks)
        if self.verbose:
            log_info("Building code index...", "📚", operation="index_build", blocks=len(blocks))

        entries: List[IndexEntry] = []
        for entry in self._iter_entries(blocks):
            entries.append(entry)
            if self.verbose and len(entries) % 50 == 0:
                log_progress("Indexing code blocks", current=len(entries), total=len(blocks))

        return self._finalize(entries, version, started)

    async def build_index_async(self, blocks: Iterable[Any], version: int = 1) -> Index:
        """Same as :meth:`build_index`, yielding to the event loop between entries."""
        started = time.time()
        blocks = list(blocks)
        if self.verbose:
            log_info("Building code index (async)...", "📚", operation="async_index_build")

        entries: List[IndexEntry] = []
        for entry in self._iter_entries(blocks):
            entries.append(entry)
            # Yield control periodically for responsiveness
            if len(entries) % 5 == 0:
                await asyncio.sleep(0)

        return self._finalize(entries, version, started)


def compute_stats(entries: Iterable[IndexEntry]) -> IndexStats:
    """Aggregate statistics in a single pass over ``entries``."""
    by_language: Counter = Counter()
    by_category: Counter = Counter()
    patterns: Counter = Counter()
    total = 0
    total_complexity = 0.0

    for entry in entries:
        total += 1
        by_language[entry.language] += 1
        for category in entry.categories:
            by_category[category] += 1
        patterns.update(detect_patterns(entry.code_block.source_text))
        total_complexity += complexity_score(
            entry.code_block.source_text, entry.code_block.line_count, len(entry.keywords)
        )

    top_patterns = sorted(patterns.items(), key=lambda item: (-item[1], item[0]))[:10]
    return IndexStats(
        total=total,
        by_language=dict(sorted(by_language.items())),
        by_category=dict(sorted(by_category.items())),
        average_complexity=round(total_complexity / total, 2) if total else 0.0,
        most_used_patterns=tuple({"pattern": name, "count": count} for name, count in top_patterns),
    )


def build_index(blocks: Iterable[Any], config: Optional[Dict[str, Any]] = None) -> Index:
    """Build an index with the default (or given) indexing configuration."""
    return CodeIndexer(config).build_index(blocks)


class IndexHolder:
    """Application-level owner of the current index snapshot.

    Rebuilds never touch the active snapshot: a new ``Index`` is built off to
    the side and swapped in under a lock. A failed rebuild leaves the previous
    index active and re-raises as ``IndexingError``.
    """

    def __init__(self, indexer: Optional[CodeIndexer] = None):
        self.indexer = indexer or CodeIndexer()
        self._lock = threading.Lock()
        self._current: Optional[Index] = None
        self._next_version = 0
        self._building = 0
        self.last_update: Optional[float] = None

    @property
    def current(self) -> Optional[Index]:
        return self._current

    @property
    def is_available(self) -> bool:
        return self._current is not None

    @property
    def is_indexing(self) -> bool:
        return self._building > 0

    def require(self) -> Index:
        """The current index, or ``IndexUnavailable`` if none was built yet."""
        index = self._current
        if index is None:
            raise IndexUnavailable()
        return index

    def _reserve_version(self) -> int:
        with self._lock:
            self._next_version += 1
            self._building += 1
            return self._next_version

    def _release(self) -> None:
        with self._lock:
            self._building -= 1

    def _swap(self, index: Index) -> Index:
        with self._lock:
            # An older build finishing late must not replace a newer snapshot
            if self._current is None or index.version > self._current.version:
                self._current = index
                self.last_update = time.time()
            return self._current

    @staticmethod
    def _as_indexing_error(error: Exception) -> IndexingError:
        if isinstance(error, IndexingError):
            return error
        failure = IndexingError(f"Index rebuild failed: {error}")
        failure.__cause__ = error
        return failure

    def rebuild(self, blocks: Iterable[Any]) -> Index:
        version = self._reserve_version()
        try:
            index = self.indexer.build_index(blocks, version=version)
        except (HuginnError, TypeError, ValueError, AttributeError, KeyError) as e:
            failure = self._as_indexing_error(e)
            handle_error(failure, "Index rebuild")
            raise failure
        finally:
            self._release()
        return self._swap(index)

    async def rebuild_async(self, blocks: Iterable[Any]) -> Index:
        version = self._reserve_version()
        try:
            index = await self.indexer.build_index_async(blocks, version=version)
        except (HuginnError, TypeError, ValueError, AttributeError, KeyError) as e:
            failure = self._as_indexing_error(e)
            handle_error(failure, "Index rebuild")
            raise failure
        finally:
            self._release()
        return self._swap(index)

    def load(self, index: Index) -> Index:
        """Install an existing snapshot, e.g. one produced by ``import_index``."""
        with self._lock:
            self._next_version = max(self._next_version, index.version) + 1
            version = self._next_version
        installed = replace(index, version=version)
        return self._swap(installed)


_CODE_BLOCK_SCHEMA = {
    "type": "object",
    "properties": {
        "language": {"type": "string"},
        "source_text": {"type": "string"},
        "line_count": {"type": "integer", "minimum": 0},
    },
    "required": ["language", "source_text", "line_count"],
}

_ENTRY_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "title": {"type": "string"},
        "description": {"type": "string"},
        "code_block": _CODE_BLOCK_SCHEMA,
        "keywords": {"type": "array", "items": {"type": "string"}},
        "categories": {"type": "array", "items": {"type": "string"}},
        "tags": {"type": "array", "items": {"type": "string"}},
        "weight": {"type": "number", "minimum": 0},
        "concept_path": {"type": "string"},
    },
    "required": ["id", "title", "description", "code_block", "keywords", "categories", "weight"],
}

_STATS_SCHEMA = {
    "type": "object",
    "properties": {
        "total": {"type": "integer", "minimum": 0},
        "by_language": {"type": "object", "additionalProperties": {"type": "integer"}},
        "by_category": {"type": "object", "additionalProperties": {"type": "integer"}},
        "average_complexity": {"type": "number"},
        "most_used_patterns": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"pattern": {"type": "string"}, "count": {"type": "integer"}},
                "required": ["pattern", "count"],
            },
        },
    },
    "required": ["total", "by_language", "by_category", "average_complexity"],
}

INDEX_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "entries": {"type": "array", "items": _ENTRY_SCHEMA},
        "stats": _STATS_SCHEMA,
        "version": {"type": "integer", "minimum": 0},
        "metadata": {"type": "object"},
    },
    "required": ["entries", "stats"],
}

_TOP_LEVEL_KEYS = frozenset({"entries", "stats", "version", "metadata"})
_METADATA_KEYS = frozenset({"format_version", "generator", "export_date", "built_at"})


def _json_path(parts: Iterable[Any]) -> str:
    path = "$"
    for part in parts:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def _error_sort_key(error: jsonschema.ValidationError) -> Tuple:
    # Document order: array positions numerically, then depth
    return tuple(
        (0, part, "") if isinstance(part, int) else (1, 0, str(part))
        for part in error.absolute_path
    )


def export_index(index: Index) -> str:
    """Serialize ``index`` to JSON; source text is stored verbatim."""
    payload: Dict[str, Any] = {
        "entries": [entry.to_dict() for entry in index.entries],
        "stats": index.stats.to_dict(),
        "version": index.version,
        "metadata": {
            "format_version": EXPORT_FORMAT_VERSION,
            "generator": "huginn",
            "export_date": datetime.now(timezone.utc).isoformat(),
            "built_at": index.built_at,
        },
    }
    for key, value in index.metadata.items():
        payload["metadata"].setdefault(key, value)
    for key, value in index.extra.items():
        payload.setdefault(key, value)
    return json.dumps(payload, indent=2, ensure_ascii=False)


def import_index(data: str) -> Index:
    """Rebuild an ``Index`` from :func:`export_index` output.

    Raises ``IndexImportError`` naming the first structural violation. Stats
    are recomputed from the entries; unknown fields are kept in ``extra``.
    """
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, TypeError) as e:
        raise IndexImportError(f"Malformed JSON: {e}") from e

    errors = sorted(
        jsonschema.Draft7Validator(INDEX_SCHEMA).iter_errors(payload),
        key=_error_sort_key,
    )
    if errors:
        first = errors[0]
        raise IndexImportError(first.message, _json_path(first.absolute_path))

    entries: List[IndexEntry] = []
    seen = set()
    for position, raw in enumerate(payload["entries"]):
        if raw["id"] in seen:
            raise IndexImportError(
                f"Duplicate entry id '{raw['id']}'", _json_path(["entries", position, "id"])
            )
        seen.add(raw["id"])
        entries.append(IndexEntry.from_dict(raw))

    stats = compute_stats(entries)
    stored = IndexStats.from_dict(payload["stats"])
    if stored != stats:
        log_warning(
            "Imported stats differ from recomputed stats; using recomputed values",
            stored_total=stored.total,
            recomputed_total=stats.total,
        )

    metadata = payload.get("metadata") or {}
    return Index(
        entries=tuple(entries),
        stats=replace(stats, extra=stored.extra),
        version=int(payload.get("version", 0)),
        built_at=float(metadata.get("built_at", 0.0) or 0.0),
        extra={k: v for k, v in payload.items() if k not in _TOP_LEVEL_KEYS},
        metadata={k: v for k, v in metadata.items() if k not in _METADATA_KEYS},
    )
