"""
Search Engine - line-oriented keyword/regex search over an Index snapshot.

Queries compile into a ``CompiledQuery`` or an ``InvalidQuery`` value; a bad
regex never raises out of :func:`search`. Each entry's source is scanned line
by line, matches are classified Exact/Partial/Fuzzy and folded into a
relevance score together with the entry's precomputed weight.
"""

import json
import re
import time
from collections import Counter
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .cache import QueryCache
from .categories import (
    PATTERN_CATALOG,
    CodePattern,
    get_pattern,
    normalize_category,
    normalize_language,
)
from .error_handling import IndexUnavailable, InvalidQuery, log_info, log_warning
from .highlight import DEFAULT_MAX_HIGHLIGHTS, HighlightSpan, HighlightStyle, MatchType, resolve_highlights
from .indexer import Index, IndexEntry
from .tokenizer import is_comment_line, split_terms

DEFAULT_MAX_RESULTS_CEILING = 500

# Score contribution of a single match, by type
MATCH_SCORES = {
    MatchType.EXACT: 10.0,
    MatchType.PARTIAL: 5.0,
    MatchType.FUZZY: 2.0,
    MatchType.SEMANTIC: 1.0,
}

PATTERN_MATCH_SCORE = 20.0
PATTERN_CATEGORY_BONUS = 25.0

_WORD_RE = re.compile(r"[^\W_]+")


@dataclass
class SearchOptions:
    """Caller-controlled search behaviour."""

    case_sensitive: bool = False
    whole_word: bool = False
    use_regex: bool = False
    include_comments: bool = True
    languages: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    max_results: Optional[int] = None
    fuzzy: bool = False

    def cache_key(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)


@dataclass(frozen=True)
class SearchMatch:
    """One located match; ``line`` and ``column`` are 1-based."""

    line: int
    column: int
    text: str
    match_type: MatchType

    @property
    def length(self) -> int:
        return len(self.text)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line": self.line,
            "column": self.column,
            "text": self.text,
            "length": self.length,
            "match_type": self.match_type.value,
        }


@dataclass
class SearchResult:
    """A matching entry with its matches, score and previews.

    Fields:
        entry: The matching index entry
        matches: Matches ordered by line then column
        relevance_score: Match-type weighted score plus ``entry.weight``
        context_preview: Source lines around the first match
        highlighted_preview: ``context_preview`` as HTML with matches marked
    """

    entry: IndexEntry
    matches: Tuple[SearchMatch, ...]
    relevance_score: float
    context_preview: str
    highlighted_preview: str = ""

    @property
    def match_counts(self) -> Dict[str, int]:
        counts = Counter(m.match_type.value for m in self.matches)
        return {t.value: counts.get(t.value, 0) for t in MatchType}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.entry.id,
            "title": self.entry.title,
            "description": self.entry.description,
            "language": self.entry.language,
            "categories": sorted(self.entry.categories),
            "relevance_score": float(self.relevance_score),
            "match_counts": self.match_counts,
            "matches": [m.to_dict() for m in self.matches],
            "context_preview": self.context_preview,
            "highlighted_preview": self.highlighted_preview,
        }


@dataclass
class SearchResponse:
    """Ranked results of one search; iterates like the result list."""

    query: str
    results: List[SearchResult] = field(default_factory=list)
    error: Optional[InvalidQuery] = None
    elapsed: float = 0.0
    total_matching: int = 0
    cached: bool = False

    def __iter__(self) -> Iterator[SearchResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, position: int) -> SearchResult:
        return self.results[position]

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "results": [r.to_dict() for r in self.results],
            "error": self.error.to_dict() if self.error else None,
            "elapsed_ms": round(self.elapsed * 1000, 2),
            "total_matching": self.total_matching,
        }


@dataclass(frozen=True)
class CompiledQuery:
    """A validated query ready to scan source lines."""

    source: str
    pattern: "re.Pattern[str]"
    terms: Tuple[str, ...]
    case_sensitive: bool = False
    use_regex: bool = False


def compile_query(query: str, options: Optional[SearchOptions] = None) -> Union[CompiledQuery, InvalidQuery]:
    """Compile ``query`` under ``options``; malformed input yields ``InvalidQuery``."""
    options = options or SearchOptions()
    text = query.strip() if query else ""
    if not text:
        return InvalidQuery("Query is empty", query or "")

    source = text if options.use_regex else re.escape(text)
    if options.whole_word:
        source = rf"\b(?:{source})\b"
    flags = 0 if options.case_sensitive else re.IGNORECASE

    try:
        pattern = re.compile(source, flags)
    except re.error as e:
        return InvalidQuery(f"Invalid regular expression: {e.msg}", query, e.pos)

    terms = () if options.use_regex else tuple(split_terms(text))
    if not options.case_sensitive:
        terms = tuple(term.lower() for term in terms)

    return CompiledQuery(
        source=text,
        pattern=pattern,
        terms=terms,
        case_sensitive=options.case_sensitive,
        use_regex=options.use_regex,
    )


def _same_text(line: str, matched: str, case_sensitive: bool) -> bool:
    if case_sensitive:
        return line == matched
    return line.lower() == matched.lower()


def _common_prefix_length(a: str, b: str) -> int:
    length = 0
    for left, right in zip(a, b):
        if left != right:
            break
        length += 1
    return length


def _fuzzy_matches(line: str, line_no: int, compiled: CompiledQuery) -> List[SearchMatch]:
    """Near matches for a line with no literal match.

    Terms of a multi-term query found on their own count first; otherwise a
    word matches a term when it is a 3+ character prefix of it or shares a
    stem prefix of at least ``max(3, len(term) - 2)`` characters.
    """
    if not compiled.terms:
        return []

    flags = 0 if compiled.case_sensitive else re.IGNORECASE
    found: List[SearchMatch] = []

    if len(compiled.terms) > 1:
        # Original spelling; case folding can change a term's length
        for term in split_terms(compiled.source):
            hit = re.search(re.escape(term), line, flags)
            if hit:
                found.append(SearchMatch(line_no, hit.start() + 1, hit.group(0), MatchType.FUZZY))
    if found:
        return found

    for word_match in _WORD_RE.finditer(line):
        word = word_match.group(0)
        folded = word if compiled.case_sensitive else word.lower()
        for term in compiled.terms:
            if len(folded) >= 3 and term.startswith(folded):
                matched = True
            else:
                matched = _common_prefix_length(folded, term) >= max(3, len(term) - 2)
            if matched:
                found.append(SearchMatch(line_no, word_match.start() + 1, word, MatchType.FUZZY))
                break

    return found


def scan_entry(entry: IndexEntry, compiled: CompiledQuery, options: SearchOptions) -> List[SearchMatch]:
    """All matches of ``compiled`` in ``entry``'s source, ordered by position."""
    matches: List[SearchMatch] = []
    language = entry.language

    for line_no, line in enumerate(entry.code_block.source_text.split("\n"), start=1):
        if not options.include_comments and is_comment_line(line, language):
            continue

        literal = [m for m in compiled.pattern.finditer(line) if m.end() > m.start()]
        if literal:
            stripped = line.strip()
            for m in literal:
                match_type = (
                    MatchType.EXACT
                    if _same_text(stripped, m.group(0), compiled.case_sensitive)
                    else MatchType.PARTIAL
                )
                matches.append(SearchMatch(line_no, m.start() + 1, m.group(0), match_type))
        elif options.fuzzy:
            matches.extend(_fuzzy_matches(line, line_no, compiled))

    return matches


def relevance_score(matches: List[SearchMatch], weight: float) -> float:
    return round(sum(MATCH_SCORES[m.match_type] for m in matches) + weight, 4)


def _entry_passes_filters(entry: IndexEntry, languages, categories, tags) -> bool:
    if languages and entry.language not in languages:
        return False
    if categories and not (entry.categories & categories):
        return False
    if tags and not (entry.tags & tags):
        return False
    return True


def build_preview(
    source: str,
    matches: List[SearchMatch],
    context_lines: int = 1,
    max_highlights: Optional[int] = DEFAULT_MAX_HIGHLIGHTS,
    style: Optional[HighlightStyle] = None,
) -> Tuple[str, str]:
    """Plain and highlighted previews of the lines around the first match."""
    if not matches:
        return "", ""

    lines = source.split("\n")
    first_line = matches[0].line
    start = max(first_line - 1 - context_lines, 0)
    end = min(first_line + context_lines, len(lines))
    window = lines[start:end]
    preview = "\n".join(window)

    # Character offset of each window line inside the preview
    offsets = {}
    cursor = 0
    for position, text in enumerate(window, start=start + 1):
        offsets[position] = cursor
        cursor += len(text) + 1

    spans = [
        HighlightSpan(offsets[m.line] + m.column - 1, offsets[m.line] + m.column - 1 + m.length, m.match_type)
        for m in matches
        if m.line in offsets
    ]
    return preview, resolve_highlights(preview, spans, max_highlights=max_highlights, style=style)


def _sort_key(result: SearchResult):
    return (-result.relevance_score, result.entry.title, result.entry.id)


class CodeSearchEngine:
    """Configured search over index snapshots with a version-keyed query cache."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        verbose: bool = False,
        cache: Optional[QueryCache] = None,
    ):
        self.config = config or {}
        self.verbose = verbose

        search_config = self.config.get("search", {}) or {}
        highlight_config = self.config.get("highlight", {}) or {}

        self.max_results_ceiling = int(search_config.get("max_results_ceiling", DEFAULT_MAX_RESULTS_CEILING))
        self.preview_context_lines = int(search_config.get("preview_context_lines", 1))
        self.max_highlights = highlight_config.get("max_highlights", DEFAULT_MAX_HIGHLIGHTS)
        self.style = HighlightStyle.from_config(highlight_config)
        self.cache = cache if cache is not None else QueryCache.from_config(search_config.get("cache"))
        self.last_search_time = 0.0

    def _result_limit(self, options: SearchOptions) -> int:
        if options.max_results is None:
            return self.max_results_ceiling
        return min(max(int(options.max_results), 0), self.max_results_ceiling)

    def search(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        index: Optional[Index] = None,
    ) -> SearchResponse:
        """Ranked matches of ``query`` in ``index``; never raises for bad queries."""
        if index is None:
            raise IndexUnavailable()

        options = options or SearchOptions()
        start_time = time.time()

        if not query or not query.strip() or not index.entries:
            return SearchResponse(query=query or "")

        cache_key = QueryCache.make_key(index.version, f"{index.built_at}:{query}", options.cache_key())
        cached = self.cache.get(cache_key)
        if cached is not None:
            self.last_search_time = time.time() - start_time
            return replace(cached, results=list(cached.results), elapsed=self.last_search_time, cached=True)

        compiled = compile_query(query, options)
        if isinstance(compiled, InvalidQuery):
            if self.verbose:
                log_warning(f"Invalid query: {compiled.message}", query=query, position=compiled.position)
            return SearchResponse(query=query, error=compiled, elapsed=time.time() - start_time)

        languages = {normalize_language(lang) for lang in options.languages}
        categories = {normalize_category(c) for c in options.categories}
        tags = {normalize_category(t) for t in options.tags}

        results: List[SearchResult] = []
        for entry in index.entries:
            if not _entry_passes_filters(entry, languages, categories, tags):
                continue
            matches = scan_entry(entry, compiled, options)
            if not matches:
                continue
            preview, highlighted = build_preview(
                entry.code_block.source_text,
                matches,
                self.preview_context_lines,
                self.max_highlights,
                self.style,
            )
            results.append(
                SearchResult(
                    entry=entry,
                    matches=tuple(matches),
                    relevance_score=relevance_score(matches, entry.weight),
                    context_preview=preview,
                    highlighted_preview=highlighted,
                )
            )

        results.sort(key=_sort_key)
        total_matching = len(results)
        results = results[: self._result_limit(options)]

        self.last_search_time = time.time() - start_time
        response = SearchResponse(
            query=query,
            results=results,
            elapsed=self.last_search_time,
            total_matching=total_matching,
        )
        # The cache keeps its own list so callers may mutate the returned one
        self.cache.put(cache_key, replace(response, results=list(results)), index_version=index.version)

        if self.verbose:
            log_info(
                f"Found {len(results)} results in {self.last_search_time * 1000:.1f}ms",
                "🔍",
                query=query,
                total_matching=total_matching,
            )
        return response

    def search_patterns(self, index: Optional[Index], pattern_name: Optional[str] = None) -> List[SearchResult]:
        """Search the pattern catalog, or one named pattern, across all entries."""
        if index is None:
            raise IndexUnavailable()

        if pattern_name is not None:
            pattern = get_pattern(pattern_name)
            if pattern is None:
                if self.verbose:
                    log_warning(f"Unknown pattern: {pattern_name}")
                return []
            patterns: Tuple[CodePattern, ...] = (pattern,)
        else:
            patterns = PATTERN_CATALOG

        results: List[SearchResult] = []
        for entry in index.entries:
            source = entry.code_block.source_text
            for pattern in patterns:
                found = [m for m in pattern.regex.finditer(source) if m.end() > m.start()]
                if not found:
                    continue
                matches = tuple(
                    SearchMatch(
                        line=source.count("\n", 0, m.start()) + 1,
                        column=m.start() - source.rfind("\n", 0, m.start()),
                        text=m.group(0),
                        match_type=MatchType.PARTIAL,
                    )
                    for m in found
                )
                score = len(matches) * PATTERN_MATCH_SCORE
                if pattern.category in entry.categories:
                    score += PATTERN_CATEGORY_BONUS
                first_line = source.split("\n")[matches[0].line - 1]
                preview = f"Pattern: {pattern.name}\n{first_line}"
                results.append(
                    SearchResult(
                        entry=entry,
                        matches=matches,
                        relevance_score=score,
                        context_preview=preview,
                        highlighted_preview=resolve_highlights(preview, []),
                    )
                )

        results.sort(key=_sort_key)
        return results

    def get_search_stats(self) -> Dict[str, Any]:
        """Get search engine statistics."""
        return {
            "max_results_ceiling": self.max_results_ceiling,
            "last_search_time_ms": round(self.last_search_time * 1000, 2),
            "cache": self.cache.get_cache_stats(),
        }


def search(
    query: str,
    options: Optional[SearchOptions] = None,
    index: Optional[Index] = None,
    config: Optional[Dict[str, Any]] = None,
) -> SearchResponse:
    """Uncached one-off search of ``index``."""
    engine = CodeSearchEngine(config, cache=QueryCache(enabled=False))
    return engine.search(query, options, index)


def search_patterns(index: Optional[Index], pattern_name: Optional[str] = None) -> List[SearchResult]:
    return CodeSearchEngine(cache=QueryCache(enabled=False)).search_patterns(index, pattern_name)


def popular_patterns(index: Optional[Index], limit: int = 10) -> List[Dict[str, Any]]:
    """Catalog patterns ordered by how many entries use them."""
    if index is None:
        raise IndexUnavailable()

    counts: Counter = Counter()
    for entry in index.entries:
        for pattern in PATTERN_CATALOG:
            if pattern.regex.search(entry.code_block.source_text):
                counts[pattern.name] += 1

    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[: max(limit, 0)]
    popular = []
    for name, count in ranked:
        pattern = get_pattern(name)
        popular.append(
            {
                "pattern": name,
                "count": count,
                "category": pattern.category,
                "description": pattern.description,
            }
        )
    return popular
