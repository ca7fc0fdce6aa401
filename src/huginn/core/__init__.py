"""Core indexing, search, similarity, highlighting and analysis for huginn."""

from .complexity import ComplexityAnalysis, ComplexityAnalyzer, analyze
from .error_handling import (
    ConfigurationError,
    HuginnError,
    IndexImportError,
    IndexingError,
    IndexUnavailable,
    InvalidQuery,
)
from .highlight import HighlightSpan, MatchType, resolve_highlights
from .indexer import (
    CodeBlock,
    CodeBlockInput,
    CodeIndexer,
    Index,
    IndexEntry,
    IndexHolder,
    IndexStats,
    build_index,
    export_index,
    import_index,
)
from .search import CodeSearchEngine, SearchOptions, SearchResponse, SearchResult, search
from .similarity import find_duplicates, find_similar

__all__ = [
    "CodeBlock",
    "CodeBlockInput",
    "CodeIndexer",
    "CodeSearchEngine",
    "ComplexityAnalysis",
    "ComplexityAnalyzer",
    "ConfigurationError",
    "HighlightSpan",
    "HuginnError",
    "Index",
    "IndexEntry",
    "IndexHolder",
    "IndexImportError",
    "IndexStats",
    "IndexUnavailable",
    "IndexingError",
    "InvalidQuery",
    "MatchType",
    "SearchOptions",
    "SearchResponse",
    "SearchResult",
    "analyze",
    "build_index",
    "export_index",
    "find_duplicates",
    "find_similar",
    "import_index",
    "resolve_highlights",
    "search",
]
