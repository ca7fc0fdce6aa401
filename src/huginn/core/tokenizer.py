"""
Keyword extraction and comment scanning for code examples.

The extractor always case-folds: keyword sets are compared across entries,
so case sensitivity is a search-time concern only.
"""

import re
from typing import FrozenSet, Iterable, List, Optional, Set

from .categories import normalize_language

_TOKEN_RE = re.compile(r"[^\W_]+")

_SLASH_COMMENT_LANGUAGES = {
    "typescript",
    "javascript",
    "java",
    "c",
    "cpp",
    "csharp",
    "go",
    "rust",
    "kotlin",
    "swift",
    "css",
    "scss",
    "less",
}
_HASH_COMMENT_LANGUAGES = {"python", "bash", "yaml", "ruby", "toml", "perl", "r", "dockerfile"}
_MARKUP_COMMENT_LANGUAGES = {"html", "xml", "svg", "vue"}


class KeywordExtractor:
    """Turns free text into a normalized keyword set."""

    def __init__(self, extra_stopwords: Optional[Iterable[str]] = None):
        # Technical terms that should NOT be treated as stopwords
        self.technical_preserve = {
            "api",
            "cli",
            "ui",
            "db",
            "sql",
            "http",
            "json",
            "yaml",
            "html",
            "css",
            "js",
            "ts",
            "py",
            "go",
            "rxjs",
            "ngrx",
            "dom",
            "env",
            "var",
        }

        # Common English stopwords plus syntax noise that carries no topic
        self.stopwords = {
            "a",
            "an",
            "and",
            "are",
            "as",
            "at",
            "be",
            "by",
            "for",
            "from",
            "has",
            "in",
            "is",
            "it",
            "its",
            "of",
            "on",
            "that",
            "the",
            "to",
            "was",
            "will",
            "with",
            "you",
            "your",
            "this",
            "these",
            "those",
            "they",
            "them",
            "their",
            "there",
            "where",
            "when",
            "what",
            "who",
            "why",
            "how",
            "if",
            "or",
            "but",
            "not",
            "no",
            "yes",
            "can",
            "could",
            "should",
            "would",
            "may",
            "might",
            "must",
            "do",
            "does",
            "did",
            "have",
            "had",
            "been",
            "being",
            "am",
            "we",
            "our",
            "so",
            "then",
            "than",
            "into",
            "also",
            "just",
            "use",
            "using",
            "here",
            "const",
            "let",
            "return",
            "true",
            "false",
            "null",
            "undefined",
            "void",
            "new",
            "import",
            "export",
            "todo",
        }
        if extra_stopwords:
            self.stopwords |= {word.lower() for word in extra_stopwords}

        self.stopwords = self.stopwords - self.technical_preserve

    def tokens(self, text: str) -> List[str]:
        """Ordered keyword tokens of ``text``, duplicates kept."""
        if not text:
            return []
        return [
            token
            for token in _TOKEN_RE.findall(text.lower())
            if len(token) >= 2 and token not in self.stopwords
        ]

    def extract(self, text: str) -> Set[str]:
        return set(self.tokens(text))


_default_extractor = KeywordExtractor()


def extract_keywords(text: str) -> FrozenSet[str]:
    """Normalized keyword set of ``text``; pure and deterministic."""
    return frozenset(_default_extractor.extract(text))


def split_terms(query: str) -> List[str]:
    """Whitespace separated query terms, in order, without empties."""
    return [term for term in query.split() if term]


def is_comment_line(line: str, language: str) -> bool:
    """True when ``line`` is entirely a comment in ``language``."""
    trimmed = line.strip()
    if not trimmed:
        return False

    lang = normalize_language(language)
    if lang in _SLASH_COMMENT_LANGUAGES:
        return trimmed.startswith(("//", "/*", "*"))
    if lang in _HASH_COMMENT_LANGUAGES:
        return trimmed.startswith("#") and not trimmed.startswith("#!")
    if lang in _MARKUP_COMMENT_LANGUAGES:
        return trimmed.startswith("<!--")
    return False


def _strip_comment_markers(text: str) -> str:
    text = re.sub(r"^\s*(//+|/\*+|\*+/?|#+|<!--)", "", text)
    text = re.sub(r"(\*+/|-->)\s*$", "", text)
    return text.strip()


def extract_comments(code: str, language: str) -> str:
    """Comment text of ``code`` with comment markers removed, one comment per line."""
    lang = normalize_language(language)
    comments: List[str] = []

    for line in code.split("\n"):
        if is_comment_line(line, lang):
            text = _strip_comment_markers(line)
        elif lang in _SLASH_COMMENT_LANGUAGES:
            # Trailing comment; skip "://" so URLs are not mistaken for comments
            match = re.search(r"(?<![:/])//(.*)$", line)
            text = match.group(1).strip() if match else ""
        elif lang in _HASH_COMMENT_LANGUAGES:
            match = re.search(r"\s#\s?(.*)$", line)
            text = match.group(1).strip() if match else ""
        else:
            text = ""

        if text:
            comments.append(text)

    return "\n".join(comments)
