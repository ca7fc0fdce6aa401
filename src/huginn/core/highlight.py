"""
Highlight Resolver - turns overlapping match spans into safe HTML markup.

Resolution is a greedy single pass over spans sorted by start: a span that
overlaps the previously accepted one replaces it only when its match type
has strictly higher priority. It is deterministic, not globally optimal.
"""

import html
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

DEFAULT_MAX_HIGHLIGHTS = 50


class MatchType(str, Enum):
    """How a located match relates to the query."""

    EXACT = "exact"
    PARTIAL = "partial"
    FUZZY = "fuzzy"
    SEMANTIC = "semantic"

    @property
    def priority(self) -> int:
        return _MATCH_PRIORITY[self]

    @classmethod
    def parse(cls, value: Union[str, "MatchType"]) -> "MatchType":
        if isinstance(value, MatchType):
            return value
        return cls(str(value).strip().lower())


_MATCH_PRIORITY = {
    MatchType.EXACT: 4,
    MatchType.PARTIAL: 3,
    MatchType.FUZZY: 2,
    MatchType.SEMANTIC: 1,
}


@dataclass(frozen=True)
class HighlightSpan:
    """A half-open ``[start, end)`` interval over one text buffer."""

    start: int
    end: int
    match_type: MatchType = MatchType.PARTIAL
    priority: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "match_type", MatchType.parse(self.match_type))
        if self.priority is None:
            object.__setattr__(self, "priority", self.match_type.priority)

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "HighlightSpan") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class HighlightStyle:
    """Markup used to wrap accepted spans."""

    tag: str = "mark"
    base_class: str = "search-highlight"
    exact_class: str = "exact-match"
    partial_class: str = "partial-match"
    fuzzy_class: str = "fuzzy-match"
    semantic_class: str = "semantic-match"

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "HighlightStyle":
        config = config or {}
        known = {k: v for k, v in config.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def class_for(self, match_type: MatchType) -> str:
        modifier = {
            MatchType.EXACT: self.exact_class,
            MatchType.PARTIAL: self.partial_class,
            MatchType.FUZZY: self.fuzzy_class,
            MatchType.SEMANTIC: self.semantic_class,
        }[match_type]
        return f"{self.base_class} {modifier}".strip()

    def wrap(self, fragment: str, match_type: MatchType) -> str:
        return (
            f'<{self.tag} class="{html.escape(self.class_for(match_type))}" '
            f'data-match-type="{match_type.value}">{html.escape(fragment)}</{self.tag}>'
        )


def _clip(span: HighlightSpan, text_length: int) -> Optional[HighlightSpan]:
    start = min(max(span.start, 0), text_length)
    end = min(max(span.end, start), text_length)
    if end <= start:
        return None
    return replace(span, start=start, end=end, priority=span.match_type.priority)


def resolve_spans(
    text: str,
    spans: Iterable[HighlightSpan],
    max_highlights: Optional[int] = DEFAULT_MAX_HIGHLIGHTS,
) -> List[HighlightSpan]:
    """Accepted, non-overlapping spans sorted by ``start``.

    Priority always comes from the span's match type. Candidates are ranked
    by priority then length before the ``max_highlights`` cap is applied, so
    the cap discards the least important spans first.
    """
    candidates = [c for c in (_clip(s, len(text)) for s in spans) if c is not None]

    ranked = sorted(candidates, key=lambda s: (-s.priority, -s.length, s.start, s.end))
    if max_highlights is not None:
        ranked = ranked[: max(max_highlights, 0)]

    accepted: List[HighlightSpan] = []
    last_end = -1
    for span in sorted(ranked, key=lambda s: s.start):
        if span.start >= last_end:
            accepted.append(span)
            last_end = span.end
        elif span.priority > accepted[-1].priority:
            accepted[-1] = span
            last_end = span.end

    return accepted


def resolve_highlights(
    text: str,
    spans: Sequence[HighlightSpan],
    max_highlights: Optional[int] = DEFAULT_MAX_HIGHLIGHTS,
    style: Optional[HighlightStyle] = None,
) -> str:
    """HTML-escaped ``text`` with each accepted span wrapped in markup."""
    if not text:
        return ""
    if not spans:
        return html.escape(text)

    style = style or HighlightStyle()
    accepted = resolve_spans(text, spans, max_highlights)

    # Apply from the highest start down so earlier offsets stay valid
    pieces: List[str] = []
    cursor = len(text)
    for span in reversed(accepted):
        pieces.append(html.escape(text[span.end : cursor]))
        pieces.append(style.wrap(text[span.start : span.end], span.match_type))
        cursor = span.start
    pieces.append(html.escape(text[:cursor]))

    return "".join(reversed(pieces))


def find_term_spans(
    text: str,
    term: str,
    match_type: MatchType = MatchType.PARTIAL,
    case_sensitive: bool = False,
    whole_word: bool = False,
) -> List[HighlightSpan]:
    """Every occurrence of ``term`` in ``text``, overlapping occurrences included."""
    if not text or not term:
        return []

    flags = 0 if case_sensitive else re.IGNORECASE
    escaped = re.escape(term)
    if whole_word:
        escaped = rf"\b{escaped}\b"
    # Lookahead so overlapping occurrences are all reported
    pattern = re.compile(rf"(?=({escaped}))", flags)

    return [
        HighlightSpan(m.start(1), m.end(1), match_type)
        for m in pattern.finditer(text)
        if m.end(1) > m.start(1)
    ]


def determine_match_type(text: str, term: str, case_sensitive: bool = False) -> MatchType:
    """Exact when the text is the term, Partial when it contains it, else Fuzzy."""
    haystack = text if case_sensitive else text.lower()
    needle = term if case_sensitive else term.lower()
    if haystack == needle:
        return MatchType.EXACT
    if needle in haystack:
        return MatchType.PARTIAL
    return MatchType.FUZZY


@dataclass(frozen=True)
class HighlightMatch:
    """A term to highlight with the match type it should be rendered as."""

    term: str
    match_type: MatchType = MatchType.PARTIAL


def highlight_terms(
    text: str,
    matches: Sequence[HighlightMatch] = (),
    search_term: str = "",
    case_sensitive: bool = False,
    max_highlights: Optional[int] = DEFAULT_MAX_HIGHLIGHTS,
    style: Optional[HighlightStyle] = None,
) -> str:
    """Highlight every occurrence of the given terms in ``text``.

    ``search_term`` is classified against the whole text with
    :func:`determine_match_type` and highlighted alongside ``matches``.
    """
    if not text:
        return ""

    all_matches = list(matches)
    if search_term:
        all_matches.append(
            HighlightMatch(search_term, determine_match_type(text, search_term, case_sensitive))
        )
    if not all_matches:
        return html.escape(text)

    # Exact terms first, then longer terms, mirroring span ranking
    ordered = sorted(
        all_matches,
        key=lambda m: (m.match_type is not MatchType.EXACT, -len(m.term)),
    )
    if max_highlights is not None:
        ordered = ordered[:max_highlights]

    spans: List[HighlightSpan] = []
    for match in ordered:
        spans.extend(
            find_term_spans(text, match.term, match.match_type, case_sensitive=case_sensitive)
        )

    return resolve_highlights(text, spans, max_highlights=max_highlights, style=style)
