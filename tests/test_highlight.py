"""Tests for highlight span resolution and markup."""

from __future__ import annotations

from hypothesis import given, settings, strategies as st

from huginn.core.highlight import (
    HighlightMatch,
    HighlightSpan,
    HighlightStyle,
    MatchType,
    determine_match_type,
    find_term_spans,
    highlight_terms,
    resolve_highlights,
    resolve_spans,
)

EXACT_MARK = '<mark class="search-highlight exact-match" data-match-type="exact">{}</mark>'
PARTIAL_MARK = '<mark class="search-highlight partial-match" data-match-type="partial">{}</mark>'


def test_higher_priority_span_wins_overlap() -> None:
    spans = [
        HighlightSpan(0, 5, MatchType.EXACT),
        HighlightSpan(2, 8, MatchType.FUZZY),
    ]

    assert resolve_highlights("hello world", spans) == EXACT_MARK.format("hello") + " world"


def test_later_span_replaces_lower_priority_acceptance() -> None:
    spans = [
        HighlightSpan(0, 5, MatchType.PARTIAL),
        HighlightSpan(3, 8, MatchType.EXACT),
    ]

    assert resolve_highlights("hello world", spans) == "hel" + EXACT_MARK.format("lo wo") + "rld"


def test_equal_priority_overlap_keeps_first() -> None:
    accepted = resolve_spans("abcdefgh", [HighlightSpan(0, 4, "partial"), HighlightSpan(2, 6, "partial")])

    assert [(s.start, s.end) for s in accepted] == [(0, 4)]


def test_adjacent_spans_are_both_kept() -> None:
    accepted = resolve_spans("abcdef", [HighlightSpan(3, 6, "exact"), HighlightSpan(0, 3, "fuzzy")])

    assert [(s.start, s.end) for s in accepted] == [(0, 3), (3, 6)]


def test_priority_comes_from_match_type() -> None:
    span = HighlightSpan(0, 1, "Semantic", priority=99)
    (accepted,) = resolve_spans("x", [span])

    assert accepted.match_type is MatchType.SEMANTIC
    assert accepted.priority == 1


def test_empty_inputs() -> None:
    assert resolve_highlights("", [HighlightSpan(0, 1, "exact")]) == ""
    assert resolve_highlights("a < b & c", []) == "a &lt; b &amp; c"


def test_text_is_escaped_inside_and_outside_marks() -> None:
    result = resolve_highlights("<a>", [HighlightSpan(1, 2, MatchType.PARTIAL)])

    assert result == "&lt;" + PARTIAL_MARK.format("a") + "&gt;"


def test_malformed_spans_are_clipped_or_dropped() -> None:
    accepted = resolve_spans("abc", [HighlightSpan(2, 10, "exact"), HighlightSpan(5, 1, "exact")])

    assert [(s.start, s.end) for s in accepted] == [(2, 3)]


def test_max_highlights_keeps_most_important() -> None:
    spans = [HighlightSpan(i, i + 1, "fuzzy") for i in range(0, 10, 2)]
    spans.append(HighlightSpan(9, 10, "exact"))

    accepted = resolve_spans("x" * 10, spans, max_highlights=2)

    assert len(accepted) == 2
    assert accepted[-1].match_type is MatchType.EXACT


def test_custom_style() -> None:
    style = HighlightStyle.from_config({"tag": "span", "base_class": "hl", "exact_class": "hit", "unknown": 1})

    assert resolve_highlights("ab", [HighlightSpan(0, 1, "exact")], style=style) == (
        '<span class="hl hit" data-match-type="exact">a</span>b'
    )


def test_find_term_spans_reports_overlaps() -> None:
    spans = find_term_spans("aaaa", "aa")
    assert [(s.start, s.end) for s in spans] == [(0, 2), (1, 3), (2, 4)]

    assert find_term_spans("Signal signal", "signal", case_sensitive=True)[0].start == 7
    assert [s.start for s in find_term_spans("signals signal", "signal", whole_word=True)] == [8]


def test_determine_match_type() -> None:
    assert determine_match_type("Signal", "signal") is MatchType.EXACT
    assert determine_match_type("use signal()", "signal") is MatchType.PARTIAL
    assert determine_match_type("nothing", "signal") is MatchType.FUZZY


def test_highlight_terms() -> None:
    result = highlight_terms(
        "count = signal(0)",
        [HighlightMatch("count", MatchType.EXACT)],
        search_term="signal",
    )

    assert result == EXACT_MARK.format("count") + " = " + PARTIAL_MARK.format("signal") + "(0)"
    assert highlight_terms("", [HighlightMatch("x")]) == ""


span_strategy = st.builds(
    HighlightSpan,
    start=st.integers(min_value=-5, max_value=60),
    end=st.integers(min_value=-5, max_value=60),
    match_type=st.sampled_from(list(MatchType)),
)


@given(
    text=st.text(min_size=0, max_size=50),
    spans=st.lists(span_strategy, max_size=30),
    cap=st.integers(min_value=0, max_value=40),
)
@settings(max_examples=200, deadline=None)
def test_resolved_spans_never_overlap(text: str, spans, cap: int) -> None:
    accepted = resolve_spans(text, spans, max_highlights=cap)

    assert len(accepted) <= cap
    starts = [s.start for s in accepted]
    assert starts == sorted(starts)
    for left, right in zip(accepted, accepted[1:]):
        assert left.end <= right.start
    for span in accepted:
        assert 0 <= span.start < span.end <= len(text)


@given(text=st.text(min_size=1, max_size=40), spans=st.lists(span_strategy, max_size=10))
@settings(max_examples=100, deadline=None)
def test_markup_without_tags_round_trips_text(text: str, spans) -> None:
    import html
    import re

    rendered = resolve_highlights(text, spans)
    stripped = re.sub(r"<mark [^>]*>|</mark>", "", rendered)

    assert html.unescape(stripped) == text
