"""Tests for the complexity analyzer."""

from __future__ import annotations

import pytest

from huginn.core.complexity import (
    ComplexityAnalyzer,
    ComplexityTier,
    analyze,
    complexity_score,
    complexity_tier,
    nesting_level,
)
from huginn.core.error_handling import IndexUnavailable
from huginn.core.indexer import Index, build_index


def test_nesting_level() -> None:
    assert nesting_level("") == 0
    assert nesting_level("f(a, g(b))") == 2
    assert nesting_level("{ ( ) } { }") == 2
    # Stray closers never go negative
    assert nesting_level(")) (") == 1


def test_complexity_score() -> None:
    assert complexity_score("") == 1.0
    # 1 line, depth 1, one pipe( construct, no keywords
    assert complexity_score("x.pipe(y)") == pytest.approx(1.0 + 0.1 + 0.5 + 0.3)
    # Line contribution is capped at 5
    assert complexity_score("\n" * 199) == pytest.approx(6.0)
    assert complexity_score("a\nb", keyword_count=10) == pytest.approx(1.0 + 0.2 + 1.0)


def test_tiers() -> None:
    assert complexity_tier(3.0) is ComplexityTier.LOW
    assert complexity_tier(3.1) is ComplexityTier.MEDIUM
    assert complexity_tier(6.0) is ComplexityTier.MEDIUM
    assert complexity_tier(6.1) is ComplexityTier.HIGH
    assert complexity_tier(2.0, low_max=1.0, medium_max=1.5) is ComplexityTier.HIGH


def test_empty_and_missing_index() -> None:
    analysis = analyze(build_index([]))

    assert analysis.distribution == {}
    assert analysis.recommendations == []

    with pytest.raises(IndexUnavailable):
        analyze(None)


def test_distribution_covers_all_entries(sample_index: Index) -> None:
    analysis = ComplexityAnalyzer().analyze(sample_index)

    assert list(analysis.distribution) == ["Low", "Medium", "High"]
    assert sum(analysis.distribution.values()) == sample_index.stats.total
    assert set(analysis.per_entry) == {e.id for e in sample_index.entries}
    assert analysis.average > 0
    assert any("typescript" in trend for trend in analysis.trends)
    assert any("Median example length" in trend for trend in analysis.trends)


def test_high_complexity_recommendation() -> None:
    nested = "\n".join(["async function f() { await g(h(i(j()))); }"] * 40)
    index = build_index([{"id": f"n{i}", "code": nested, "language": "javascript"} for i in range(3)])

    analysis = analyze(index)

    assert analysis.distribution["High"] == 3
    assert any("More than 40% of examples are High complexity" in r for r in analysis.recommendations)
    assert any("simple examples" in r for r in analysis.recommendations)


def test_language_diversity_recommendation() -> None:
    index = build_index([{"id": f"e{i}", "code": "x", "language": "python"} for i in range(5)])

    analysis = analyze(index)

    assert any("Over 80% of examples use python" in r for r in analysis.recommendations)
    assert analysis.distribution["Low"] == 5
    assert not any("simple examples" in r for r in analysis.recommendations)


def test_signal_adoption_trend(sample_blocks) -> None:
    index = build_index([b for b in sample_blocks if b["id"] in {"counter", "card-styles"}])

    analysis = analyze(index)

    assert "Strong adoption of Angular Signals pattern" in analysis.trends
    assert analysis.to_dict()["distribution"] == analysis.distribution


def test_dominant_language_tie_prefers_first_name() -> None:
    blocks = [{"id": f"c{i}", "code": "a {}", "language": "css"} for i in range(2)]
    blocks += [{"id": f"p{i}", "code": "x = 1", "language": "python"} for i in range(2)]

    analysis = analyze(build_index(blocks))

    assert "Most examples are written in css (50%)" in analysis.trends
