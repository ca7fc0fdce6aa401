"""
Complexity Analyzer - rule-based complexity tiers for indexed examples.

Scores come from line count, bracket nesting, async/reactive constructs and
keyword density. Recommendations and trends are fixed templates triggered
by threshold crossings.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import numpy as np

from .error_handling import IndexUnavailable, log_info

if TYPE_CHECKING:
    from .indexer import Index

_COMPLEX_CONSTRUCTS = (
    re.compile(r"\basync\b|\bawait\b"),
    re.compile(r"\bObservable\b|\bSubject\b"),
    re.compile(r"\bpipe\s*\("),
    re.compile(r"\b(switchMap|mergeMap|concatMap|exhaustMap)\b"),
)


class ComplexityTier(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


def nesting_level(code: str) -> int:
    """Maximum depth of ``{}``/``()`` nesting in ``code``."""
    max_level = 0
    level = 0
    for char in code:
        if char in "{(":
            level += 1
            max_level = max(max_level, level)
        elif char in "})":
            level = max(level - 1, 0)
    return max_level


def complexity_score(code: str, line_count: Optional[int] = None, keyword_count: int = 0) -> float:
    """Heuristic complexity of a code block, rounded to one decimal."""
    if line_count is None:
        line_count = len(code.split("\n")) if code else 0

    score = 1.0
    score += min(line_count / 10, 5)
    score += nesting_level(code) * 0.5
    for construct in _COMPLEX_CONSTRUCTS:
        score += len(construct.findall(code)) * 0.3
    if line_count:
        score += min(keyword_count / line_count, 1.0)

    return round(score, 1)


def complexity_tier(score: float, low_max: float = 3.0, medium_max: float = 6.0) -> ComplexityTier:
    if score <= low_max:
        return ComplexityTier.LOW
    if score <= medium_max:
        return ComplexityTier.MEDIUM
    return ComplexityTier.HIGH


@dataclass
class ComplexityAnalysis:
    """Distribution of complexity tiers plus generated guidance."""

    distribution: Dict[str, int] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    trends: List[str] = field(default_factory=list)
    average: float = 0.0
    per_entry: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "distribution": dict(self.distribution),
            "recommendations": list(self.recommendations),
            "trends": list(self.trends),
            "average": self.average,
            "per_entry": dict(self.per_entry),
        }


class ComplexityAnalyzer:
    """Aggregates entry complexity into tiers, recommendations and trends."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, verbose: bool = False):
        config = config or {}
        self.low_max = float(config.get("low_max", 3.0))
        self.medium_max = float(config.get("medium_max", 6.0))
        self.verbose = verbose

    def analyze(self, index: Optional["Index"]) -> ComplexityAnalysis:
        if index is None:
            raise IndexUnavailable()

        entries = index.entries
        if not entries:
            return ComplexityAnalysis()

        per_entry = {
            entry.id: complexity_score(
                entry.code_block.source_text,
                entry.code_block.line_count,
                len(entry.keywords),
            )
            for entry in entries
        }
        scores = np.array(list(per_entry.values()), dtype=float)

        counts = Counter(
            complexity_tier(score, self.low_max, self.medium_max).value
            for score in per_entry.values()
        )
        # Tiers always reported in Low/Medium/High order
        distribution = {tier.value: counts.get(tier.value, 0) for tier in ComplexityTier}

        analysis = ComplexityAnalysis(
            distribution=distribution,
            recommendations=self._recommendations(distribution, index),
            trends=self._trends(index),
            average=round(float(scores.mean()), 2),
            per_entry=per_entry,
        )

        if self.verbose:
            log_info(
                "Complexity analysis complete",
                "📊",
                entries=len(entries),
                distribution=distribution,
            )
        return analysis

    def _recommendations(self, distribution: Dict[str, int], index: "Index") -> List[str]:
        recommendations: List[str] = []
        total = sum(distribution.values())

        low_share = distribution.get(ComplexityTier.LOW.value, 0) / total * 100
        high_share = distribution.get(ComplexityTier.HIGH.value, 0) / total * 100

        if low_share < 30:
            recommendations.append("Consider adding more simple examples for beginners")
        if high_share > 40:
            recommendations.append(
                "More than 40% of examples are High complexity - consider simplifying or splitting them"
            )

        by_language = index.stats.by_language
        if total >= 5 and by_language:
            language, count = min(by_language.items(), key=lambda item: (-item[1], item[0]))
            if count / total > 0.8:
                recommendations.append(
                    f"Over 80% of examples use {language} - consider adding examples in other languages"
                )

        line_counts = np.array([e.code_block.line_count for e in index.entries], dtype=float)
        if float(line_counts.mean()) > 50:
            recommendations.append(
                "Examples average more than 50 lines - shorter focused snippets are easier to follow"
            )

        return recommendations

    def _trends(self, index: "Index") -> List[str]:
        trends: List[str] = []
        entries = index.entries
        total = len(entries)

        by_language = index.stats.by_language
        if by_language:
            language, count = min(by_language.items(), key=lambda item: (-item[1], item[0]))
            trends.append(f"Most examples are written in {language} ({count / total:.0%})")

        signal_usage = sum(
            1 for e in entries if "signal" in e.keywords or "computed" in e.keywords
        )
        if signal_usage > total * 0.4:
            trends.append("Strong adoption of Angular Signals pattern")

        median_lines = float(np.median([e.code_block.line_count for e in entries]))
        trends.append(f"Median example length is {median_lines:g} lines")

        if index.stats.most_used_patterns:
            top = index.stats.most_used_patterns[0]
            trends.append(
                f"'{top['pattern']}' is the most common pattern ({top['count']} examples)"
            )

        return trends


def analyze(index: Optional["Index"], config: Optional[Dict[str, Any]] = None) -> ComplexityAnalysis:
    """Analyze ``index`` with default (or given) tier thresholds."""
    return ComplexityAnalyzer(config).analyze(index)
