"""
Similarity Engine - related examples and near-duplicate detection.

Related examples are ranked by Jaccard similarity of keyword sets with a
small category bonus. Near duplicates compare source text with TF-IDF
cosine similarity across the whole index.
"""

from dataclasses import dataclass
from typing import AbstractSet, Any, Dict, List, Optional, Tuple

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from .error_handling import IndexUnavailable, log_info
from .indexer import Index, IndexEntry

DEFAULT_CATEGORY_BONUS = 0.1
DEFAULT_DUPLICATE_THRESHOLD = 0.9


def jaccard(first: AbstractSet[str], second: AbstractSet[str]) -> float:
    """Intersection over union; two empty sets score 0."""
    union = len(first | second)
    if union == 0:
        return 0.0
    return len(first & second) / union


def similarity(first: IndexEntry, second: IndexEntry, category_bonus: float = DEFAULT_CATEGORY_BONUS) -> float:
    """Keyword Jaccard plus weighted category Jaccard, capped at 1.0."""
    score = jaccard(first.keywords, second.keywords)
    score += category_bonus * jaccard(first.categories, second.categories)
    return min(score, 1.0)


def rank_similar(
    entry: IndexEntry,
    index: Optional[Index],
    limit: int = 5,
    min_similarity: float = 0.0,
    category_bonus: float = DEFAULT_CATEGORY_BONUS,
) -> List[Tuple[IndexEntry, float]]:
    """``(entry, score)`` pairs most similar to ``entry``, best first.

    The entry itself is never returned. Zero scores are always excluded and,
    when ``min_similarity`` is positive, so is anything not above it. Ties
    are broken by title then id.
    """
    if index is None:
        raise IndexUnavailable()

    scored = []
    for candidate in index.entries:
        if candidate.id == entry.id:
            continue
        score = similarity(entry, candidate, category_bonus)
        if score <= 0:
            continue
        if min_similarity > 0 and score <= min_similarity:
            continue
        scored.append((candidate, score))

    scored.sort(key=lambda pair: (-pair[1], pair[0].title, pair[0].id))
    return scored[: max(limit, 0)]


def find_similar(
    entry: IndexEntry,
    index: Optional[Index],
    limit: int = 5,
    min_similarity: float = 0.0,
    category_bonus: float = DEFAULT_CATEGORY_BONUS,
) -> List[IndexEntry]:
    """Entries most similar to ``entry``, best first."""
    return [candidate for candidate, _ in rank_similar(entry, index, limit, min_similarity, category_bonus)]


@dataclass(frozen=True)
class DuplicatePair:
    """Two entries whose source text is nearly identical."""

    first: IndexEntry
    second: IndexEntry
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first": self.first.id,
            "second": self.second.id,
            "first_title": self.first.title,
            "second_title": self.second.title,
            "score": round(self.score, 4),
        }


def find_duplicates(
    index: Optional[Index],
    threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
    verbose: bool = False,
) -> List[DuplicatePair]:
    """Pairs of entries whose source TF-IDF cosine similarity reaches ``threshold``."""
    if index is None:
        raise IndexUnavailable()

    entries = [e for e in index.entries if e.code_block.source_text.strip()]
    if len(entries) < 2:
        return []

    # Identifier-ish tokens so operators and punctuation do not dominate
    vectorizer = TfidfVectorizer(token_pattern=r"[A-Za-z_][A-Za-z0-9_]+", lowercase=True)
    try:
        matrix = vectorizer.fit_transform([e.code_block.source_text for e in entries])
    except ValueError:
        # Empty vocabulary: no entry has an identifier token
        return []

    scores = cosine_similarity(matrix)
    rows, cols = np.triu_indices(len(entries), k=1)

    pairs = []
    for i, j in zip(rows, cols):
        score = float(scores[i, j])
        if score >= threshold:
            first, second = sorted((entries[i], entries[j]), key=lambda e: e.id)
            pairs.append(DuplicatePair(first, second, min(score, 1.0)))

    pairs.sort(key=lambda p: (-p.score, p.first.id, p.second.id))

    if verbose:
        log_info(f"Found {len(pairs)} near-duplicate pairs", "🧬", threshold=threshold, entries=len(entries))
    return pairs
