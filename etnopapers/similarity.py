"""String and record similarity based on Levenshtein distance"""
import re
from typing import List, Optional, Sequence

import numpy as np

from .config import AUTHOR_MATCH_THRESHOLD, AUTHOR_WEIGHT, TITLE_WEIGHT, YEAR_WEIGHT
from .models import ArticleRecord

_WHITESPACE = re.compile(r"\s+")


def normalize_for_comparison(text: Optional[str]) -> str:
    """Lowercase, trim and collapse internal whitespace"""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.lower().strip())


def levenshtein_distance(a: str, b: str) -> int:
    """Classic dynamic-programming edit distance"""
    len_a, len_b = len(a), len(b)
    d = np.zeros((len_a + 1, len_b + 1), dtype=np.int64)
    d[:, 0] = np.arange(len_a + 1)
    d[0, :] = np.arange(len_b + 1)

    for i in range(1, len_a + 1):
        for j in range(1, len_b + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            d[i, j] = min(
                d[i - 1, j] + 1,         # deletion
                d[i, j - 1] + 1,         # insertion
                d[i - 1, j - 1] + cost,  # substitution
            )

    return int(d[len_a, len_b])


def string_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Similarity in [0, 1]: 1 - distance / longest length.

    Both strings are normalized first; two empty strings are identical.
    """
    norm_a = normalize_for_comparison(a)
    norm_b = normalize_for_comparison(b)

    max_length = max(len(norm_a), len(norm_b))
    if max_length == 0:
        return 1.0

    distance = levenshtein_distance(norm_a, norm_b)
    return 1.0 - distance / max_length


def has_common_author(authors_a: Sequence[str], authors_b: Sequence[str],
                      threshold: float = AUTHOR_MATCH_THRESHOLD) -> bool:
    """True if any pair of authors is at least `threshold` similar"""
    for author_a in authors_a:
        for author_b in authors_b:
            if string_similarity(author_a, author_b) >= threshold:
                return True
    return False


def _non_empty(values: Sequence[Optional[str]]) -> List[str]:
    return [v for v in values if v and v.strip()]


def record_similarity(record_a: ArticleRecord, record_b: ArticleRecord,
                      author_threshold: float = AUTHOR_MATCH_THRESHOLD) -> float:
    """
    Weighted similarity between two records in [0, 1].

    Combines, over the factors present in both records only:
    - Title similarity (weight 0.6)
    - Exact year match (weight 0.2)
    - At least one shared author (weight 0.2)

    The result is the weighted average over applicable factors; with no
    applicable factor the score is 0.
    """
    scores = []

    if (record_a.title or "").strip() and (record_b.title or "").strip():
        scores.append(('title', string_similarity(record_a.title, record_b.title), TITLE_WEIGHT))

    if record_a.year is not None and record_b.year is not None:
        year_match = 1.0 if record_a.year == record_b.year else 0.0
        scores.append(('year', year_match, YEAR_WEIGHT))

    authors_a = _non_empty(record_a.authors)
    authors_b = _non_empty(record_b.authors)
    if authors_a and authors_b:
        author_match = 1.0 if has_common_author(authors_a, authors_b, author_threshold) else 0.0
        scores.append(('authors', author_match, AUTHOR_WEIGHT))

    total_weight = sum(weight for _, _, weight in scores)
    if total_weight == 0:
        return 0.0

    weighted = sum(weight * score for _, score, weight in scores)
    return min(1.0, max(0.0, weighted / total_weight))
