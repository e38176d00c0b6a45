"""
Cosine similarity scoring and ranking.

Scoring never fails: zero-norm and mismatched vectors score 0.0, meaning
"no similarity".
"""

import math
from typing import Sequence

from vectorpipe.models.schema import SearchResult, VectorEntry


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Compute the cosine similarity of two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 if either vector has zero norm, the
        dimensions differ, or the score is not finite
    """
    if len(a) != len(b) or not a:
        return 0.0

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0

    score = dot / (norm_a * norm_b)
    # NaN or infinite components leave nothing to compare
    if not math.isfinite(score):
        return 0.0
    # Rounding can push the ratio just outside [-1, 1]
    return max(-1.0, min(1.0, score))


def rank(
    query_vector: Sequence[float],
    entries: Sequence[VectorEntry],
    limit: int,
    threshold: float = 0.0,
) -> list[SearchResult]:
    """
    Score entries against a query vector and return the best matches.

    Ties keep insertion order (earliest first) because the sort is stable.

    Args:
        query_vector: Embedding of the query
        entries: Stored entries in insertion order
        limit: Maximum number of results
        threshold: Minimum score to keep; 0 disables filtering

    Returns:
        At most ``limit`` results sorted by descending score
    """
    scored = [
        SearchResult(
            text=entry.text,
            score=cosine_similarity(query_vector, entry.vector),
            position=position,
        )
        for position, entry in enumerate(entries)
    ]

    if threshold > 0:
        scored = [result for result in scored if result.score >= threshold]

    scored.sort(key=lambda result: result.score, reverse=True)
    return scored[: max(limit, 0)]
