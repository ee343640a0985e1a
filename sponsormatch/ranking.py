from typing import Iterable, List

from .models import ScoredMatch

DEFAULT_RESULT_LIMIT = 20


def rank_matches(matches: Iterable[ScoredMatch], limit: int = DEFAULT_RESULT_LIMIT) -> List[ScoredMatch]:
    """
    Order matches best first and keep the top ``limit``.

    Python's sort is stable, so equal scores keep their pool order.

    Raises:
        ValueError: If limit is less than 1
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1 (got {limit})")
    ranked = sorted(matches, key=lambda m: m.compatibility_score, reverse=True)
    return ranked[:limit]
