"""Related-item scoring from shared categories and tags."""

from __future__ import annotations

from collections.abc import Iterable

from listing_store.constants import (
    DEFAULT_SIMILAR_LIMIT,
    SIMILARITY_CATEGORY_WEIGHT,
    SIMILARITY_TAG_WEIGHT,
)
from listing_store.content.models import ItemData


def similarity_score(a: ItemData, b: ItemData) -> float:
    """Weighted Jaccard overlap of category and tag ids, in ``[0, 1]``."""

    if a.slug == b.slug:
        return 0.0
    category_score = _jaccard(a.category_ids(), b.category_ids())
    tag_score = _jaccard(a.tag_ids(), b.tag_ids())
    score = SIMILARITY_CATEGORY_WEIGHT * category_score + SIMILARITY_TAG_WEIGHT * tag_score
    return min(1.0, max(0.0, score))


def rank_similar(
    target: ItemData,
    items: Iterable[ItemData],
    limit: int = DEFAULT_SIMILAR_LIMIT,
) -> list[tuple[ItemData, float]]:
    if limit <= 0:
        return []
    scored = [
        (item, score)
        for item in items
        if item.slug != target.slug and (score := similarity_score(target, item)) > 0.0
    ]
    scored.sort(key=lambda pair: (-pair[1], 0 if pair[0].featured else 1, pair[0].slug))
    return scored[:limit]


def _jaccard(left: Iterable[str], right: Iterable[str]) -> float:
    left_set = set(left)
    right_set = set(right)
    union = left_set | right_set
    if not union:
        return 0.0
    return len(left_set & right_set) / len(union)


__all__ = ["rank_similar", "similarity_score"]
