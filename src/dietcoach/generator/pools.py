"""Ingredient pool preparation before generation.

Pools are cleaned in a fixed order: duplicates removed, then items whose
name contains an excluded term, then (optionally) items owned by a hard
DROP rule of the user's diet.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence, TypeVar

from dietcoach.generator.models import FlavorPoolItem, IngredientPools, PoolItem
from dietcoach.rules.evaluator import winning_constraint
from dietcoach.rules.models import RuleAction, RuleSet

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=PoolItem)

POOL_CATEGORIES = ("protein", "veg", "fat", "flavor")

_WHITESPACE = re.compile(r"\s+")

FLAVOR_DEFAULT_GRAMS = 2.0
FLAVOR_MIN_GRAMS = 1.0
FLAVOR_MAX_GRAMS = 5.0


def normalize_name(value: str) -> str:
    """Lowercase, collapse whitespace and strip punctuation (letters/digits kept)."""
    collapsed = _WHITESPACE.sub(" ", value.strip().lower())
    return "".join(ch for ch in collapsed if ch.isalnum() or ch.isspace())


def dedupe_pool(items: Sequence[P]) -> tuple[list[P], int]:
    """Remove duplicates by code (or normalized name when the code is blank).

    Returns:
        (kept items, number removed)
    """
    seen: set[str] = set()
    kept: list[P] = []
    for item in items:
        key = item.code.strip() or normalize_name(item.display_name) or "unknown"
        if key in seen:
            continue
        seen.add(key)
        kept.append(item)
    return kept, len(items) - len(kept)


def filter_by_exclude_terms(
    items: Sequence[P], terms: Optional[Iterable[str]]
) -> tuple[list[P], int]:
    """Drop items whose normalized name contains any normalized term."""
    normalized = [t for t in (normalize_name(term) for term in terms or []) if t]
    if not normalized:
        return list(items), 0
    kept = [
        item for item in items
        if not any(term in normalize_name(item.display_name) for term in normalized)
    ]
    return kept, len(items) - len(kept)


@dataclass
class PoolSanitizationMetrics:
    """Counts before/after pool sanitization."""

    before: dict[str, int] = field(default_factory=dict)
    after: dict[str, int] = field(default_factory=dict)
    removed_duplicates: int = 0
    removed_by_exclude_terms: int = 0
    removed_by_guardrail_terms: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "before": dict(self.before),
            "after": dict(self.after),
            "removed_duplicates": self.removed_duplicates,
            "removed_by_exclude_terms": self.removed_by_exclude_terms,
        }
        if self.removed_by_guardrail_terms is not None:
            data["removed_by_guardrail_terms"] = self.removed_by_guardrail_terms
        return data


def sanitize_pools(
    pools: IngredientPools,
    exclude_terms: Optional[Iterable[str]] = None,
    extra_exclude_terms: Optional[Iterable[str]] = None,
) -> tuple[IngredientPools, PoolSanitizationMetrics]:
    """Dedupe and term-filter every pool category.

    Args:
        pools: Input pools (not modified)
        exclude_terms: User exclusions (allergies, dislikes)
        extra_exclude_terms: Additional guardrail terms, counted separately

    Returns:
        (new pools, metrics)
    """
    user_terms = list(exclude_terms or [])
    extra_terms = list(extra_exclude_terms or [])
    metrics = PoolSanitizationMetrics(before=pools.counts())
    removed_by_extra = 0
    cleaned: dict[str, list] = {}

    for category in POOL_CATEGORIES:
        items, dup_removed = dedupe_pool(getattr(pools, category))
        items, user_removed = filter_by_exclude_terms(items, user_terms)
        items, extra_removed = filter_by_exclude_terms(items, extra_terms)
        metrics.removed_duplicates += dup_removed
        metrics.removed_by_exclude_terms += user_removed + extra_removed
        removed_by_extra += extra_removed
        cleaned[category] = items

    result = IngredientPools(**cleaned)
    metrics.after = result.counts()
    if extra_terms and removed_by_extra > 0:
        metrics.removed_by_guardrail_terms = removed_by_extra
    return result, metrics


def filter_pools_by_ruleset(pools: IngredientPools, ruleset: RuleSet) -> IngredientPools:
    """Remove pool items owned by a hard DROP rule.

    Soft DROP items stay in the pool; evaluation reports them as warnings.
    """

    def _allowed(item: PoolItem) -> bool:
        winner = winning_constraint(item.display_name or item.code, ruleset.constraints)
        if winner is None:
            return True
        return not (winner.action == RuleAction.DROP and winner.is_hard)

    filtered = {}
    for category in POOL_CATEGORIES:
        items = getattr(pools, category)
        kept = [item for item in items if _allowed(item)]
        if len(kept) != len(items):
            logger.debug(
                "Removed %d %s item(s) blocked by diet rules", len(items) - len(kept), category
            )
        filtered[category] = kept
    return IngredientPools(**filtered)


def pool_item_from_row(row: dict[str, Any], category: str) -> PoolItem:
    """Convert a pool item row (``code``/``item_key``, ``name``, grams) to a pool item."""
    code = str(row.get("code") or row.get("item_key") or "")
    name = str(row.get("name") or row.get("item_key") or code)
    if category != "flavor":
        return PoolItem(code=code, display_name=name)

    def _grams(key: str, fallback: float) -> float:
        value = row.get(key)
        return float(value) if value is not None else fallback

    return FlavorPoolItem(
        code=code,
        display_name=name,
        default_grams=_grams("default_grams", FLAVOR_DEFAULT_GRAMS),
        min_grams=_grams("min_grams", FLAVOR_MIN_GRAMS),
        max_grams=_grams("max_grams", FLAVOR_MAX_GRAMS),
    )


def merge_pool_rows(
    rows_by_category: dict[str, list[dict[str, Any]]],
    fallback: Optional[IngredientPools] = None,
) -> IngredientPools:
    """Build pools from configured rows, falling back per empty category.

    Args:
        rows_by_category: Configured pool rows keyed by category
        fallback: Pools used for any category without configured rows

    Returns:
        IngredientPools
    """
    fallback = fallback or IngredientPools()
    merged = {}
    for category in POOL_CATEGORIES:
        rows = rows_by_category.get(category) or []
        if rows:
            merged[category] = [pool_item_from_row(row, category) for row in rows]
        else:
            merged[category] = list(getattr(fallback, category))
    return IngredientPools(**merged)
