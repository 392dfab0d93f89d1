"""Variety scorecard for a finished plan.

Counts unique vegetables, fruits and proteins (keyword heuristics, Dutch
and English) and the maximal repeat of one meal name within a sliding
window of days. Targets are defined per week and scaled down for shorter
plans. The scorecard is reporting only; call
``raise_if_variety_targets_not_met`` to enforce it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from dietcoach.errors import GeneratorConfigError, VarietyTargetsNotMetError
from dietcoach.generator.models import Meal, Plan

REFERENCE_DAYS = 7
TOP_REPEATS = 10

VEG_TERMS = frozenset(
    {
        "groente", "groenten", "tomaten", "tomaat", "wortel", "wortelen", "ui",
        "uien", "knoflook", "paprika", "courgette", "aubergine", "spinazie",
        "sla", "broccoli", "bloemkool", "boerenkool", "andijvie", "prei",
        "bleekselderij", "komkommer", "radijs", "biet", "bieten",
        "vegetable", "tomato", "carrot", "onion", "garlic", "pepper",
        "spinach", "lettuce", "cauliflower", "kale", "zucchini", "eggplant",
        "cucumber", "celery", "leek", "beetroot", "beans",
    }
)

FRUIT_TERMS = frozenset(
    {
        "fruit", "appel", "appels", "banaan", "bananen", "sinaasappel",
        "citroen", "limoen", "peer", "peren", "druif", "druiven", "bes",
        "bessen", "aardbei", "aardbeien", "framboos", "blauwe bes", "mango",
        "ananas", "kiwi", "apple", "banana", "orange", "lemon", "lime",
        "pear", "grape", "berry", "berries", "strawberry", "raspberry",
        "blueberry", "pineapple",
    }
)

PROTEIN_TERMS = frozenset(
    {
        "kip", "kipfilet", "kipfilets", "vlees", "rund", "varken", "gehakt",
        "ei", "eieren", "vis", "zalm", "tonijn", "kabeljauw", "forel", "tofu",
        "tempeh", "linzen", "kikkererwten", "bonen", "quorn", "chicken",
        "beef", "pork", "egg", "fish", "salmon", "tuna", "cod", "lentil",
        "chickpea", "bean", "beans",
    }
)


@dataclass(frozen=True)
class VarietyTargets:
    """Weekly variety targets."""

    unique_veg_min: int = 5
    unique_fruit_min: int = 3
    protein_rotation_min_categories: int = 3
    max_repeat_same_recipe_within_days: int = 7

    def scaled(self, num_days: int) -> "VarietyTargets":
        """Scale minimums to a plan of ``num_days`` (never below 1).

        The repeat window is capped at the plan length.
        """
        days = max(1, num_days)
        scale = min(1.0, days / REFERENCE_DAYS)
        return VarietyTargets(
            unique_veg_min=max(1, math.ceil(self.unique_veg_min * scale)),
            unique_fruit_min=max(1, math.ceil(self.unique_fruit_min * scale)),
            protein_rotation_min_categories=max(
                1, math.ceil(self.protein_rotation_min_categories * scale)
            ),
            max_repeat_same_recipe_within_days=min(
                self.max_repeat_same_recipe_within_days, days
            ),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "unique_veg_min": self.unique_veg_min,
            "unique_fruit_min": self.unique_fruit_min,
            "protein_rotation_min_categories": self.protein_rotation_min_categories,
            "max_repeat_same_recipe_within_days": self.max_repeat_same_recipe_within_days,
        }


@dataclass
class VarietyScorecard:
    status: str  # "ok" or "unavailable"
    unique_veg_count: int = 0
    unique_fruit_count: int = 0
    protein_unique_count: int = 0
    max_repeat_within_days: int = 0
    repeat_window_days: int = 0
    targets: Optional[VarietyTargets] = None
    meets_unique_veg_min: bool = False
    meets_unique_fruit_min: bool = False
    meets_protein_rotation: bool = False
    meets_repeat_window: Optional[bool] = None
    top_repeats: list[tuple[str, int]] = field(default_factory=list)

    @property
    def meets_all(self) -> bool:
        return (
            self.status == "ok"
            and self.meets_unique_veg_min
            and self.meets_unique_fruit_min
            and self.meets_protein_rotation
            and self.meets_repeat_window is not False
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "unique_veg_count": self.unique_veg_count,
            "unique_fruit_count": self.unique_fruit_count,
            "protein_unique_count": self.protein_unique_count,
            "max_repeat_within_days": self.max_repeat_within_days,
            "repeat_window_days": self.repeat_window_days,
            "targets": self.targets.to_dict() if self.targets else None,
            "meets_targets": {
                "unique_veg_min": self.meets_unique_veg_min,
                "unique_fruit_min": self.meets_unique_fruit_min,
                "protein_rotation": self.meets_protein_rotation,
                "repeat_window": self.meets_repeat_window,
            },
            "top_repeats": [{"name": n, "count": c} for n, c in self.top_repeats],
        }


def _normalize_key(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def ingredient_keys(meal: Meal) -> list[str]:
    """Distinct ingredient keys of a meal (display name, else code)."""
    keys: list[str] = []
    for ref in meal.ingredient_refs:
        key = _normalize_key(ref.display_name) or _normalize_key(ref.code)
        if key and key not in keys:
            keys.append(key)
    return keys


def _matches_any(key: str, terms: Iterable[str]) -> bool:
    return any(term in key or key in term for term in terms)


def is_vegetable(key: str) -> bool:
    return _matches_any(key, VEG_TERMS)


def is_fruit(key: str) -> bool:
    return _matches_any(key, FRUIT_TERMS)


def is_protein(key: str) -> bool:
    return _matches_any(key, PROTEIN_TERMS)


def max_repeat_within_days(plan: Plan, window_days: int) -> tuple[int, list[tuple[str, int]]]:
    """Max count of one meal name in any window of consecutive days.

    Returns:
        (max repeat, top repeated names over the whole plan)
    """
    days = sorted(plan.days, key=lambda d: d.date)
    if window_days < 1 or not days:
        return 0, []

    window = min(window_days, len(days))
    max_repeat = 0
    for start in range(len(days) - window + 1):
        counts: dict[str, int] = {}
        for day in days[start : start + window]:
            for meal in day.meals:
                name = _normalize_key(meal.name) or "unknown"
                counts[name] = counts.get(name, 0) + 1
        if counts:
            max_repeat = max(max_repeat, max(counts.values()))

    totals: dict[str, int] = {}
    for day in days:
        for meal in day.meals:
            name = _normalize_key(meal.name) or "unknown"
            totals[name] = totals.get(name, 0) + 1
    repeated = sorted(
        ((n, c) for n, c in totals.items() if c > 1), key=lambda kv: -kv[1]
    )
    return max_repeat, repeated[:TOP_REPEATS]


def build_variety_scorecard(plan: Plan, targets: Optional[VarietyTargets]) -> VarietyScorecard:
    """Build a variety scorecard; ``status`` is "unavailable" without targets."""
    if targets is None:
        return VarietyScorecard(status="unavailable")

    scaled = targets.scaled(len(plan.days))
    veg: set[str] = set()
    fruit: set[str] = set()
    protein: set[str] = set()
    for meal in plan.meals:
        for key in ingredient_keys(meal):
            if is_vegetable(key):
                veg.add(key)
            if is_fruit(key):
                fruit.add(key)
            if is_protein(key):
                protein.add(key)

    window = scaled.max_repeat_same_recipe_within_days
    max_repeat, top = max_repeat_within_days(plan, window)
    return VarietyScorecard(
        status="ok",
        unique_veg_count=len(veg),
        unique_fruit_count=len(fruit),
        protein_unique_count=len(protein),
        max_repeat_within_days=max_repeat,
        repeat_window_days=window,
        targets=scaled,
        meets_unique_veg_min=len(veg) >= scaled.unique_veg_min,
        meets_unique_fruit_min=len(fruit) >= scaled.unique_fruit_min,
        meets_protein_rotation=len(protein) >= scaled.protein_rotation_min_categories,
        meets_repeat_window=max_repeat <= 1,
        top_repeats=top,
    )


def raise_if_variety_targets_not_met(scorecard: Optional[VarietyScorecard]) -> None:
    """Raise when a scorecard misses a target.

    Raises:
        GeneratorConfigError: If the scorecard is unavailable (no targets)
        VarietyTargetsNotMetError: If any target is not met
    """
    if scorecard is None:
        return
    if scorecard.status != "ok":
        raise GeneratorConfigError(
            "Variety targets are not configured.",
            details={"reason": "variety_scorecard_unavailable"},
        )
    if scorecard.meets_all:
        return
    data = scorecard.to_dict()
    raise VarietyTargetsNotMetError(
        "Plan does not meet the variety targets (vegetables, fruit, protein or repeats). "
        "Add more recipes or adjust the variety targets.",
        details={k: data[k] for k in (
            "unique_veg_count",
            "unique_fruit_count",
            "protein_unique_count",
            "max_repeat_within_days",
            "targets",
            "meets_targets",
        )},
    )
