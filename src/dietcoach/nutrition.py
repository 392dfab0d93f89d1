"""Macro estimates for generated meals.

The generator only depends on the ``NutritionLookup`` protocol. Lookups
are best effort: a failure leaves the meal without an estimate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Protocol

from dietcoach.errors import NutritionLookupError

# Codes with this prefix are seasonings without nutrient data
FLAVOR_CODE_PREFIX = "FLAVOR:"


@dataclass(frozen=True)
class MacroEstimate:
    """Estimated macros for a meal (kcal and grams)."""

    calories: float
    protein: float
    carbs: float
    fat: float

    def to_dict(self) -> dict[str, float]:
        return {
            "calories": round(self.calories, 1),
            "protein": round(self.protein, 1),
            "carbs": round(self.carbs, 1),
            "fat": round(self.fat, 1),
        }


@dataclass(frozen=True)
class NutrientProfile:
    """Nutrients per 100 g of an ingredient."""

    calories: float
    protein: float
    carbs: float
    fat: float


class NutritionLookup(Protocol):
    """Computes macros for a list of (code, grams) pairs."""

    def compute_macros(self, items: list[tuple[str, float]]) -> MacroEstimate:
        ...


def is_flavor_code(code: str) -> bool:
    return code.startswith(FLAVOR_CODE_PREFIX)


def sum_macros(
    items: Iterable[tuple[str, float]],
    profiles: Mapping[str, NutrientProfile],
) -> MacroEstimate:
    """Sum per-100g nutrient profiles scaled by grams.

    Raises:
        NutritionLookupError: If any code has no profile
    """
    calories = protein = carbs = fat = 0.0
    missing: list[str] = []
    for code, grams in items:
        profile = profiles.get(code)
        if profile is None:
            missing.append(code)
            continue
        factor = grams / 100.0
        calories += profile.calories * factor
        protein += profile.protein * factor
        carbs += profile.carbs * factor
        fat += profile.fat * factor
    if missing:
        raise NutritionLookupError(
            f"No nutrient data for {len(missing)} ingredient(s)",
            details={"codes": missing},
        )
    return MacroEstimate(calories=calories, protein=protein, carbs=carbs, fat=fat)


class TableNutritionLookup:
    """In-memory lookup over a code -> NutrientProfile table."""

    def __init__(self, profiles: Mapping[str, NutrientProfile]):
        self.profiles = dict(profiles)

    def compute_macros(self, items: list[tuple[str, float]]) -> MacroEstimate:
        return sum_macros(items, self.profiles)
