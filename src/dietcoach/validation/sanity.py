"""Post-generation sanity checks for a finished plan.

The validator never modifies or rejects a plan. It returns a flat list of
issues and leaves it to the caller to decide whether to regenerate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from dietcoach.generator.models import Meal, Plan


class SanityIssueCode(Enum):
    EMPTY_NAME = "EMPTY_NAME"
    PLACEHOLDER_NAME = "PLACEHOLDER_NAME"
    INGREDIENT_COUNT_OUT_OF_RANGE = "INGREDIENT_COUNT_OUT_OF_RANGE"
    INGREDIENT_QTY_OUT_OF_RANGE = "INGREDIENT_QTY_OUT_OF_RANGE"
    MISSING_CODE = "MISSING_CODE"
    DUPLICATE_INGREDIENT = "DUPLICATE_INGREDIENT"
    EMPTY_DAY = "EMPTY_DAY"


PLACEHOLDER_NAMES = frozenset(
    {
        "tbd",
        "n/a",
        "na",
        "meal",
        "recipe",
        "recept",
        "unknown",
        "breakfast",
        "lunch",
        "dinner",
        "ontbijt",
        "diner",
        "avondeten",
    }
)

MIN_INGREDIENTS = 1
MAX_INGREDIENTS = 10
MIN_GRAMS = 1
MAX_GRAMS = 400


@dataclass(frozen=True)
class SanityIssue:
    code: SanityIssueCode
    message: str
    meal_id: Optional[str] = None
    date: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "meal_id": self.meal_id,
            "date": self.date,
        }


@dataclass
class SanityResult:
    ok: bool
    issues: list[SanityIssue] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok

    def count(self, code: SanityIssueCode) -> int:
        return sum(1 for issue in self.issues if issue.code == code)

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "issues": [i.to_dict() for i in self.issues]}


def is_placeholder_name(name: str) -> bool:
    """Blank, stoplisted, or two characters or shorter."""
    normalized = name.strip().lower()
    return not normalized or normalized in PLACEHOLDER_NAMES or len(normalized) <= 2


def validate_meal(meal: Meal, day_date: str) -> list[SanityIssue]:
    """Check one meal's name, ingredient count, codes and quantities."""
    issues: list[SanityIssue] = []

    def _issue(code: SanityIssueCode, message: str) -> None:
        issues.append(SanityIssue(code=code, message=message, meal_id=meal.id, date=day_date))

    name = meal.name.strip()
    if not name:
        _issue(SanityIssueCode.EMPTY_NAME, "Meal name is empty")
    elif is_placeholder_name(name):
        _issue(
            SanityIssueCode.PLACEHOLDER_NAME,
            f'Meal name looks like a placeholder: "{name[:30]}"',
        )

    refs = meal.ingredient_refs
    if not MIN_INGREDIENTS <= len(refs) <= MAX_INGREDIENTS:
        _issue(
            SanityIssueCode.INGREDIENT_COUNT_OUT_OF_RANGE,
            f"Ingredient count {len(refs)} must be between {MIN_INGREDIENTS} and {MAX_INGREDIENTS}",
        )

    seen: set[str] = set()
    for index, ref in enumerate(refs):
        code = ref.code.strip()
        if not code:
            _issue(SanityIssueCode.MISSING_CODE, f"Ingredient at index {index} has no code")
            continue
        if code in seen:
            _issue(SanityIssueCode.DUPLICATE_INGREDIENT, f"Duplicate ingredient in meal: {code}")
        seen.add(code)
        if not MIN_GRAMS <= ref.grams <= MAX_GRAMS:
            _issue(
                SanityIssueCode.INGREDIENT_QTY_OUT_OF_RANGE,
                f"Quantity {ref.grams}g of {code} must be between {MIN_GRAMS} and {MAX_GRAMS}",
            )

    return issues


def validate_plan(plan: Plan) -> SanityResult:
    """Run all sanity checks over a plan.

    Returns:
        SanityResult; ``ok`` is True when no issues were found.
    """
    issues: list[SanityIssue] = []
    for day in plan.days:
        if not day.meals:
            issues.append(
                SanityIssue(code=SanityIssueCode.EMPTY_DAY, message="Day has no meals", date=day.date)
            )
        for meal in day.meals:
            issues.extend(validate_meal(meal, day.date))
    return SanityResult(ok=not issues, issues=issues)
