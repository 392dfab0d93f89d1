"""Data models for template-based meal plan generation.

A plan is built from two kinds of static input:

1. Ingredient pools: whitelisted protein, vegetable, fat and flavor items
2. Recipe templates: a fixed slot structure (protein, two vegetables, fat)
   with gram bounds per slot

The generator picks one pool item per slot, adds optional flavor items,
and names the meal. Drafts become full meals only once selected.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Iterator, Optional

from dietcoach.nutrition import MacroEstimate


class SlotRole(Enum):
    """Structural ingredient slots of a recipe template."""

    PROTEIN = "protein"
    VEG1 = "veg1"
    VEG2 = "veg2"
    FAT = "fat"

    @classmethod
    def parse(cls, value: str) -> "SlotRole":
        """Parse a slot key, accepting ``vegetable1``/``vegetable2`` aliases."""
        key = value.strip().lower()
        aliases = {"vegetable1": "veg1", "vegetable2": "veg2"}
        return cls(aliases.get(key, key))


@dataclass(frozen=True)
class TemplateSlot:
    """Quantity bounds for one template slot.

    Attributes:
        role: Which structural slot this is
        default_grams: Preferred portion
        min_grams: Lower bound
        max_grams: Upper bound
    """

    role: SlotRole
    default_grams: float
    min_grams: float
    max_grams: float

    def __post_init__(self) -> None:
        if self.min_grams > self.max_grams:
            raise ValueError(
                f"Slot {self.role.value}: min_grams {self.min_grams} > max_grams {self.max_grams}"
            )

    def clamp(self) -> float:
        """Default grams clamped to [min_grams, max_grams]."""
        return max(self.min_grams, min(self.max_grams, self.default_grams))


# Bounds used when a template does not define a slot
DEFAULT_SLOT_BOUNDS: dict[SlotRole, TemplateSlot] = {
    SlotRole.PROTEIN: TemplateSlot(SlotRole.PROTEIN, 120, 50, 200),
    SlotRole.VEG1: TemplateSlot(SlotRole.VEG1, 80, 30, 150),
    SlotRole.VEG2: TemplateSlot(SlotRole.VEG2, 60, 30, 120),
    SlotRole.FAT: TemplateSlot(SlotRole.FAT, 10, 5, 25),
}


@dataclass(frozen=True)
class RecipeTemplate:
    """A recipe template: fixed slot structure plus portion bounds.

    Attributes:
        id: Template key (e.g. "bowl")
        display_name: Name used in meal names
        slots: Structural slots in order
        step_count: Number of preparation steps (informational)
    """

    id: str
    display_name: str
    slots: tuple[TemplateSlot, ...] = ()
    step_count: int = 0

    def slot_for(self, role: SlotRole) -> TemplateSlot:
        """Return the slot for a role, or the default bounds if undefined."""
        for slot in self.slots:
            if slot.role == role:
                return slot
        return DEFAULT_SLOT_BOUNDS[role]

    def missing_roles(self) -> list[SlotRole]:
        defined = {s.role for s in self.slots}
        return [role for role in SlotRole if role not in defined]


@dataclass(frozen=True)
class PoolItem:
    """One whitelisted ingredient."""

    code: str
    display_name: str


@dataclass(frozen=True)
class FlavorPoolItem(PoolItem):
    """A flavor item (herb, spice, acid) with its own gram bounds."""

    default_grams: float = 2.0
    min_grams: float = 1.0
    max_grams: float = 5.0

    def clamp(self) -> float:
        return max(self.min_grams, min(self.max_grams, self.default_grams))


@dataclass
class IngredientPools:
    """Whitelisted ingredients per category for one generation run."""

    protein: list[PoolItem] = field(default_factory=list)
    veg: list[PoolItem] = field(default_factory=list)
    fat: list[PoolItem] = field(default_factory=list)
    flavor: list[FlavorPoolItem] = field(default_factory=list)

    def empty_structural(self) -> list[str]:
        """Names of the required pools (protein, veg) that are empty."""
        return [name for name in ("protein", "veg") if not getattr(self, name)]

    def counts(self) -> dict[str, int]:
        return {
            "protein": len(self.protein),
            "veg": len(self.veg),
            "fat": len(self.fat),
            "flavor": len(self.flavor),
        }


@dataclass(frozen=True)
class GeneratorLimits:
    """Per-run generator limits and weekly repeat caps."""

    max_ingredients: int = 10
    max_flavor_items: int = 2
    signature_retry_limit: int = 8
    protein_repeat_cap_7d: int = 2
    template_repeat_cap_7d: int = 3

    def __post_init__(self) -> None:
        if self.max_ingredients < 1:
            raise ValueError("max_ingredients must be at least 1")
        if self.max_flavor_items < 0:
            raise ValueError("max_flavor_items cannot be negative")
        if self.signature_retry_limit < 1:
            raise ValueError("signature_retry_limit must be at least 1")

    def to_dict(self) -> dict[str, int]:
        return {
            "max_ingredients": self.max_ingredients,
            "max_flavor_items": self.max_flavor_items,
            "signature_retry_limit": self.signature_retry_limit,
            "protein_repeat_cap_7d": self.protein_repeat_cap_7d,
            "template_repeat_cap_7d": self.template_repeat_cap_7d,
        }


@dataclass(frozen=True)
class NamePattern:
    """Meal name pattern for a (template, meal slot) pair."""

    template_key: str
    slot: str
    pattern: str


@dataclass
class GeneratorConfig:
    """Templates, limits and name patterns for one generation run.

    ``pool_rows`` holds configured pool item rows per category, as loaded
    from storage; ``merge_pool_rows`` turns them into pools.
    """

    templates: list[RecipeTemplate]
    limits: GeneratorLimits = field(default_factory=GeneratorLimits)
    name_patterns: list[NamePattern] = field(default_factory=list)
    pool_rows: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    def patterns_for(self, template_key: str, slot: str) -> list[NamePattern]:
        return [
            p for p in self.name_patterns
            if p.template_key == template_key and p.slot == slot
        ]


@dataclass(frozen=True)
class PlanRequest:
    """What to generate: an inclusive date range and meal slots per day."""

    start: date
    end: date
    slots: tuple[str, ...] = ("breakfast", "lunch", "dinner")
    diet_key: str = "default"

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"end date {self.end} is before start date {self.start}")
        if not self.slots:
            raise ValueError("At least one meal slot is required")

    @classmethod
    def for_days(
        cls,
        start: date,
        days: int,
        slots: tuple[str, ...] = ("breakfast", "lunch", "dinner"),
        diet_key: str = "default",
    ) -> "PlanRequest":
        if days < 1:
            raise ValueError("days must be at least 1")
        return cls(start=start, end=start + timedelta(days=days - 1), slots=slots, diet_key=diet_key)

    def dates(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)


@dataclass(frozen=True)
class MealIngredientRef:
    """An ingredient in a meal: pool code, grams and display name."""

    code: str
    grams: float
    display_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "grams": self.grams, "display_name": self.display_name}


@dataclass(frozen=True)
class MealDraft:
    """A candidate meal before it is selected for a slot."""

    name: str
    ingredient_refs: tuple[MealIngredientRef, ...]

    @property
    def protein_code(self) -> str:
        return self.ingredient_refs[0].code if self.ingredient_refs else ""


@dataclass(frozen=True)
class Meal:
    """A generated meal with id and optional macro estimate."""

    id: str
    name: str
    slot: str
    date: str
    ingredient_refs: tuple[MealIngredientRef, ...]
    macros: Optional[MacroEstimate] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slot": self.slot,
            "date": self.date,
            "ingredient_refs": [r.to_dict() for r in self.ingredient_refs],
            "macros": self.macros.to_dict() if self.macros else None,
        }


@dataclass(frozen=True)
class Day:
    """One plan day (ISO date string) and its meals."""

    date: str
    meals: tuple[Meal, ...] = ()


@dataclass(frozen=True)
class PlanMetadata:
    generated_at: str
    diet_key: str
    total_days: int
    total_meals: int


@dataclass(frozen=True)
class Plan:
    """A finished multi-day meal plan.

    Plans are never edited in place; build a new Plan instead.
    """

    request_id: str
    days: tuple[Day, ...]
    metadata: PlanMetadata

    @property
    def meals(self) -> list[Meal]:
        return [meal for day in self.days for meal in day.meals]

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "days": [
                {"date": day.date, "meals": [m.to_dict() for m in day.meals]}
                for day in self.days
            ],
            "metadata": {
                "generated_at": self.metadata.generated_at,
                "diet_key": self.metadata.diet_key,
                "total_days": self.metadata.total_days,
                "total_meals": self.metadata.total_meals,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Plan":
        """Rebuild a Plan from ``to_dict`` output (e.g. a saved JSON file).

        Raises:
            ValueError: If ``data`` is not a mapping
        """
        if not isinstance(data, dict):
            raise ValueError(f"Plan data must be an object, got {type(data).__name__}")
        days = []
        for day_data in data.get("days") or []:
            day_date = str(day_data.get("date") or "")
            meals = []
            for meal_data in day_data.get("meals") or []:
                refs = tuple(
                    MealIngredientRef(
                        code=str(r.get("code") or ""),
                        grams=float(r.get("grams") or 0),
                        display_name=str(r.get("display_name") or ""),
                    )
                    for r in meal_data.get("ingredient_refs") or []
                )
                macros_data = meal_data.get("macros")
                macros = MacroEstimate(**macros_data) if macros_data else None
                meals.append(
                    Meal(
                        id=str(meal_data.get("id") or ""),
                        name=str(meal_data.get("name") or ""),
                        slot=str(meal_data.get("slot") or ""),
                        date=str(meal_data.get("date") or day_date),
                        ingredient_refs=refs,
                        macros=macros,
                    )
                )
            days.append(Day(date=day_date, meals=tuple(meals)))

        meta = data.get("metadata") or {}
        return cls(
            request_id=str(data.get("request_id") or ""),
            days=tuple(days),
            metadata=PlanMetadata(
                generated_at=str(meta.get("generated_at") or ""),
                diet_key=str(meta.get("diet_key") or "default"),
                total_days=int(meta.get("total_days", len(days))),
                total_meals=int(meta.get("total_meals", sum(len(d.meals) for d in days))),
            ),
        )


@dataclass
class QualityMetrics:
    """Diagnostic counters collected during synthesis.

    Attributes:
        repeats_avoided: Drafts that needed a retry to get a fresh signature
        repeats_forced: Drafts that kept a used signature after all retries
        protein_repeats_forced: Meals chosen with a protein at/over its weekly cap
        template_repeats_forced: Meals chosen with a template at/over its weekly cap
        veg_monotony_avoided: Vegetable picks that went to a least-used vegetable
        protein_counts_top: Most used proteins as (code, count), max 5
        template_counts: Template usage as (template id, count)
    """

    repeats_avoided: int = 0
    repeats_forced: int = 0
    protein_repeats_forced: int = 0
    template_repeats_forced: int = 0
    veg_monotony_avoided: int = 0
    protein_counts_top: list[tuple[str, int]] = field(default_factory=list)
    template_counts: list[tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "repeats_avoided": self.repeats_avoided,
            "repeats_forced": self.repeats_forced,
            "protein_repeats_forced": self.protein_repeats_forced,
            "template_repeats_forced": self.template_repeats_forced,
            "veg_monotony_avoided": self.veg_monotony_avoided,
            "protein_counts_top": [
                {"code": code, "count": count} for code, count in self.protein_counts_top
            ],
            "template_counts": [
                {"id": tid, "count": count} for tid, count in self.template_counts
            ],
        }


@dataclass(frozen=True)
class MealQuality:
    """Why a candidate won its slot."""

    date: str
    slot: str
    score: int
    reasons: tuple[str, ...] = ()


@dataclass
class SynthesisResult:
    """A generated plan plus diagnostics."""

    plan: Plan
    rotation: list[str]
    used_template_ids: list[str]
    quality: QualityMetrics
    meal_qualities: list[MealQuality] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "rotation": list(self.rotation),
            "used_template_ids": list(self.used_template_ids),
            "quality": self.quality.to_dict(),
            "meal_qualities": [
                {"date": q.date, "slot": q.slot, "score": q.score, "reasons": list(q.reasons)}
                for q in self.meal_qualities
            ],
        }
