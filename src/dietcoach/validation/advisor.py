"""Generator tuning advisor.

Looks at a synthesis result, its sanity check and the generator config,
and suggests concrete changes (bigger pools, higher caps, slot tweaks).
Pure and deterministic: at most eight suggestions, warnings first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from dietcoach.generator.models import (
    GeneratorConfig,
    GeneratorLimits,
    IngredientPools,
    SynthesisResult,
)
from dietcoach.validation.sanity import SanityIssueCode, SanityResult

MAX_SUGGESTIONS = 8
MAX_ACTIONS = 3
VEG_MONOTONY_THRESHOLD = 3
CAP_SUGGESTION_CEILING = 5
MIN_PROTEIN_POOL = 3
MIN_VEG_POOL = 3
MIN_FAT_POOL = 2


class Severity(Enum):
    WARN = "warn"
    INFO = "info"


class ActionKind(Enum):
    SETTING = "setting"
    POOL = "pool"
    SLOT = "slot"


@dataclass(frozen=True)
class TuningAction:
    kind: ActionKind
    target: str
    hint: str


@dataclass(frozen=True)
class TuningSuggestion:
    severity: Severity
    code: str
    title: str
    actions: tuple[TuningAction, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "title": self.title,
            "actions": [
                {"kind": a.kind.value, "target": a.target, "hint": a.hint} for a in self.actions
            ],
        }


@dataclass
class AdvisorConfig:
    """The parts of the generator config the advisor looks at."""

    diet_key: str
    pool_counts: dict[str, int]
    limits: GeneratorLimits = field(default_factory=GeneratorLimits)
    has_templates: bool = True

    @classmethod
    def from_config(
        cls, config: GeneratorConfig, pools: IngredientPools, diet_key: str
    ) -> "AdvisorConfig":
        return cls(
            diet_key=diet_key,
            pool_counts=pools.counts(),
            limits=config.limits,
            has_templates=bool(config.templates),
        )


def _repeats_suggestion(result: SynthesisResult, config: AdvisorConfig) -> Optional[TuningSuggestion]:
    quality = result.quality
    if not (
        quality.repeats_forced or quality.protein_repeats_forced or quality.template_repeats_forced
    ):
        return None
    limits = config.limits
    actions = [
        TuningAction(
            ActionKind.POOL,
            f"pools (diet_key={config.diet_key})",
            "Add more protein/veg/fat items to reduce repeats.",
        )
    ]
    if limits.protein_repeat_cap_7d < CAP_SUGGESTION_CEILING:
        actions.append(
            TuningAction(
                ActionKind.SETTING,
                "protein_repeat_cap_7d",
                f"Consider +1 (currently {limits.protein_repeat_cap_7d}).",
            )
        )
    if limits.template_repeat_cap_7d < CAP_SUGGESTION_CEILING:
        actions.append(
            TuningAction(
                ActionKind.SETTING,
                "template_repeat_cap_7d",
                f"Consider +1 (currently {limits.template_repeat_cap_7d}).",
            )
        )
    top_proteins = quality.protein_counts_top[:3]
    if top_proteins:
        listed = ", ".join(f"{code} ({count}x)" for code, count in top_proteins)
        actions.append(TuningAction(ActionKind.POOL, "protein", f"Most repeated: {listed}."))
    top_templates = quality.template_counts[:2]
    if top_templates:
        listed = ", ".join(f"{tid} ({count}x)" for tid, count in top_templates)
        actions.append(TuningAction(ActionKind.SLOT, "templates", f"Most used: {listed}."))
    return TuningSuggestion(
        Severity.WARN, "REPEATS_FORCED", "Forced repeats in plan", tuple(actions[:MAX_ACTIONS])
    )


def _pool_suggestion(config: AdvisorConfig) -> Optional[TuningSuggestion]:
    counts = config.pool_counts
    low = []
    for category, minimum in (
        ("protein", MIN_PROTEIN_POOL),
        ("veg", MIN_VEG_POOL),
        ("fat", MIN_FAT_POOL),
    ):
        count = counts.get(category, 0)
        if count < minimum:
            low.append(f"{category} ({count})")
    if not low:
        return None
    return TuningSuggestion(
        Severity.WARN,
        "POOL_LOW",
        "Pools too small for variety",
        (
            TuningAction(
                ActionKind.POOL,
                f"pools (diet_key={config.diet_key}, category)",
                f"Add at least 5-10 items to: {', '.join(low)}.",
            ),
        ),
    )


def _sanity_suggestions(sanity: SanityResult, config: AdvisorConfig) -> list[TuningSuggestion]:
    codes = {issue.code for issue in sanity.issues}
    out = []
    if SanityIssueCode.INGREDIENT_COUNT_OUT_OF_RANGE in codes:
        actions = [
            TuningAction(
                ActionKind.SETTING,
                "max_ingredients",
                f"Adjust (currently {config.limits.max_ingredients}) or check slot grams.",
            )
        ]
        if config.has_templates:
            actions.append(
                TuningAction(ActionKind.SLOT, "template slots", "Raise veg2/fat default grams if needed.")
            )
        out.append(
            TuningSuggestion(
                Severity.WARN, "SANITY_INGREDIENT_COUNT", "Ingredient count out of range", tuple(actions)
            )
        )
    if SanityIssueCode.PLACEHOLDER_NAME in codes:
        out.append(
            TuningSuggestion(
                Severity.WARN,
                "SANITY_PLACEHOLDER",
                "Placeholder meal names",
                (
                    TuningAction(
                        ActionKind.POOL,
                        f"pools (diet_key={config.diet_key})",
                        "Expand pools for more variety.",
                    ),
                    TuningAction(
                        ActionKind.SLOT, "templates", "Add templates or retry with another seed."
                    ),
                ),
            )
        )
    if SanityIssueCode.EMPTY_DAY in codes:
        out.append(
            TuningSuggestion(
                Severity.WARN,
                "SANITY_EMPTY_DAY",
                "Day without meals",
                (
                    TuningAction(
                        ActionKind.POOL,
                        f"pools (diet_key={config.diet_key})",
                        "Pools or caps too strict; add items.",
                    ),
                    TuningAction(
                        ActionKind.SETTING,
                        "protein_repeat_cap_7d / template_repeat_cap_7d",
                        "Consider raising the caps.",
                    ),
                ),
            )
        )
    return out


def _veg_monotony_suggestion(result: SynthesisResult, config: AdvisorConfig) -> Optional[TuningSuggestion]:
    counts: dict[str, int] = {}
    for meal in result.plan.meals:
        for ref in meal.ingredient_refs[1:3]:
            if ref.code:
                counts[ref.code] = counts.get(ref.code, 0) + 1
    if not any(count >= VEG_MONOTONY_THRESHOLD for count in counts.values()):
        return None
    return TuningSuggestion(
        Severity.INFO,
        "VEG_MONOTONY",
        "Same vegetable repeated often",
        (
            TuningAction(
                ActionKind.POOL,
                f"pools (diet_key={config.diet_key}, category=veg)",
                "Expand the veg pool.",
            ),
            TuningAction(
                ActionKind.SETTING,
                "protein_repeat_cap_7d",
                "Adjust to steer repetition if needed.",
            ),
        ),
    )


def get_tuning_suggestions(
    result: SynthesisResult,
    sanity: Optional[SanityResult],
    config: AdvisorConfig,
) -> list[TuningSuggestion]:
    """Suggest generator tuning for a synthesis result.

    Args:
        result: Synthesis result with quality metrics
        sanity: Sanity check of the plan, if run
        config: Pool sizes and limits used for the run

    Returns:
        Up to eight suggestions, warnings before info
    """
    out: list[TuningSuggestion] = []
    repeats = _repeats_suggestion(result, config)
    if repeats:
        out.append(repeats)
    pools = _pool_suggestion(config)
    if pools:
        out.append(pools)
    if sanity is not None:
        out.extend(_sanity_suggestions(sanity, config))
    monotony = _veg_monotony_suggestion(result, config)
    if monotony:
        out.append(monotony)

    # Stable sort keeps the order within each severity
    out.sort(key=lambda s: 0 if s.severity == Severity.WARN else 1)
    return out[:MAX_SUGGESTIONS]
