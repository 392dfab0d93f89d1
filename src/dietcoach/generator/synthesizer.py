"""Assemble a multi-day meal plan from template drafts.

For every date and meal slot the synthesizer takes the next template in
rotation, generates five candidate drafts with different seeds, scores
them against the weekly repeat caps and keeps the best one. Weekly usage
lives in a ``WeeklyUsage`` accumulator owned by a single ``synthesize``
call, so concurrent calls never share state.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Optional, Protocol

from dietcoach.errors import GeneratorConfigError, InsufficientIngredientsError
from dietcoach.generator.draft import build_signature, generate_draft
from dietcoach.generator.models import (
    Day,
    GeneratorConfig,
    IngredientPools,
    Meal,
    MealDraft,
    MealQuality,
    Plan,
    PlanMetadata,
    PlanRequest,
    QualityMetrics,
    SynthesisResult,
)
from dietcoach.nutrition import NutritionLookup, is_flavor_code

logger = logging.getLogger(__name__)

NUM_CANDIDATES = 5
TOP_PROTEIN_COUNTS = 5
MAX_REASONS = 3


class UsageHistory(Protocol):
    """Historical usage counts per ingredient code for one pool category."""

    def usage_counts(self, category: str) -> dict[str, int]:
        ...


def _bump(counts: dict[str, int], key: str) -> None:
    counts[key] = counts.get(key, 0) + 1


@dataclass
class WeeklyUsage:
    """Running usage counters for one synthesis call."""

    protein: dict[str, int] = field(default_factory=dict)
    veg: dict[str, int] = field(default_factory=dict)
    fat: dict[str, int] = field(default_factory=dict)
    template: dict[str, int] = field(default_factory=dict)
    signatures: set[str] = field(default_factory=set)

    def record(self, draft: MealDraft, template_id: str) -> None:
        """Count the chosen meal's protein, vegetables, fat and template."""
        refs = draft.ingredient_refs
        self.signatures.add(build_signature(refs))
        _bump(self.protein, draft.protein_code)
        _bump(self.template, template_id)
        for ref in refs[1:3]:
            if ref.code:
                _bump(self.veg, ref.code)
        if len(refs) > 3 and refs[3].code:
            _bump(self.fat, refs[3].code)

    def top_proteins(self, limit: int = TOP_PROTEIN_COUNTS) -> list[tuple[str, int]]:
        # sorted() is stable: equal counts stay in first-used order
        return sorted(self.protein.items(), key=lambda kv: -kv[1])[:limit]


def score_candidate(
    draft: MealDraft,
    template_id: str,
    usage: WeeklyUsage,
    protein_cap: int,
    template_cap: int,
) -> int:
    """Score a candidate against weekly usage.

    +2 protein unused this week, +1 template under its cap,
    -3 protein at/over its cap, -2 template at/over its cap.
    """
    protein_count = usage.protein.get(draft.protein_code, 0)
    template_count = usage.template.get(template_id, 0)
    score = 0
    if protein_count == 0:
        score += 2
    if template_count < template_cap:
        score += 1
    if protein_count >= protein_cap:
        score -= 3
    if template_count >= template_cap:
        score -= 2
    return score


def build_meal_from_draft(
    draft: MealDraft,
    slot: str,
    date: str,
    nutrition: Optional[NutritionLookup] = None,
) -> Meal:
    """Promote a draft to a Meal with an id and (best effort) macros."""
    macros = None
    if nutrition is not None:
        items = [
            (ref.code, ref.grams)
            for ref in draft.ingredient_refs
            if ref.code and not is_flavor_code(ref.code)
        ]
        try:
            macros = nutrition.compute_macros(items)
        except Exception as exc:
            logger.warning("Macro lookup failed for %s %s: %s", date, slot, exc)
            macros = None
    return Meal(
        id=str(uuid.uuid4()),
        name=draft.name,
        slot=slot,
        date=date,
        ingredient_refs=draft.ingredient_refs,
        macros=macros,
    )


def _merge_usage(history: Mapping[str, int], weekly: Mapping[str, int]) -> dict[str, int]:
    merged = dict(history)
    for code, count in weekly.items():
        merged[code] = merged.get(code, 0) + count
    return merged


def synthesize(
    request: PlanRequest,
    config: GeneratorConfig,
    pools: IngredientPools,
    retry_seed: int = 0,
    nutrition: Optional[NutritionLookup] = None,
    usage_history: Optional[UsageHistory] = None,
) -> SynthesisResult:
    """Generate a full plan for the requested dates and meal slots.

    Args:
        request: Date range, meal slots and diet key
        config: Templates, limits and name patterns
        pools: Whitelisted ingredient pools (read only)
        retry_seed: Base seed; use a different value for an alternative plan
        nutrition: Optional macro lookup; failures leave macros unset
        usage_history: Optional historical usage to bias picks to rarer items

    Returns:
        SynthesisResult with the plan and quality diagnostics

    Raises:
        GeneratorConfigError: If no templates are configured
        InsufficientIngredientsError: If no candidate could be built for a slot
    """
    templates = config.templates
    if not templates:
        raise GeneratorConfigError(
            "No active templates available. Configure templates for the generator."
        )
    limits = config.limits
    protein_cap = limits.protein_repeat_cap_7d
    template_cap = limits.template_repeat_cap_7d

    history = {"protein": {}, "veg": {}, "fat": {}}
    if usage_history is not None:
        history = {name: usage_history.usage_counts(name) for name in history}

    usage = WeeklyUsage()
    quality = QualityMetrics()
    meal_qualities: list[MealQuality] = []
    used_template_ids: list[str] = []
    days: list[Day] = []
    template_index = 0

    for current in request.dates():
        date_str = current.isoformat()
        meals: list[Meal] = []

        for slot in request.slots:
            template = templates[template_index % len(templates)]
            template_index += 1
            if template.id not in used_template_ids:
                used_template_ids.append(template.id)

            usage_protein = _merge_usage(history["protein"], usage.protein)
            usage_veg = _merge_usage(history["veg"], usage.veg)
            usage_fat = _merge_usage(history["fat"], usage.fat)

            candidates: list[tuple[MealDraft, QualityMetrics]] = []
            last_error: Optional[InsufficientIngredientsError] = None
            for c in range(NUM_CANDIDATES):
                candidate_seed = retry_seed + (template_index - 1) * 100 + c
                scratch = QualityMetrics()
                try:
                    draft = generate_draft(
                        template,
                        slot,
                        date_str,
                        pools,
                        limits,
                        seed=candidate_seed,
                        used_signatures=set(usage.signatures),
                        usage_protein=usage_protein,
                        usage_veg=usage_veg,
                        usage_fat=usage_fat,
                        name_patterns=config.name_patterns,
                        quality=scratch,
                    )
                except InsufficientIngredientsError as exc:
                    last_error = exc
                    continue
                candidates.append((draft, scratch))

            if not candidates:
                assert last_error is not None
                raise last_error

            best_index = 0
            best_score = score_candidate(
                candidates[0][0], template.id, usage, protein_cap, template_cap
            )
            for i in range(1, len(candidates)):
                score = score_candidate(
                    candidates[i][0], template.id, usage, protein_cap, template_cap
                )
                if score > best_score:
                    best_index, best_score = i, score

            chosen, chosen_quality = candidates[best_index]
            quality.repeats_avoided += chosen_quality.repeats_avoided
            quality.repeats_forced += chosen_quality.repeats_forced
            logger.debug(
                "%s %s: template %s won with score %d", date_str, slot, template.id, best_score
            )

            refs = chosen.ingredient_refs
            veg_codes = [ref.code for ref in refs[1:3] if ref.code]
            veg_usages = [usage.veg.get(item.code, 0) for item in pools.veg]
            min_veg = min(veg_usages) if veg_usages else 0
            max_veg = max(veg_usages) if veg_usages else 0
            low_usage_veg = 0
            if min_veg < max_veg:
                low_usage_veg = sum(
                    1 for code in veg_codes if usage.veg.get(code, 0) == min_veg
                )
            quality.veg_monotony_avoided += low_usage_veg

            prev_protein = usage.protein.get(chosen.protein_code, 0)
            prev_template = usage.template.get(template.id, 0)

            reasons: list[str] = []
            if prev_protein == 0:
                reasons.append("protein new this week")
            if prev_template < template_cap:
                reasons.append("template under cap")
            if low_usage_veg:
                reasons.append("veg with low weekly usage chosen")
            if usage.signatures and build_signature(refs) not in usage.signatures:
                reasons.append("avoids repeated signature")
            meal_qualities.append(
                MealQuality(
                    date=date_str,
                    slot=slot,
                    score=best_score,
                    reasons=tuple(reasons[:MAX_REASONS]),
                )
            )

            if prev_protein >= protein_cap:
                quality.protein_repeats_forced += 1
            if prev_template >= template_cap:
                quality.template_repeats_forced += 1
            usage.record(chosen, template.id)

            meals.append(build_meal_from_draft(chosen, slot, date_str, nutrition))

        days.append(Day(date=date_str, meals=tuple(meals)))

    quality.protein_counts_top = usage.top_proteins()
    quality.template_counts = list(usage.template.items())

    plan = Plan(
        request_id=str(uuid.uuid4()),
        days=tuple(days),
        metadata=PlanMetadata(
            generated_at=datetime.now(timezone.utc).isoformat(),
            diet_key=request.diet_key,
            total_days=len(days),
            total_meals=sum(len(day.meals) for day in days),
        ),
    )
    return SynthesisResult(
        plan=plan,
        rotation=[t.id for t in templates],
        used_template_ids=used_template_ids,
        quality=quality,
        meal_qualities=meal_qualities,
    )
