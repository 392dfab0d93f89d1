"""Build a single meal draft from a template and ingredient pools.

Selection is deterministic: every pick is a function of an explicit seed,
so the same inputs always give the same draft. Retries shift the seed
by 1000 per attempt; the vegetable picks use seed + 1 and seed + 2.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional, Sequence, TypeVar

from dietcoach.errors import InsufficientIngredientsError
from dietcoach.generator.models import (
    GeneratorLimits,
    IngredientPools,
    MealDraft,
    MealIngredientRef,
    NamePattern,
    PoolItem,
    QualityMetrics,
    RecipeTemplate,
    SlotRole,
)

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=PoolItem)

_FAT_LIKE = re.compile(
    r"avocado|olijf|olie|noten|kokos|tahini|boter|olive|oil|nut|coconut|butter"
)

GENERIC_PROTEIN = "protein"
GENERIC_VEGETABLE = "vegetable"


def build_signature(refs: Sequence[MealIngredientRef]) -> str:
    """Signature of a meal: the first three codes (protein, veg1, veg2) joined by '|'."""
    return "|".join(ref.code for ref in refs[:3] if ref.code)


def is_fat_like(name: str) -> bool:
    """Heuristic: does a display name look like a fat source?"""
    return bool(_FAT_LIKE.search(name.lower()))


def pick_with_avoid(pool: Sequence[P], avoid: set[str], seed: int) -> P:
    """Pick an item not in ``avoid``, or from the whole pool if all are avoided.

    Raises:
        InsufficientIngredientsError: If the pool is empty
    """
    if not pool:
        raise InsufficientIngredientsError("Pool is empty")
    available = [item for item in pool if item.code not in avoid]
    candidates = available or list(pool)
    return candidates[abs(seed) % len(candidates)]


def pick_least_used(
    pool: Sequence[P],
    usage: Mapping[str, int],
    avoid: set[str],
    seed: int,
) -> P:
    """Pick among the least-used items not in ``avoid``; the seed breaks ties.

    Raises:
        InsufficientIngredientsError: If the pool is empty
    """
    if not pool:
        raise InsufficientIngredientsError("Pool is empty")
    available = [item for item in pool if item.code not in avoid]
    candidates = available or list(pool)
    min_usage = min(usage.get(item.code, 0) for item in candidates)
    subset = [item for item in candidates if usage.get(item.code, 0) == min_usage]
    return subset[abs(seed) % len(subset)]


def build_meal_name(
    pattern: str,
    refs: Sequence[MealIngredientRef],
    template_name: str,
) -> str:
    """Render a name pattern with the chosen ingredients.

    Tokens: ``{protein}``, ``{veg1}``, ``{veg2}``, ``{flavor}`` (first item
    after the fat slot) and ``{templateName}``. Missing display names fall
    back to generic nouns. Empty "()" and dangling dashes left by an empty
    flavor are removed.
    """

    def _name(index: int, fallback: str) -> str:
        if index < len(refs):
            return refs[index].display_name.strip() or fallback
        return fallback

    protein = _name(0, GENERIC_PROTEIN)
    veg1 = _name(1, GENERIC_VEGETABLE)
    veg2 = _name(2, GENERIC_VEGETABLE)
    flavor = _name(4, "")

    out = (
        pattern.replace("{templateName}", template_name)
        .replace("{protein}", protein)
        .replace("{veg1}", veg1)
        .replace("{veg2}", veg2)
        .replace("{flavor}", flavor)
    )
    out = re.sub(r"\s+", " ", out).strip()
    if not flavor:
        out = re.sub(r"\s*\(\s*\)\s*", " ", out)
        out = re.sub(r"\s*[–-]\s*$", "", out)
        out = re.sub(r"^\s*[–-]\s*", "", out)
        out = out.strip()
    out = re.sub(r"\s*–\s*–\s*", "–", out)
    return re.sub(r"\s+", " ", out).strip()


def generate_draft(
    template: RecipeTemplate,
    slot: str,
    date: str,
    pools: IngredientPools,
    limits: GeneratorLimits,
    seed: int = 0,
    used_signatures: Optional[set[str]] = None,
    usage_protein: Optional[Mapping[str, int]] = None,
    usage_veg: Optional[Mapping[str, int]] = None,
    usage_fat: Optional[Mapping[str, int]] = None,
    name_patterns: Optional[Sequence[NamePattern]] = None,
    quality: Optional[QualityMetrics] = None,
) -> MealDraft:
    """Generate one meal draft.

    Args:
        template: Recipe template to fill
        slot: Meal slot (e.g. "lunch"), used to pick a name pattern
        date: ISO date string of the meal
        pools: Whitelisted ingredient pools (read only)
        limits: Generator limits
        seed: Base seed; all picks derive from it
        used_signatures: Signatures used this week; the chosen signature is added
        usage_protein: Usage counts per protein code (least-used selection)
        usage_veg: Usage counts per vegetable code
        usage_fat: Usage counts per fat code
        name_patterns: Candidate name patterns
        quality: Counters for avoided/forced signature repeats

    Returns:
        MealDraft with 3 to ``limits.max_ingredients`` ingredients

    Raises:
        InsufficientIngredientsError: If the protein or vegetable pool is empty
    """
    empty = pools.empty_structural()
    if empty:
        raise InsufficientIngredientsError(
            "No allowed ingredients for protein or vegetables. "
            "Relax the diet rules or add recipes.",
            empty_pools=empty,
        )

    def pick_protein(avoid: set[str], s: int) -> PoolItem:
        if usage_protein is not None:
            return pick_least_used(pools.protein, usage_protein, avoid, s)
        return pick_with_avoid(pools.protein, avoid, s)

    def pick_veg(avoid: set[str], s: int) -> PoolItem:
        if usage_veg is not None:
            return pick_least_used(pools.veg, usage_veg, avoid, s)
        return pick_with_avoid(pools.veg, avoid, s)

    protein_slot = template.slot_for(SlotRole.PROTEIN)
    veg1_slot = template.slot_for(SlotRole.VEG1)
    veg2_slot = template.slot_for(SlotRole.VEG2)

    refs: list[MealIngredientRef] = []
    attempts = limits.signature_retry_limit
    for attempt in range(attempts):
        attempt_seed = seed + attempt * 1000
        picked: set[str] = set()

        protein = pick_protein(picked, attempt_seed)
        picked.add(protein.code)
        veg1 = pick_veg(picked, attempt_seed + 1)
        picked.add(veg1.code)
        veg2 = pick_veg(picked, attempt_seed + 2)
        picked.add(veg2.code)

        candidate = [
            MealIngredientRef(protein.code, protein_slot.clamp(), protein.display_name),
            MealIngredientRef(veg1.code, veg1_slot.clamp(), veg1.display_name),
            MealIngredientRef(veg2.code, veg2_slot.clamp(), veg2.display_name),
        ]
        signature = build_signature(candidate)

        if used_signatures is None or signature not in used_signatures:
            refs = candidate
            if used_signatures is not None:
                used_signatures.add(signature)
            if attempt > 0 and quality is not None:
                quality.repeats_avoided += 1
            break

        if attempt == attempts - 1:
            # Retries exhausted: keep the repeat
            refs = candidate
            used_signatures.add(signature)
            if quality is not None:
                quality.repeats_forced += 1
            logger.info("Forced signature repeat %s for %s %s", signature, date, slot)

    # A small max_ingredients still keeps the three structural picks
    refs = refs[: max(limits.max_ingredients, 1)]
    used = {ref.code for ref in refs}

    if pools.fat and len(refs) < limits.max_ingredients:
        already_fat_like = any(is_fat_like(ref.display_name) for ref in refs)
        fat_candidates = pools.fat
        if already_fat_like:
            fat_candidates = [item for item in pools.fat if not is_fat_like(item.display_name)] or pools.fat
        if usage_fat is not None:
            fat = pick_least_used(fat_candidates, usage_fat, used, seed + 3)
        else:
            fat = pick_with_avoid(fat_candidates, used, seed + 3)
        used.add(fat.code)
        refs.append(
            MealIngredientRef(fat.code, template.slot_for(SlotRole.FAT).clamp(), fat.display_name)
        )

    if pools.flavor and len(refs) < limits.max_ingredients:
        flavor_count = min(
            limits.max_flavor_items,
            limits.max_ingredients - len(refs),
            (abs(seed) + len(date)) % (limits.max_flavor_items + 1),
        )
        for i in range(flavor_count):
            item = pools.flavor[abs(seed + i * 11) % len(pools.flavor)]
            if item.code in used:
                continue
            used.add(item.code)
            refs.append(MealIngredientRef(item.code, item.clamp(), item.display_name))

    if not refs:
        raise InsufficientIngredientsError(
            "No ingredients could be picked from the pools. Check the diet rules."
        )

    name = f"{template.display_name} ({date})"
    candidates = [
        p for p in (name_patterns or [])
        if p.template_key == template.id and p.slot == slot
    ]
    if candidates:
        pattern = candidates[abs(seed) % len(candidates)].pattern
        rendered = build_meal_name(pattern, refs, template.display_name)
        if len(rendered) >= 3:
            name = rendered

    return MealDraft(name=name, ingredient_refs=tuple(refs))
