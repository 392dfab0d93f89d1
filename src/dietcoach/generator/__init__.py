"""Template-based meal plan generation.

Meals are composed from recipe templates (protein, two vegetables, fat,
optional flavor items) filled from whitelisted ingredient pools. The
synthesizer picks the best of several candidate drafts per slot, scored
against weekly repeat caps.
"""

from __future__ import annotations

from dietcoach.generator.config_loader import load_generator_config
from dietcoach.generator.draft import build_signature, generate_draft
from dietcoach.generator.models import (
    Day,
    FlavorPoolItem,
    GeneratorConfig,
    GeneratorLimits,
    IngredientPools,
    Meal,
    MealDraft,
    MealIngredientRef,
    Plan,
    PlanRequest,
    PoolItem,
    QualityMetrics,
    RecipeTemplate,
    SlotRole,
    SynthesisResult,
    TemplateSlot,
)
from dietcoach.generator.synthesizer import synthesize

__all__ = [
    "Day",
    "FlavorPoolItem",
    "GeneratorConfig",
    "GeneratorLimits",
    "IngredientPools",
    "Meal",
    "MealDraft",
    "MealIngredientRef",
    "Plan",
    "PlanRequest",
    "PoolItem",
    "QualityMetrics",
    "RecipeTemplate",
    "SlotRole",
    "SynthesisResult",
    "TemplateSlot",
    "build_signature",
    "generate_draft",
    "load_generator_config",
    "synthesize",
]
