"""Built-in generator configuration.

Three recipe templates (bowl, sheet pan, soup), the default flavor items,
meal name patterns and a small starter pool. Used to seed a fresh
database and as the fallback when no generator config is stored.
"""

from __future__ import annotations

from dietcoach.generator.models import (
    FlavorPoolItem,
    GeneratorConfig,
    GeneratorLimits,
    IngredientPools,
    NamePattern,
    PoolItem,
    RecipeTemplate,
    SlotRole,
    TemplateSlot,
)

DEFAULT_DIET_KEY = "default"
MEAL_SLOTS = ("breakfast", "lunch", "dinner")


# =============================================================================
# Templates
# =============================================================================

def _slots(
    protein: tuple[float, float, float],
    veg1: tuple[float, float, float],
    veg2: tuple[float, float, float],
    fat: tuple[float, float, float],
) -> tuple[TemplateSlot, ...]:
    """Build the four structural slots from (default, min, max) triples."""
    return tuple(
        TemplateSlot(role, *bounds)
        for role, bounds in (
            (SlotRole.PROTEIN, protein),
            (SlotRole.VEG1, veg1),
            (SlotRole.VEG2, veg2),
            (SlotRole.FAT, fat),
        )
    )


BOWL_TEMPLATE = RecipeTemplate(
    id="bowl",
    display_name="Bowl",
    slots=_slots((120, 50, 200), (80, 30, 150), (60, 30, 120), (10, 5, 25)),
    step_count=4,
)

SHEET_PAN_TEMPLATE = RecipeTemplate(
    id="sheet_pan",
    display_name="Sheet-pan dish",
    slots=_slots((120, 50, 200), (80, 30, 150), (60, 30, 120), (10, 5, 25)),
    step_count=5,
)

SOUP_TEMPLATE = RecipeTemplate(
    id="soup",
    display_name="Soup",
    slots=_slots((80, 40, 150), (100, 50, 180), (60, 30, 100), (8, 5, 15)),
    step_count=5,
)

DEFAULT_TEMPLATES: list[RecipeTemplate] = [BOWL_TEMPLATE, SHEET_PAN_TEMPLATE, SOUP_TEMPLATE]


# =============================================================================
# Flavor items (code, name, default, min, max)
# =============================================================================

_FLAVOR_ROWS = [
    ("FLAVOR:garlic", "Garlic", 5, 2, 10),
    ("FLAVOR:onion", "Onion", 20, 10, 40),
    ("FLAVOR:lemon", "Lemon", 15, 10, 30),
    ("FLAVOR:lime", "Lime", 15, 10, 30),
    ("FLAVOR:ginger", "Ginger", 5, 2, 10),
    ("FLAVOR:cumin", "Cumin", 3, 2, 6),
    ("FLAVOR:paprika", "Paprika powder", 3, 2, 6),
    ("FLAVOR:turmeric", "Turmeric", 3, 2, 6),
    ("FLAVOR:pepper", "Pepper", 2, 1, 5),
    ("FLAVOR:salt", "Salt", 2, 1, 5),
]

DEFAULT_FLAVOR_ITEMS: list[FlavorPoolItem] = [
    FlavorPoolItem(code, name, default, low, high)
    for code, name, default, low, high in _FLAVOR_ROWS
]


# =============================================================================
# Starter pool
# =============================================================================

DEFAULT_PROTEIN_ITEMS: list[PoolItem] = [
    PoolItem("salmon", "Salmon"),
    PoolItem("chicken_breast", "Chicken breast"),
    PoolItem("egg", "Egg"),
    PoolItem("lentils", "Lentils"),
    PoolItem("tofu", "Tofu"),
    PoolItem("cod", "Cod"),
    PoolItem("chickpeas", "Chickpeas"),
]

DEFAULT_VEG_ITEMS: list[PoolItem] = [
    PoolItem("spinach", "Spinach"),
    PoolItem("broccoli", "Broccoli"),
    PoolItem("carrot", "Carrot"),
    PoolItem("kale", "Kale"),
    PoolItem("zucchini", "Zucchini"),
    PoolItem("cauliflower", "Cauliflower"),
    PoolItem("bell_pepper", "Bell pepper"),
    PoolItem("green_beans", "Green beans"),
    PoolItem("beetroot", "Beetroot"),
]

DEFAULT_FAT_ITEMS: list[PoolItem] = [
    PoolItem("olive_oil", "Olive oil"),
    PoolItem("avocado", "Avocado"),
    PoolItem("walnuts", "Walnuts"),
    PoolItem("pumpkin_seeds", "Pumpkin seeds"),
]


def default_pools() -> IngredientPools:
    """Fresh copy of the starter pools."""
    return IngredientPools(
        protein=list(DEFAULT_PROTEIN_ITEMS),
        veg=list(DEFAULT_VEG_ITEMS),
        fat=list(DEFAULT_FAT_ITEMS),
        flavor=list(DEFAULT_FLAVOR_ITEMS),
    )


# =============================================================================
# Name patterns
# =============================================================================

_PATTERNS_BY_TEMPLATE: dict[str, list[str]] = {
    "bowl": [
        "{protein} with {veg1} & {veg2}",
        "{templateName}: {protein}, {veg1} and {veg2}",
        "{protein}–{veg1} bowl with {flavor}",
        "Bowl of {protein} with {veg1} and {veg2}",
        "{protein} with {veg1} ({flavor})",
    ],
    "sheet_pan": [
        "Oven-baked {protein} with {veg1} & {veg2}",
        "{templateName}: {protein}, {veg1} and {veg2}",
        "{protein} with roasted {veg1} ({flavor})",
    ],
    "soup": [
        "{veg1} soup with {protein}",
        "{templateName}: {protein}, {veg1} and {veg2}",
        "{veg1}–{veg2} soup with {protein} ({flavor})",
    ],
}

DEFAULT_NAME_PATTERNS: list[NamePattern] = [
    NamePattern(template_key, slot, pattern)
    for template_key, patterns in _PATTERNS_BY_TEMPLATE.items()
    for slot in MEAL_SLOTS
    for pattern in patterns
]


def default_config(limits: GeneratorLimits | None = None) -> GeneratorConfig:
    """Built-in generator config (templates, limits, name patterns)."""
    return GeneratorConfig(
        templates=list(DEFAULT_TEMPLATES),
        limits=limits or GeneratorLimits(),
        name_patterns=list(DEFAULT_NAME_PATTERNS),
    )
