"""Load generator configuration (templates, pools, settings, name patterns).

Rows are read for the requested diet key and for ``default``. Diet rows
override default rows: pool items by ``item_key``, settings as a whole.
Name patterns are additive.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Protocol

from dietcoach.config.settings import GeneratorConfigDefaults
from dietcoach.errors import GeneratorConfigError
from dietcoach.generator.models import (
    GeneratorConfig,
    GeneratorLimits,
    NamePattern,
    RecipeTemplate,
    SlotRole,
    TemplateSlot,
)
from dietcoach.generator.pools import POOL_CATEGORIES

logger = logging.getLogger(__name__)

DEFAULT_DIET_KEY = "default"
REQUIRED_POOL_CATEGORIES = ("protein", "veg", "fat")
DEFAULT_STEP_COUNT = 6


class GeneratorStorage(Protocol):
    """What the config loader needs from generator storage."""

    def load_template_rows(self) -> list[dict[str, Any]]:
        """Active templates: ``id``, ``template_key``, ``display_name``, ``step_count``."""
        ...

    def load_slot_rows(self, template_ids: Iterable[Any]) -> list[dict[str, Any]]:
        """Slots: ``template_id``, ``slot_key``, ``default_grams``, ``min_grams``, ``max_grams``."""
        ...

    def load_pool_rows(self, diet_keys: Iterable[str]) -> list[dict[str, Any]]:
        """Active pool items: ``diet_key``, ``category``, ``item_key``, ``code``, ``name``, grams."""
        ...

    def load_settings_rows(self, diet_keys: Iterable[str]) -> list[dict[str, Any]]:
        """Generator settings rows per diet key."""
        ...

    def load_name_pattern_rows(self, diet_keys: Iterable[str]) -> list[dict[str, Any]]:
        """Active name patterns: ``diet_key``, ``template_key``, ``slot``, ``pattern``."""
        ...


def _build_templates(
    template_rows: list[dict[str, Any]], slot_rows: list[dict[str, Any]]
) -> list[RecipeTemplate]:
    slots_by_template: dict[Any, dict[str, dict[str, Any]]] = {}
    for row in slot_rows:
        slots_by_template.setdefault(row["template_id"], {})[str(row["slot_key"])] = row

    templates = []
    for row in template_rows:
        key = str(row["template_key"])
        by_key = slots_by_template.get(row["id"], {})
        slots = []
        for role in SlotRole:
            slot_row = by_key.get(role.value)
            if slot_row is None:
                raise GeneratorConfigError(
                    f'Template "{key}" is missing required slot: {role.value}.',
                    details={"template_key": key, "slot": role.value},
                )
            try:
                slots.append(
                    TemplateSlot(
                        role=role,
                        default_grams=float(slot_row["default_grams"]),
                        min_grams=float(slot_row["min_grams"]),
                        max_grams=float(slot_row["max_grams"]),
                    )
                )
            except ValueError as exc:
                raise GeneratorConfigError(
                    f'Template "{key}" has invalid bounds for slot {role.value}: {exc}',
                    details={"template_key": key, "slot": role.value},
                ) from exc
        templates.append(
            RecipeTemplate(
                id=key,
                display_name=str(row.get("display_name") or key),
                slots=tuple(slots),
                step_count=int(row.get("step_count") or DEFAULT_STEP_COUNT),
            )
        )
    return templates


def _merge_pool_rows(
    rows: list[dict[str, Any]], diet_key: str
) -> dict[str, list[dict[str, Any]]]:
    merged: dict[str, list[dict[str, Any]]] = {}
    for category in POOL_CATEGORIES:
        for_category = [r for r in rows if r.get("category") == category]
        by_item_key: dict[str, dict[str, Any]] = {}
        for source_key in (DEFAULT_DIET_KEY, diet_key):
            for row in for_category:
                if row.get("diet_key") == source_key:
                    by_item_key[str(row["item_key"])] = row
        merged[category] = list(by_item_key.values())
    return merged


def _limits_from_row(row: Optional[dict[str, Any]], defaults: GeneratorConfigDefaults) -> GeneratorLimits:
    def _value(key: str) -> int:
        if row is not None and row.get(key) is not None:
            return int(row[key])
        return int(getattr(defaults, key))

    try:
        return GeneratorLimits(
            max_ingredients=_value("max_ingredients"),
            max_flavor_items=_value("max_flavor_items"),
            signature_retry_limit=_value("signature_retry_limit"),
            protein_repeat_cap_7d=_value("protein_repeat_cap_7d"),
            template_repeat_cap_7d=_value("template_repeat_cap_7d"),
        )
    except ValueError as exc:
        raise GeneratorConfigError(f"Invalid generator settings: {exc}") from exc


def _merge_name_patterns(rows: list[dict[str, Any]], diet_key: str) -> list[NamePattern]:
    seen: set[tuple[str, str, str]] = set()
    patterns = []
    for source_key in (DEFAULT_DIET_KEY, diet_key):
        for row in rows:
            if row.get("diet_key") != source_key:
                continue
            key = (str(row["template_key"]), str(row["slot"]), str(row["pattern"]))
            if key in seen:
                continue
            seen.add(key)
            patterns.append(NamePattern(*key))
    return patterns


def load_generator_config(
    storage: GeneratorStorage,
    diet_key: Optional[str] = None,
    defaults: Optional[GeneratorConfigDefaults] = None,
) -> GeneratorConfig:
    """Load the generator configuration for a diet.

    Args:
        storage: Generator storage provider
        diet_key: Diet key; blank means "default"
        defaults: Limits used when no settings row exists

    Returns:
        GeneratorConfig with templates, limits, name patterns and pool rows

    Raises:
        GeneratorConfigError: If no active templates exist, a template lacks a
            structural slot, or the protein/veg/fat pool has no items
    """
    effective_key = (diet_key or "").strip() or DEFAULT_DIET_KEY
    keys = sorted({DEFAULT_DIET_KEY, effective_key})
    defaults = defaults or GeneratorConfigDefaults()

    template_rows = storage.load_template_rows()
    if not template_rows:
        raise GeneratorConfigError(
            "No active recipe templates found. Add templates to the configuration."
        )
    slot_rows = storage.load_slot_rows([row["id"] for row in template_rows])
    templates = _build_templates(template_rows, slot_rows)

    pool_rows = _merge_pool_rows(storage.load_pool_rows(keys), effective_key)
    missing = [c for c in REQUIRED_POOL_CATEGORIES if not pool_rows.get(c)]
    if missing:
        raise GeneratorConfigError(
            "Pool items are missing for a required category (protein, veg or fat). "
            "Configure pools for the generator.",
            details={"missing_categories": missing},
        )

    settings_rows = storage.load_settings_rows(keys)
    settings_row = next(
        (r for r in settings_rows if r.get("diet_key") == effective_key), None
    ) or next((r for r in settings_rows if r.get("diet_key") == DEFAULT_DIET_KEY), None)
    limits = _limits_from_row(settings_row, defaults)

    name_patterns = _merge_name_patterns(storage.load_name_pattern_rows(keys), effective_key)

    logger.debug(
        "Loaded generator config for %s: %d templates, %d name patterns",
        effective_key,
        len(templates),
        len(name_patterns),
    )
    return GeneratorConfig(
        templates=templates,
        limits=limits,
        name_patterns=name_patterns,
        pool_rows=pool_rows,
    )
