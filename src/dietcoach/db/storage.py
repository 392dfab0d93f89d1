"""SQLite-backed storage providers for the rule loader and the generator.

Each provider turns ``sqlite3.Row`` results into the plain row dicts the
loaders expect. Any ``sqlite3.Error`` is re-raised as ``StorageError``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Generator, Iterable, Optional

from dietcoach.db.connection import DatabaseConnection
from dietcoach.db.queries import (
    CategoryQueries,
    NutrientQueries,
    PoolQueries,
    RuleQueries,
    TemplateQueries,
    UsageQueries,
    UserProfileQueries,
)
from dietcoach.errors import StorageError
from dietcoach.generator.definitions import (
    DEFAULT_DIET_KEY,
    DEFAULT_FAT_ITEMS,
    DEFAULT_FLAVOR_ITEMS,
    DEFAULT_NAME_PATTERNS,
    DEFAULT_PROTEIN_ITEMS,
    DEFAULT_TEMPLATES,
    DEFAULT_VEG_ITEMS,
)
from dietcoach.generator.models import GeneratorLimits, Plan
from dietcoach.nutrition import MacroEstimate, NutrientProfile, is_flavor_code, sum_macros

logger = logging.getLogger(__name__)


class _SqliteProvider:
    def __init__(self, db: DatabaseConnection):
        self.db = db

    @contextmanager
    def _connection(self, action: str) -> Generator[sqlite3.Connection, None, None]:
        try:
            with self.db.get_connection() as conn:
                yield conn
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to {action}: {exc}", details={"db": str(self.db.db_path)}) from exc


def _category_items(conn: sqlite3.Connection, category_ids: list[int]) -> dict[int, list[dict[str, Any]]]:
    items: dict[int, list[dict[str, Any]]] = {}
    for row in CategoryQueries.get_items(conn, category_ids):
        items.setdefault(row["category_id"], []).append(
            {
                "term": row["term"],
                "synonyms": json.loads(row["synonyms_json"] or "[]"),
                "is_active": bool(row["is_active"]),
            }
        )
    return items


class SqliteRuleStorage(_SqliteProvider):
    """Rule and category rows for the rule loader."""

    def load_rule_rows(self, diet_profile_id: str) -> list[dict[str, Any]]:
        with self._connection(f"load rules for {diet_profile_id}") as conn:
            rules = RuleQueries.get_active_rules(conn, diet_profile_id)
            items = _category_items(conn, sorted({r["category_id"] for r in rules}))

        rows = []
        for rule in rules:
            row = {key: rule[key] for key in rule.keys()}
            row["is_active"] = bool(row["is_active"])
            row["is_paused"] = bool(row["is_paused"])
            row["category"] = {
                "id": rule["category_id"],
                "code": rule["category_code"],
                "label": rule["category_label"],
                "items": items.get(rule["category_id"], []),
            }
            rows.append(row)
        return rows

    def load_category_rows(self, codes: Iterable[str]) -> list[dict[str, Any]]:
        with self._connection("load categories") as conn:
            categories = CategoryQueries.get_by_codes(conn, codes)
            items = _category_items(conn, [c["id"] for c in categories])
        return [
            {
                "id": c["id"],
                "code": c["code"],
                "label": c["label"],
                "items": items.get(c["id"], []),
            }
            for c in categories
        ]

    def load_user_profile(self, user_id: str) -> Optional[dict[str, Any]]:
        with self._connection(f"load diet profile of user {user_id}") as conn:
            row = UserProfileQueries.get_current(conn, user_id)
        if row is None:
            return None
        return {"diet_profile_id": row["diet_profile_id"], "is_inflamed": bool(row["is_inflamed"])}

    def list_profiles(self) -> list[dict[str, Any]]:
        with self._connection("list diet profiles") as conn:
            return [dict(row) for row in RuleQueries.list_profiles(conn)]

    def save_profile(self, data: dict[str, Any]) -> int:
        """Store a parsed YAML rule profile (see ``dietcoach.rules.profiles``).

        The profile's stored rules are replaced by the file's rules, in file
        order. Rule ids only need to be unique within the profile. Inflammatory
        categories are stored as plain categories so ``load_category_rows``
        finds them.

        Returns:
            Number of rules written

        Raises:
            ValueError: If the data is not a mapping, ``diet_profile_id`` is
                missing, or two rules share an id
        """
        if not isinstance(data, dict):
            raise ValueError("Rule profile must be a mapping")
        diet_profile_id = str(data.get("diet_profile_id") or "").strip()
        if not diet_profile_id:
            raise ValueError("Rule profile is missing 'diet_profile_id'")

        def _store_category(conn: sqlite3.Connection, code: str, label: str, entry: dict) -> int:
            category_id = CategoryQueries.upsert_category(conn, code, label or code)
            conn.execute(
                "DELETE FROM ingredient_category_items WHERE category_id = ?", (category_id,)
            )
            for term in entry.get("terms") or []:
                CategoryQueries.add_item(conn, category_id, str(term))
            if entry.get("synonyms"):
                CategoryQueries.add_item(conn, category_id, "", list(entry["synonyms"]))
            return category_id

        rules = data.get("rules") or []
        if not isinstance(rules, list) or not all(isinstance(e, dict) for e in rules):
            raise ValueError("'rules' must be a list of mappings")
        rule_ids = [
            str(entry.get("id") or f"{diet_profile_id}:{index}")
            for index, entry in enumerate(rules)
        ]
        duplicates = sorted({rid for rid in rule_ids if rule_ids.count(rid) > 1})
        if duplicates:
            raise ValueError(
                f"Duplicate rule ids in profile {diet_profile_id}: {', '.join(duplicates)}"
            )

        with self._connection(f"save diet profile {diet_profile_id}") as conn:
            RuleQueries.upsert_profile(
                conn,
                diet_profile_id,
                str(data.get("name") or diet_profile_id),
                str(data.get("description") or ""),
            )
            RuleQueries.delete_profile_rules(conn, diet_profile_id)
            for rule_id, entry in zip(rule_ids, rules):
                code = str(entry.get("category_code") or "")
                category_id = _store_category(
                    conn, code, str(entry.get("category_label") or ""), entry
                )
                RuleQueries.add_rule(
                    conn,
                    rule_id,
                    diet_profile_id,
                    category_id,
                    entry.get("action"),
                    strictness=entry.get("strictness", "hard"),
                    min_per_day=entry.get("min_per_day"),
                    min_per_week=entry.get("min_per_week"),
                    max_per_day=entry.get("max_per_day"),
                    max_per_week=entry.get("max_per_week"),
                    priority=entry.get("priority"),
                    rule_priority=entry.get("rule_priority"),
                    constraint_type=entry.get("constraint_type"),
                    is_active=bool(entry.get("is_active", True)),
                    is_paused=bool(entry.get("is_paused", False)),
                )
            for entry in data.get("inflammatory") or []:
                code = str(entry.get("code") or "")
                _store_category(conn, code, str(entry.get("label") or ""), entry)
        logger.info("Saved %d rule(s) for diet profile %s", len(rules), diet_profile_id)
        return len(rules)

    def assign_profile(self, user_id: str, diet_profile_id: str, is_inflamed: bool = False) -> None:
        with self._connection(f"assign diet profile to user {user_id}") as conn:
            UserProfileQueries.assign(conn, user_id, diet_profile_id, is_inflamed)


class SqliteGeneratorStorage(_SqliteProvider):
    """Templates, pools, settings and name patterns for the generator."""

    def load_template_rows(self) -> list[dict[str, Any]]:
        with self._connection("load templates") as conn:
            return [dict(row) for row in TemplateQueries.get_active_templates(conn)]

    def load_slot_rows(self, template_ids: Iterable[Any]) -> list[dict[str, Any]]:
        with self._connection("load template slots") as conn:
            return [dict(row) for row in TemplateQueries.get_slots(conn, template_ids)]

    def load_pool_rows(self, diet_keys: Iterable[str]) -> list[dict[str, Any]]:
        with self._connection("load pool items") as conn:
            return [dict(row) for row in PoolQueries.get_pool_items(conn, list(diet_keys))]

    def load_settings_rows(self, diet_keys: Iterable[str]) -> list[dict[str, Any]]:
        with self._connection("load generator settings") as conn:
            return [dict(row) for row in PoolQueries.get_settings(conn, list(diet_keys))]

    def load_name_pattern_rows(self, diet_keys: Iterable[str]) -> list[dict[str, Any]]:
        with self._connection("load name patterns") as conn:
            return [dict(row) for row in PoolQueries.get_name_patterns(conn, list(diet_keys))]

    def seed_defaults(self, limits: Optional[GeneratorLimits] = None) -> None:
        """Insert the built-in templates, starter pools, settings and name patterns.

        Existing rows are left in place.
        """
        limits = limits or GeneratorLimits()
        with self._connection("seed generator defaults") as conn:
            for template in DEFAULT_TEMPLATES:
                template_id = TemplateQueries.upsert_template(
                    conn, template.id, template.display_name, template.step_count
                )
                for slot in template.slots:
                    TemplateQueries.upsert_slot(
                        conn,
                        template_id,
                        slot.role.value,
                        slot.default_grams,
                        slot.min_grams,
                        slot.max_grams,
                    )
            for category, items in (
                ("protein", DEFAULT_PROTEIN_ITEMS),
                ("veg", DEFAULT_VEG_ITEMS),
                ("fat", DEFAULT_FAT_ITEMS),
            ):
                for item in items:
                    PoolQueries.upsert_pool_item(
                        conn, DEFAULT_DIET_KEY, category, item.code, item.display_name, code=item.code
                    )
            for flavor in DEFAULT_FLAVOR_ITEMS:
                PoolQueries.upsert_pool_item(
                    conn,
                    DEFAULT_DIET_KEY,
                    "flavor",
                    flavor.code,
                    flavor.display_name,
                    code=flavor.code,
                    default_grams=flavor.default_grams,
                    min_grams=flavor.min_grams,
                    max_grams=flavor.max_grams,
                )
            PoolQueries.upsert_settings(conn, DEFAULT_DIET_KEY, limits.to_dict())
            for pattern in DEFAULT_NAME_PATTERNS:
                PoolQueries.add_name_pattern(
                    conn, DEFAULT_DIET_KEY, pattern.template_key, pattern.slot, pattern.pattern
                )
        logger.info("Seeded default generator configuration")


class SqliteNutritionLookup(_SqliteProvider):
    """Macro lookup over the ``ingredient_nutrients`` table."""

    def compute_macros(self, items: list[tuple[str, float]]) -> MacroEstimate:
        codes = sorted({code for code, _ in items})
        with self._connection("load nutrient data") as conn:
            rows = NutrientQueries.get_for_codes(conn, codes)
        profiles = {
            row["code"]: NutrientProfile(
                calories=row["calories"],
                protein=row["protein"],
                carbs=row["carbs"],
                fat=row["fat"],
            )
            for row in rows
        }
        return sum_macros(items, profiles)


class SqliteUsageHistory(_SqliteProvider):
    """Historical usage counts per ingredient code."""

    def usage_counts(self, category: str) -> dict[str, int]:
        with self._connection(f"load {category} usage") as conn:
            return UsageQueries.get_counts(conn, category)

    def record_plan(self, plan: Plan) -> None:
        """Add a plan's protein, vegetable and fat picks to the usage history."""
        with self._connection("record ingredient usage") as conn:
            for meal in plan.meals:
                refs = meal.ingredient_refs
                for index, ref in enumerate(refs[:4]):
                    if not ref.code or is_flavor_code(ref.code):
                        continue
                    category = "protein" if index == 0 else "veg" if index < 3 else "fat"
                    UsageQueries.increment(conn, ref.code, category)
