"""Common database query functions."""

from __future__ import annotations

import json
import sqlite3
from typing import Iterable, Optional, Sequence


def _placeholders(values: Sequence) -> str:
    return ", ".join("?" for _ in values)


class CategoryQueries:
    """Query functions for ingredient categories and their items."""

    @staticmethod
    def upsert_category(conn: sqlite3.Connection, code: str, label: str) -> int:
        """Insert or update a category by code.

        Returns:
            Category id
        """
        conn.execute(
            """
            INSERT INTO ingredient_categories (code, label) VALUES (?, ?)
            ON CONFLICT(code) DO UPDATE SET label = excluded.label
            """,
            (code, label),
        )
        row = conn.execute(
            "SELECT id FROM ingredient_categories WHERE code = ?", (code,)
        ).fetchone()
        return int(row["id"])

    @staticmethod
    def add_item(
        conn: sqlite3.Connection,
        category_id: int,
        term: str,
        synonyms: Optional[list[str]] = None,
        is_active: bool = True,
    ) -> None:
        conn.execute(
            """
            INSERT INTO ingredient_category_items (category_id, term, synonyms_json, is_active)
            VALUES (?, ?, ?, ?)
            """,
            (category_id, term, json.dumps(synonyms or []), is_active),
        )

    @staticmethod
    def get_items(conn: sqlite3.Connection, category_ids: Iterable[int]) -> list[sqlite3.Row]:
        """Get active items for the given category ids."""
        ids = list(category_ids)
        if not ids:
            return []
        query = f"""
            SELECT category_id, term, synonyms_json, is_active
            FROM ingredient_category_items
            WHERE category_id IN ({_placeholders(ids)}) AND is_active = TRUE
            ORDER BY id
        """
        return conn.execute(query, ids).fetchall()

    @staticmethod
    def get_by_codes(conn: sqlite3.Connection, codes: Iterable[str]) -> list[sqlite3.Row]:
        """Get active categories by code."""
        code_list = list(codes)
        if not code_list:
            return []
        query = f"""
            SELECT id, code, label FROM ingredient_categories
            WHERE code IN ({_placeholders(code_list)}) AND is_active = TRUE
            ORDER BY id
        """
        return conn.execute(query, code_list).fetchall()


class RuleQueries:
    """Query functions for diet profiles and rules."""

    @staticmethod
    def upsert_profile(
        conn: sqlite3.Connection, profile_id: str, name: str, description: str = ""
    ) -> None:
        conn.execute(
            """
            INSERT INTO diet_profiles (id, name, description) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET name = excluded.name, description = excluded.description
            """,
            (profile_id, name, description),
        )

    @staticmethod
    def list_profiles(conn: sqlite3.Connection) -> list[sqlite3.Row]:
        return conn.execute(
            "SELECT id, name, description FROM diet_profiles WHERE is_active = TRUE ORDER BY id"
        ).fetchall()

    @staticmethod
    def add_rule(
        conn: sqlite3.Connection,
        rule_id: str,
        diet_profile_id: str,
        category_id: int,
        action: Optional[str],
        strictness: Optional[str] = "hard",
        min_per_day: Optional[int] = None,
        min_per_week: Optional[int] = None,
        max_per_day: Optional[int] = None,
        max_per_week: Optional[int] = None,
        priority: Optional[int] = None,
        rule_priority: Optional[int] = None,
        constraint_type: Optional[str] = None,
        is_active: bool = True,
        is_paused: bool = False,
    ) -> None:
        conn.execute(
            """
            INSERT INTO diet_rules (
                id, diet_profile_id, category_id, action, constraint_type, strictness,
                min_per_day, min_per_week, max_per_day, max_per_week,
                priority, rule_priority, is_active, is_paused
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                rule_id, diet_profile_id, category_id, action, constraint_type, strictness,
                min_per_day, min_per_week, max_per_day, max_per_week,
                priority, rule_priority, is_active, is_paused,
            ),
        )

    @staticmethod
    def delete_profile_rules(conn: sqlite3.Connection, diet_profile_id: str) -> None:
        conn.execute("DELETE FROM diet_rules WHERE diet_profile_id = ?", (diet_profile_id,))

    @staticmethod
    def get_active_rules(conn: sqlite3.Connection, diet_profile_id: str) -> list[sqlite3.Row]:
        """Get active, non-paused rules of a profile joined with their category."""
        query = """
            SELECT
                r.*,
                c.code AS category_code,
                c.label AS category_label
            FROM diet_rules r
            JOIN ingredient_categories c ON r.category_id = c.id
            WHERE r.diet_profile_id = ?
              AND r.is_active = TRUE
              AND r.is_paused = FALSE
              AND c.is_active = TRUE
            ORDER BY r.rowid
        """
        return conn.execute(query, (diet_profile_id,)).fetchall()


class UserProfileQueries:
    """Query functions for user diet profile assignments."""

    @staticmethod
    def assign(
        conn: sqlite3.Connection, user_id: str, diet_profile_id: str, is_inflamed: bool = False
    ) -> None:
        """Make a profile the user's current one (previous assignments deactivated)."""
        conn.execute(
            "UPDATE user_diet_profiles SET is_active = FALSE WHERE user_id = ?", (user_id,)
        )
        conn.execute(
            """
            INSERT INTO user_diet_profiles (user_id, diet_profile_id, is_inflamed)
            VALUES (?, ?, ?)
            """,
            (user_id, diet_profile_id, is_inflamed),
        )

    @staticmethod
    def get_current(conn: sqlite3.Connection, user_id: str) -> Optional[sqlite3.Row]:
        query = """
            SELECT diet_profile_id, is_inflamed FROM user_diet_profiles
            WHERE user_id = ? AND is_active = TRUE
            ORDER BY id DESC LIMIT 1
        """
        return conn.execute(query, (user_id,)).fetchone()


class TemplateQueries:
    """Query functions for recipe templates and slots."""

    @staticmethod
    def upsert_template(
        conn: sqlite3.Connection, template_key: str, display_name: str, step_count: int
    ) -> int:
        conn.execute(
            """
            INSERT INTO meal_templates (template_key, display_name, step_count)
            VALUES (?, ?, ?)
            ON CONFLICT(template_key) DO NOTHING
            """,
            (template_key, display_name, step_count),
        )
        row = conn.execute(
            "SELECT id FROM meal_templates WHERE template_key = ?", (template_key,)
        ).fetchone()
        return int(row["id"])

    @staticmethod
    def upsert_slot(
        conn: sqlite3.Connection,
        template_id: int,
        slot_key: str,
        default_grams: float,
        min_grams: float,
        max_grams: float,
    ) -> None:
        conn.execute(
            """
            INSERT INTO meal_template_slots
                (template_id, slot_key, default_grams, min_grams, max_grams)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(template_id, slot_key) DO NOTHING
            """,
            (template_id, slot_key, default_grams, min_grams, max_grams),
        )

    @staticmethod
    def get_active_templates(conn: sqlite3.Connection) -> list[sqlite3.Row]:
        return conn.execute(
            """
            SELECT id, template_key, display_name, step_count
            FROM meal_templates WHERE is_active = TRUE ORDER BY id
            """
        ).fetchall()

    @staticmethod
    def get_slots(conn: sqlite3.Connection, template_ids: Iterable[int]) -> list[sqlite3.Row]:
        ids = list(template_ids)
        if not ids:
            return []
        query = f"""
            SELECT template_id, slot_key, default_grams, min_grams, max_grams
            FROM meal_template_slots WHERE template_id IN ({_placeholders(ids)})
        """
        return conn.execute(query, ids).fetchall()


class PoolQueries:
    """Query functions for pool items, settings and name patterns."""

    @staticmethod
    def upsert_pool_item(
        conn: sqlite3.Connection,
        diet_key: str,
        category: str,
        item_key: str,
        name: str,
        code: Optional[str] = None,
        default_grams: Optional[float] = None,
        min_grams: Optional[float] = None,
        max_grams: Optional[float] = None,
    ) -> None:
        conn.execute(
            """
            INSERT INTO pool_items
                (diet_key, category, item_key, code, name, default_grams, min_grams, max_grams)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(diet_key, category, item_key) DO UPDATE SET
                code = excluded.code,
                name = excluded.name,
                default_grams = excluded.default_grams,
                min_grams = excluded.min_grams,
                max_grams = excluded.max_grams
            """,
            (diet_key, category, item_key, code, name, default_grams, min_grams, max_grams),
        )

    @staticmethod
    def get_pool_items(conn: sqlite3.Connection, diet_keys: Sequence[str]) -> list[sqlite3.Row]:
        query = f"""
            SELECT diet_key, category, item_key, code, name, default_grams, min_grams, max_grams
            FROM pool_items
            WHERE is_active = TRUE AND diet_key IN ({_placeholders(diet_keys)})
            ORDER BY id
        """
        return conn.execute(query, list(diet_keys)).fetchall()

    @staticmethod
    def upsert_settings(conn: sqlite3.Connection, diet_key: str, limits: dict[str, int]) -> None:
        conn.execute(
            """
            INSERT INTO generator_settings (
                diet_key, max_ingredients, max_flavor_items,
                protein_repeat_cap_7d, template_repeat_cap_7d, signature_retry_limit
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(diet_key) DO UPDATE SET
                max_ingredients = excluded.max_ingredients,
                max_flavor_items = excluded.max_flavor_items,
                protein_repeat_cap_7d = excluded.protein_repeat_cap_7d,
                template_repeat_cap_7d = excluded.template_repeat_cap_7d,
                signature_retry_limit = excluded.signature_retry_limit
            """,
            (
                diet_key,
                limits["max_ingredients"],
                limits["max_flavor_items"],
                limits["protein_repeat_cap_7d"],
                limits["template_repeat_cap_7d"],
                limits["signature_retry_limit"],
            ),
        )

    @staticmethod
    def get_settings(conn: sqlite3.Connection, diet_keys: Sequence[str]) -> list[sqlite3.Row]:
        query = f"""
            SELECT * FROM generator_settings WHERE diet_key IN ({_placeholders(diet_keys)})
        """
        return conn.execute(query, list(diet_keys)).fetchall()

    @staticmethod
    def add_name_pattern(
        conn: sqlite3.Connection, diet_key: str, template_key: str, slot: str, pattern: str
    ) -> None:
        conn.execute(
            """
            INSERT INTO name_patterns (diet_key, template_key, slot, pattern)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(diet_key, template_key, slot, pattern) DO NOTHING
            """,
            (diet_key, template_key, slot, pattern),
        )

    @staticmethod
    def get_name_patterns(conn: sqlite3.Connection, diet_keys: Sequence[str]) -> list[sqlite3.Row]:
        query = f"""
            SELECT diet_key, template_key, slot, pattern FROM name_patterns
            WHERE is_active = TRUE AND diet_key IN ({_placeholders(diet_keys)})
            ORDER BY id
        """
        return conn.execute(query, list(diet_keys)).fetchall()


class NutrientQueries:
    """Query functions for per-100g nutrient data."""

    @staticmethod
    def upsert(
        conn: sqlite3.Connection,
        code: str,
        calories: float,
        protein: float,
        carbs: float,
        fat: float,
    ) -> None:
        conn.execute(
            """
            INSERT INTO ingredient_nutrients (code, calories, protein, carbs, fat)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(code) DO UPDATE SET
                calories = excluded.calories,
                protein = excluded.protein,
                carbs = excluded.carbs,
                fat = excluded.fat
            """,
            (code, calories, protein, carbs, fat),
        )

    @staticmethod
    def get_for_codes(conn: sqlite3.Connection, codes: Sequence[str]) -> list[sqlite3.Row]:
        if not codes:
            return []
        query = f"""
            SELECT code, calories, protein, carbs, fat FROM ingredient_nutrients
            WHERE code IN ({_placeholders(codes)})
        """
        return conn.execute(query, list(codes)).fetchall()


class UsageQueries:
    """Query functions for ingredient usage history."""

    @staticmethod
    def increment(conn: sqlite3.Connection, code: str, category: str, by: int = 1) -> None:
        conn.execute(
            """
            INSERT INTO ingredient_usage (code, category, usage_count) VALUES (?, ?, ?)
            ON CONFLICT(code, category) DO UPDATE SET usage_count = usage_count + excluded.usage_count
            """,
            (code, category, by),
        )

    @staticmethod
    def get_counts(conn: sqlite3.Connection, category: str) -> dict[str, int]:
        rows = conn.execute(
            "SELECT code, usage_count FROM ingredient_usage WHERE category = ?", (category,)
        ).fetchall()
        return {row["code"]: int(row["usage_count"]) for row in rows}
