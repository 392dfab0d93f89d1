"""Tests for the SQLite storage providers."""

from __future__ import annotations

import sqlite3

import pytest
import yaml

from dietcoach.db.connection import DatabaseConnection
from dietcoach.db.queries import NutrientQueries, PoolQueries, UsageQueries
from dietcoach.db.storage import (
    SqliteGeneratorStorage,
    SqliteNutritionLookup,
    SqliteRuleStorage,
    SqliteUsageHistory,
)
from dietcoach.errors import NutritionLookupError, StorageError
from dietcoach.generator.config_loader import load_generator_config
from dietcoach.generator.definitions import DEFAULT_TEMPLATES
from dietcoach.generator.models import PlanRequest
from dietcoach.generator.pools import merge_pool_rows
from dietcoach.generator.synthesizer import synthesize
from dietcoach.rules.evaluator import evaluate_names
from dietcoach.rules.loader import load_ruleset, load_ruleset_for_user
from dietcoach.rules.models import RuleAction, Strictness


class TestConnection:
    """Tests for the database connection wrapper."""

    def test_schema_tables(self, temp_db):
        for table in ("diet_rules", "pool_items", "ingredient_usage", "name_patterns"):
            assert temp_db.table_exists(table)

    def test_table_count(self, temp_db):
        assert temp_db.get_table_count("diet_profiles") == 0
        assert temp_db.get_table_count("no_such_table") == 0

    def test_rollback_on_error(self, temp_db):
        with pytest.raises(sqlite3.IntegrityError):
            with temp_db.get_connection() as conn:
                conn.execute(
                    "INSERT INTO diet_profiles (id, name) VALUES ('wahls', 'Wahls')"
                )
                conn.execute("INSERT INTO diet_profiles (id, name) VALUES ('wahls', 'Again')")
        assert temp_db.get_table_count("diet_profiles") == 0

    def test_foreign_keys_enforced(self, temp_db):
        with temp_db.get_connection() as conn:
            assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_assign_unknown_profile(self, temp_db):
        with pytest.raises(StorageError):
            SqliteRuleStorage(temp_db).assign_profile("u1", "no-such-diet")
        assert SqliteRuleStorage(temp_db).load_user_profile("u1") is None


class TestRuleStorage:
    """Tests for storing and loading diet rules."""

    def test_save_and_load_profile(self, temp_db, profile_yaml):
        storage = SqliteRuleStorage(temp_db)
        data = yaml.safe_load(profile_yaml.read_text())
        assert storage.save_profile(data) == 3

        ruleset = load_ruleset(storage, "wahls")
        assert [c.id for c in ruleset.constraints] == ["r-gluten", "r-greens", "r-cheese"]
        greens = ruleset.find_category("leafy_greens")
        assert greens.action == RuleAction.FORCE
        assert greens.terms == ("spinach", "kale")
        assert ruleset.find_category("cheese").strictness == Strictness.SOFT
        assert [p["id"] for p in storage.list_profiles()] == ["wahls"]

    def test_save_twice_replaces_rules(self, temp_db, profile_yaml):
        storage = SqliteRuleStorage(temp_db)
        data = yaml.safe_load(profile_yaml.read_text())
        storage.save_profile(data)
        storage.save_profile(data)
        assert len(load_ruleset(storage, "wahls")) == 3

    def test_inflamed_user(self, temp_db, profile_yaml):
        storage = SqliteRuleStorage(temp_db)
        storage.save_profile(yaml.safe_load(profile_yaml.read_text()))
        storage.assign_profile("u1", "wahls", is_inflamed=True)

        ruleset = load_ruleset_for_user(storage, "u1")
        nightshades = ruleset.find_category("nightshades")
        assert nightshades.category_label == "Nightshades (inflammation-sensitive)"
        assert evaluate_names(ruleset, ["tomato", "spinach"]).failed_phase == 1

    def test_reassign_keeps_latest(self, temp_db):
        storage = SqliteRuleStorage(temp_db)
        storage.save_profile({"diet_profile_id": "wahls"})
        storage.save_profile({"diet_profile_id": "paleo"})
        storage.assign_profile("u1", "wahls")
        storage.assign_profile("u1", "paleo")
        assert storage.load_user_profile("u1") == {"diet_profile_id": "paleo", "is_inflamed": False}

    def test_unknown_user(self, temp_db):
        assert SqliteRuleStorage(temp_db).load_user_profile("nobody") is None

    def test_paused_rules_not_loaded(self, temp_db, profile_yaml):
        storage = SqliteRuleStorage(temp_db)
        data = yaml.safe_load(profile_yaml.read_text())
        data["rules"][2]["is_paused"] = True
        storage.save_profile(data)
        assert load_ruleset(storage, "wahls").find_category("cheese") is None

    def test_missing_profile_id(self, temp_db):
        with pytest.raises(ValueError):
            SqliteRuleStorage(temp_db).save_profile({"rules": []})

    def test_reimport_drops_removed_rules(self, temp_db, profile_yaml):
        storage = SqliteRuleStorage(temp_db)
        data = yaml.safe_load(profile_yaml.read_text())
        storage.save_profile(data)
        data["rules"] = [data["rules"][1]]
        assert storage.save_profile(data) == 1
        assert [c.id for c in load_ruleset(storage, "wahls").constraints] == ["r-greens"]

    def test_reimport_follows_new_file_order(self, temp_db):
        storage = SqliteRuleStorage(temp_db)
        first = {"id": "a", "action": "drop", "category_code": "gluten", "terms": ["bread"], "priority": 5}
        second = {"id": "b", "action": "drop", "category_code": "dairy", "terms": ["milk"], "priority": 5}
        storage.save_profile({"diet_profile_id": "wahls", "rules": [first, second]})
        storage.save_profile({"diet_profile_id": "wahls", "rules": [second, first]})
        assert [c.id for c in load_ruleset(storage, "wahls").constraints] == ["b", "a"]

    def test_rule_ids_scoped_per_profile(self, temp_db):
        storage = SqliteRuleStorage(temp_db)
        gluten = {"id": "r1", "action": "drop", "category_code": "gluten", "terms": ["bread"]}
        dairy = {"id": "r1", "action": "drop", "category_code": "dairy", "terms": ["milk"]}
        storage.save_profile({"diet_profile_id": "wahls", "rules": [gluten]})
        storage.save_profile({"diet_profile_id": "paleo", "rules": [dairy]})
        assert load_ruleset(storage, "wahls").find_category("gluten") is not None
        assert load_ruleset(storage, "paleo").find_category("dairy") is not None

    def test_duplicate_rule_ids(self, temp_db):
        rule = {"id": "r1", "action": "drop", "category_code": "gluten", "terms": ["bread"]}
        with pytest.raises(ValueError, match="Duplicate rule ids"):
            SqliteRuleStorage(temp_db).save_profile({"diet_profile_id": "wahls", "rules": [rule, rule]})
        assert temp_db.get_table_count("diet_rules") == 0

    def test_non_mapping_profile(self, temp_db):
        with pytest.raises(ValueError, match="mapping"):
            SqliteRuleStorage(temp_db).save_profile(["wahls"])

    def test_sqlite_error_wrapped(self, tmp_path):
        db = DatabaseConnection(tmp_path / "empty.db")
        with pytest.raises(StorageError) as exc_info:
            SqliteRuleStorage(db).load_rule_rows("wahls")
        assert exc_info.value.code == "STORAGE_ERROR"


class TestGeneratorStorage:
    """Tests for the generator storage provider."""

    def test_seed_defaults_loads_as_config(self, temp_db):
        storage = SqliteGeneratorStorage(temp_db)
        storage.seed_defaults()
        config = load_generator_config(storage)
        assert [t.id for t in config.templates] == [t.id for t in DEFAULT_TEMPLATES]
        assert config.templates[2].slot_for(config.templates[2].slots[0].role).default_grams == 80
        assert len(config.pool_rows["flavor"]) == 10
        assert config.patterns_for("soup", "dinner")

    def test_seed_is_idempotent(self, temp_db):
        storage = SqliteGeneratorStorage(temp_db)
        storage.seed_defaults()
        storage.seed_defaults()
        assert temp_db.get_table_count("meal_templates") == 3
        assert temp_db.get_table_count("name_patterns") == len(load_generator_config(storage).name_patterns)

    def test_diet_specific_pool(self, temp_db):
        storage = SqliteGeneratorStorage(temp_db)
        storage.seed_defaults()
        with temp_db.get_connection() as conn:
            PoolQueries.upsert_pool_item(conn, "keto", "protein", "salmon", "Wild salmon", code="salmon")
        config = load_generator_config(storage, "keto")
        names = [r["name"] for r in config.pool_rows["protein"]]
        assert "Wild salmon" in names
        assert "Salmon" not in names

    def test_generate_from_seeded_config(self, temp_db, monday):
        storage = SqliteGeneratorStorage(temp_db)
        storage.seed_defaults()
        config = load_generator_config(storage)
        pools = merge_pool_rows(config.pool_rows)
        result = synthesize(PlanRequest.for_days(monday, 2), config, pools)
        assert len(result.plan.meals) == 6


class TestNutritionLookup:
    """Tests for the SQLite nutrition lookup."""

    def test_compute_macros(self, temp_db):
        with temp_db.get_connection() as conn:
            NutrientQueries.upsert(conn, "salmon", 200, 20, 0, 13)
            NutrientQueries.upsert(conn, "kale", 50, 3, 9, 1)
        macros = SqliteNutritionLookup(temp_db).compute_macros([("salmon", 150), ("kale", 100)])
        assert macros.calories == pytest.approx(350)
        assert macros.carbs == pytest.approx(9)

    def test_missing_code(self, temp_db):
        with pytest.raises(NutritionLookupError) as exc_info:
            SqliteNutritionLookup(temp_db).compute_macros([("unknown", 100)])
        assert exc_info.value.details["codes"] == ["unknown"]


class TestUsageHistory:
    """Tests for usage history recording."""

    def test_record_plan(self, temp_db, monday, starter_pools):
        from dietcoach.generator.definitions import default_config

        history = SqliteUsageHistory(temp_db)
        result = synthesize(PlanRequest.for_days(monday, 1), default_config(), starter_pools)
        history.record_plan(result.plan)

        protein_counts = history.usage_counts("protein")
        assert sum(protein_counts.values()) == 3
        assert sum(history.usage_counts("veg").values()) == 6
        assert sum(history.usage_counts("fat").values()) == 3
        assert not any(code.startswith("FLAVOR:") for code in history.usage_counts("fat"))

    def test_increment(self, temp_db):
        with temp_db.get_connection() as conn:
            UsageQueries.increment(conn, "salmon", "protein")
            UsageQueries.increment(conn, "salmon", "protein", by=2)
        assert SqliteUsageHistory(temp_db).usage_counts("protein") == {"salmon": 3}
