"""Pytest fixtures for dietcoach tests."""

from __future__ import annotations

import tempfile
from datetime import date
from pathlib import Path

import pytest

from dietcoach.db.connection import DatabaseConnection, set_db
from dietcoach.generator.definitions import BOWL_TEMPLATE, default_pools
from dietcoach.generator.models import (
    FlavorPoolItem,
    GeneratorConfig,
    GeneratorLimits,
    IngredientPools,
    PoolItem,
)
from dietcoach.rules.models import Constraint, RuleAction, RuleSet, Strictness


@pytest.fixture
def temp_db():
    """Create a temporary database with schema."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    db = DatabaseConnection(db_path)
    db.initialize_schema()

    yield db

    # Cleanup
    db_path.unlink(missing_ok=True)


@pytest.fixture
def global_db(temp_db):
    """Install the temporary database as the global one (for CLI tests)."""
    set_db(temp_db)
    yield temp_db
    set_db(None)


def make_constraint(
    cid: str,
    action: RuleAction,
    terms: list[str],
    priority: int = 50,
    strictness: Strictness = Strictness.HARD,
    **quotas,
) -> Constraint:
    """Build a constraint with its category named after the id."""
    return Constraint(
        id=cid,
        diet_profile_id="test",
        action=action,
        category_code=cid,
        category_label=cid.replace("_", " ").title(),
        terms=tuple(terms),
        strictness=strictness,
        priority=priority,
        **quotas,
    )


@pytest.fixture
def wahls_ruleset():
    """A small Wahls-like rule set covering every action."""
    return RuleSet(
        diet_profile_id="wahls",
        constraints=(
            make_constraint("gluten", RuleAction.DROP, ["tarwe", "gluten", "bread"], priority=1),
            make_constraint("leafy_greens", RuleAction.FORCE, ["spinach", "kale"], priority=10, min_per_day=1),
            make_constraint("cheese", RuleAction.LIMIT, ["kaas", "cheese"], priority=20, max_per_day=1),
            make_constraint("herbs", RuleAction.PASS, ["parsley"], priority=30),
        ),
    )


@pytest.fixture
def sample_pools():
    """Pools with a few items per category."""
    return IngredientPools(
        protein=[PoolItem("salmon", "Salmon"), PoolItem("tofu", "Tofu"), PoolItem("egg", "Egg")],
        veg=[
            PoolItem("spinach", "Spinach"),
            PoolItem("broccoli", "Broccoli"),
            PoolItem("carrot", "Carrot"),
            PoolItem("kale", "Kale"),
        ],
        fat=[PoolItem("olive_oil", "Olive oil"), PoolItem("walnuts", "Walnuts")],
        flavor=[
            FlavorPoolItem("FLAVOR:garlic", "Garlic", 5, 2, 10),
            FlavorPoolItem("FLAVOR:lemon", "Lemon", 15, 10, 30),
        ],
    )


@pytest.fixture
def starter_pools():
    return default_pools()


@pytest.fixture
def bowl_config():
    """Generator config with only the bowl template and no name patterns."""
    return GeneratorConfig(templates=[BOWL_TEMPLATE], limits=GeneratorLimits())


@pytest.fixture
def monday():
    return date(2024, 1, 1)


@pytest.fixture
def profile_yaml(tmp_path):
    """A YAML rule profile on disk."""
    path = tmp_path / "wahls.yaml"
    path.write_text(
        """
diet_profile_id: wahls
name: Wahls protocol
rules:
  - id: r-gluten
    action: drop
    category_code: gluten
    category_label: Gluten
    terms: [tarwe, gluten, bread]
    priority: 1
  - id: r-greens
    action: force
    category_code: leafy_greens
    category_label: Leafy greens
    terms: [spinach, kale]
    min_per_day: 1
    priority: 10
  - id: r-cheese
    action: limit
    category_code: cheese
    category_label: Cheese
    terms: [kaas, cheese]
    max_per_day: 1
    strictness: soft
    priority: 20
inflammatory:
  - code: nightshades
    label: Nightshades
    terms: [tomato, bell pepper, eggplant]
"""
    )
    return path
