"""Tests for multi-day plan synthesis."""

from __future__ import annotations

from datetime import date

import pytest

from dietcoach.errors import GeneratorConfigError, InsufficientIngredientsError, NutritionLookupError
from dietcoach.generator.definitions import (
    BOWL_TEMPLATE,
    DEFAULT_FAT_ITEMS,
    DEFAULT_PROTEIN_ITEMS,
    DEFAULT_VEG_ITEMS,
    default_config,
)
from dietcoach.generator.models import (
    GeneratorConfig,
    IngredientPools,
    MealDraft,
    MealIngredientRef,
    Plan,
    PlanRequest,
)
from dietcoach.generator.synthesizer import (
    WeeklyUsage,
    build_meal_from_draft,
    score_candidate,
    synthesize,
)
from dietcoach.nutrition import NutrientProfile, TableNutritionLookup


class FailingLookup:
    def compute_macros(self, items):
        raise NutritionLookupError("lookup down")


class FakeHistory:
    def __init__(self, counts):
        self.counts = counts
        self.requested = []

    def usage_counts(self, category):
        self.requested.append(category)
        return dict(self.counts.get(category, {}))


def _draft(protein: str) -> MealDraft:
    return MealDraft(
        name="x",
        ingredient_refs=(
            MealIngredientRef(protein, 100, protein),
            MealIngredientRef("kale", 80, "Kale"),
            MealIngredientRef("carrot", 60, "Carrot"),
        ),
    )


class TestPlanRequest:
    """Tests for request validation."""

    def test_for_days(self, monday):
        request = PlanRequest.for_days(monday, 7)
        assert request.end == date(2024, 1, 7)
        assert len(list(request.dates())) == 7

    def test_end_before_start(self, monday):
        with pytest.raises(ValueError):
            PlanRequest(start=monday, end=date(2023, 12, 31))

    def test_zero_days(self, monday):
        with pytest.raises(ValueError):
            PlanRequest.for_days(monday, 0)

    def test_no_slots(self, monday):
        with pytest.raises(ValueError):
            PlanRequest(start=monday, end=monday, slots=())


class TestScoring:
    """Tests for candidate scoring."""

    def test_fresh_protein_and_template(self):
        assert score_candidate(_draft("salmon"), "bowl", WeeklyUsage(), 2, 3) == 3

    def test_capped_protein_and_template(self):
        usage = WeeklyUsage(protein={"salmon": 2}, template={"bowl": 3})
        assert score_candidate(_draft("salmon"), "bowl", usage, 2, 3) == -5

    def test_used_protein_under_cap(self):
        usage = WeeklyUsage(protein={"salmon": 1}, template={"bowl": 1})
        assert score_candidate(_draft("salmon"), "bowl", usage, 2, 3) == 1

    def test_weekly_usage_record(self):
        usage = WeeklyUsage()
        draft = MealDraft(
            name="x",
            ingredient_refs=_draft("salmon").ingredient_refs + (MealIngredientRef("olive_oil", 10),),
        )
        usage.record(draft, "bowl")
        assert usage.protein == {"salmon": 1}
        assert usage.veg == {"kale": 1, "carrot": 1}
        assert usage.fat == {"olive_oil": 1}
        assert usage.template == {"bowl": 1}
        assert usage.signatures == {"salmon|kale|carrot"}


class TestBuildMeal:
    """Tests for draft to meal promotion."""

    def test_macros_exclude_flavor_codes(self):
        lookup = TableNutritionLookup({"salmon": NutrientProfile(200, 20, 0, 13)})
        draft = MealDraft(
            name="Salmon",
            ingredient_refs=(
                MealIngredientRef("salmon", 150, "Salmon"),
                MealIngredientRef("FLAVOR:garlic", 5, "Garlic"),
            ),
        )
        meal = build_meal_from_draft(draft, "lunch", "2024-01-01", lookup)
        assert meal.macros.calories == pytest.approx(300)
        assert meal.macros.protein == pytest.approx(30)

    def test_lookup_failure_leaves_macros_unset(self):
        meal = build_meal_from_draft(_draft("salmon"), "lunch", "2024-01-01", FailingLookup())
        assert meal.macros is None
        assert meal.id


class TestSynthesize:
    """Tests for synthesize."""

    def test_week_single_template_without_fat_or_flavor(self, monday):
        """7 days x 3 slots, one template, no fat or flavor pool: 21 three-item meals."""
        pools = IngredientPools(protein=list(DEFAULT_PROTEIN_ITEMS), veg=list(DEFAULT_VEG_ITEMS))
        config = GeneratorConfig(templates=[BOWL_TEMPLATE])
        result = synthesize(PlanRequest.for_days(monday, 7), config, pools)

        meals = result.plan.meals
        assert len(meals) == 21
        assert result.plan.metadata.total_meals == 21
        assert result.plan.metadata.total_days == 7
        fat_codes = {item.code for item in DEFAULT_FAT_ITEMS}
        for meal in meals:
            assert len(meal.ingredient_refs) == 3
            assert not fat_codes & {r.code for r in meal.ingredient_refs}
        assert result.quality.template_repeats_forced == 18

    def test_rotation_cycles_templates(self, monday, starter_pools):
        config = default_config()
        result = synthesize(PlanRequest.for_days(monday, 2), config, starter_pools)
        assert result.rotation == ["bowl", "sheet_pan", "soup"]
        assert result.used_template_ids == ["bowl", "sheet_pan", "soup"]
        assert dict(result.quality.template_counts) == {"bowl": 2, "sheet_pan": 2, "soup": 2}

    def test_days_and_slots_in_order(self, monday, starter_pools):
        request = PlanRequest.for_days(monday, 3, slots=("lunch", "dinner"))
        result = synthesize(request, default_config(), starter_pools)
        assert [d.date for d in result.plan.days] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        for day in result.plan.days:
            assert [m.slot for m in day.meals] == ["lunch", "dinner"]
            assert all(m.date == day.date for m in day.meals)

    def test_deterministic_for_same_seed(self, monday, starter_pools):
        request = PlanRequest.for_days(monday, 7)
        a = synthesize(request, default_config(), starter_pools, retry_seed=3)
        b = synthesize(request, default_config(), starter_pools, retry_seed=3)
        assert [(m.name, m.ingredient_refs) for m in a.plan.meals] == [
            (m.name, m.ingredient_refs) for m in b.plan.meals
        ]
        assert a.quality == b.quality

    def test_meal_ids_unique(self, monday, starter_pools):
        result = synthesize(PlanRequest.for_days(monday, 7), default_config(), starter_pools)
        ids = [m.id for m in result.plan.meals]
        assert len(ids) == len(set(ids))
        assert result.plan.request_id not in ids

    def test_meal_qualities(self, monday, starter_pools):
        result = synthesize(PlanRequest.for_days(monday, 7), default_config(), starter_pools)
        assert len(result.meal_qualities) == 21
        first = result.meal_qualities[0]
        assert first.reasons[:2] == ("protein new this week", "template under cap")
        assert all(len(q.reasons) <= 3 for q in result.meal_qualities)

    def test_protein_counts_top(self, monday, starter_pools):
        result = synthesize(PlanRequest.for_days(monday, 7), default_config(), starter_pools)
        top = result.quality.protein_counts_top
        assert len(top) <= 5
        counts = [count for _, count in top]
        assert counts == sorted(counts, reverse=True)

    def test_no_templates(self, monday, starter_pools):
        with pytest.raises(GeneratorConfigError):
            synthesize(PlanRequest.for_days(monday, 1), GeneratorConfig(templates=[]), starter_pools)

    def test_empty_veg_pool(self, monday, starter_pools):
        pools = IngredientPools(protein=starter_pools.protein, veg=[])
        with pytest.raises(InsufficientIngredientsError) as exc_info:
            synthesize(PlanRequest.for_days(monday, 1), default_config(), pools)
        assert exc_info.value.empty_pools == ["veg"]

    def test_nutrition_failure_does_not_abort(self, monday, starter_pools):
        result = synthesize(
            PlanRequest.for_days(monday, 2), default_config(), starter_pools, nutrition=FailingLookup()
        )
        assert len(result.plan.meals) == 6
        assert all(m.macros is None for m in result.plan.meals)

    def test_nutrition_lookup_fills_macros(self, monday, starter_pools):
        profiles = {
            item.code: NutrientProfile(100, 10, 5, 2)
            for item in starter_pools.protein + starter_pools.veg + starter_pools.fat
        }
        result = synthesize(
            PlanRequest.for_days(monday, 1),
            default_config(),
            starter_pools,
            nutrition=TableNutritionLookup(profiles),
        )
        assert all(m.macros is not None and m.macros.calories > 0 for m in result.plan.meals)

    def test_usage_history_biases_picks(self, monday, starter_pools):
        history = FakeHistory({"protein": {"salmon": 100}})
        result = synthesize(
            PlanRequest.for_days(monday, 7), default_config(), starter_pools, usage_history=history
        )
        assert "salmon" not in {m.ingredient_refs[0].code for m in result.plan.meals}
        assert sorted(history.requested) == ["fat", "protein", "veg"]

    def test_runs_do_not_share_state(self, monday, starter_pools):
        request = PlanRequest.for_days(monday, 3)
        first = synthesize(request, default_config(), starter_pools)
        second = synthesize(request, default_config(), starter_pools)
        assert first.quality.template_counts == second.quality.template_counts
        assert first.quality.protein_counts_top == second.quality.protein_counts_top

    def test_plan_round_trips_through_dict(self, monday, starter_pools):
        result = synthesize(PlanRequest.for_days(monday, 2), default_config(), starter_pools)
        restored = Plan.from_dict(result.to_dict()["plan"])
        assert restored.request_id == result.plan.request_id
        assert [m.ingredient_refs for m in restored.meals] == [
            m.ingredient_refs for m in result.plan.meals
        ]

    def test_plan_from_non_object(self):
        with pytest.raises(ValueError, match="must be an object"):
            Plan.from_dict([])
