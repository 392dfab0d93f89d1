"""Tests for the four-phase diet rule evaluator."""

from __future__ import annotations

import copy

from dietcoach.generator.models import Day, Meal, MealIngredientRef, Plan, PlanMetadata
from dietcoach.rules.evaluator import (
    evaluate,
    evaluate_meals,
    evaluate_names,
    evaluate_plan,
    winning_constraint,
)
from dietcoach.rules.models import Ingredient, RuleAction, RuleSet, Strictness, Target

from conftest import make_constraint


def _ruleset(*constraints) -> RuleSet:
    return RuleSet(diet_profile_id="test", constraints=tuple(constraints))


def _meal(day: str, slot: str, *names: str) -> Meal:
    refs = tuple(MealIngredientRef(n.lower(), 100, n) for n in names)
    return Meal(id=f"{day}-{slot}", name=f"{slot} meal", slot=slot, date=day, ingredient_refs=refs)


class TestWinningConstraint:
    """Tests for priority-based conflict resolution."""

    def test_lowest_priority_number_wins(self):
        low = make_constraint("greens", RuleAction.FORCE, ["spinach"], priority=5, min_per_day=1)
        high = make_constraint("veg", RuleAction.LIMIT, ["spinach"], priority=20, max_per_day=1)
        ruleset = _ruleset(high, low)
        assert winning_constraint("spinach", ruleset.constraints) is low

    def test_equal_priority_keeps_input_order(self):
        first = make_constraint("first", RuleAction.PASS, ["kale"], priority=10)
        second = make_constraint("second", RuleAction.DROP, ["kale"], priority=10)
        ruleset = _ruleset(first, second)
        assert winning_constraint("kale", ruleset.constraints) is first

    def test_no_match_returns_none(self, wahls_ruleset):
        assert winning_constraint("salmon", wahls_ruleset.constraints) is None

    def test_total_order_is_deterministic(self):
        """Any ingredient matching several rules always resolves to the smallest priority."""
        constraints = [
            make_constraint(f"c{p}", RuleAction.PASS, ["broccoli"], priority=p)
            for p in (40, 7, 99, 12)
        ]
        ruleset = _ruleset(*constraints)
        for _ in range(3):
            assert winning_constraint("broccoli", ruleset.constraints).priority == 7


class TestScenarios:
    """Reference scenarios for each phase."""

    def test_hard_drop_fails_phase_one(self):
        ruleset = _ruleset(make_constraint("peanut", RuleAction.DROP, ["pindakaas"]))
        result = evaluate_names(ruleset, ["pindakaas"])
        assert result.ok is False
        assert result.failed_phase == 1
        assert not result

    def test_soft_drop_only_warns(self):
        ruleset = _ruleset(
            make_constraint("peanut", RuleAction.DROP, ["pindakaas"], strictness=Strictness.SOFT)
        )
        result = evaluate_names(ruleset, ["pindakaas"])
        assert result.ok is True
        assert result.failed_phase is None
        assert len(result.warnings) == 1
        assert "pindakaas" in result.warnings[0]

    def test_force_quota_not_met(self):
        ruleset = _ruleset(make_constraint("fish", RuleAction.FORCE, ["zalm"], min_per_day=1))
        result = evaluate_names(ruleset, ["broccoli"])
        assert result.ok is False
        assert result.failed_phase == 2
        assert [d.category_code for d in result.force_deficits] == ["fish"]
        deficit = result.force_deficits[0]
        assert deficit.actual == 0
        assert deficit.required == 1

    def test_hard_limit_exceeded(self):
        ruleset = _ruleset(make_constraint("cheese", RuleAction.LIMIT, ["kaas"], max_per_day=1))
        result = evaluate_names(ruleset, ["kaas", "kaas"])
        assert result.ok is False
        assert result.failed_phase == 3
        assert result.limit_excesses[0].actual == 2


class TestPhases:
    """Tests for phase ordering and messages."""

    def test_drop_short_circuits(self, wahls_ruleset):
        """Phases 2-4 never run after a DROP failure."""
        result = evaluate_names(wahls_ruleset, ["bread", "cheese", "cheese"])
        assert result.failed_phase == 1
        assert result.executed_phases == [1]

    def test_drop_message(self, wahls_ruleset):
        result = evaluate_names(wahls_ruleset, ["tarwebloem", "spinach"])
        assert result.violations == ['tarwebloem belongs to "Gluten" (DROP - not allowed)']
        assert result.summary == "Phase 1 DROP: 1 violation(s)."

    def test_force_message(self, wahls_ruleset):
        result = evaluate_names(wahls_ruleset, ["salmon"])
        assert result.violations == [
            'Too few from "Leafy Greens" (FORCE quota not met: 0/1)'
        ]
        assert result.executed_phases == [1, 2]

    def test_limit_message(self, wahls_ruleset):
        result = evaluate_names(wahls_ruleset, ["spinach", "cheese", "kaas"])
        assert result.violations == ['"Cheese": 2 used, max 1']
        assert result.summary == "Phase 3 LIMIT: 1 violation(s)."

    def test_soft_limit_warns(self):
        ruleset = _ruleset(
            make_constraint(
                "cheese", RuleAction.LIMIT, ["kaas"], max_per_day=1, strictness=Strictness.SOFT
            )
        )
        result = evaluate_names(ruleset, ["kaas", "kaas"])
        assert result.ok is True
        assert result.warnings == ['"Cheese": 2 used, max 1']
        assert result.limit_excesses[0].strictness == Strictness.SOFT

    def test_all_phases_pass(self, wahls_ruleset):
        result = evaluate_names(wahls_ruleset, ["spinach", "salmon", "parsley"])
        assert result.ok is True
        assert result.executed_phases == [1, 2, 3, 4]
        assert result.summary == "Diet rules: all phases passed."

    def test_weekly_quota_used_without_daily(self):
        ruleset = _ruleset(make_constraint("fish", RuleAction.FORCE, ["salmon"], min_per_week=2))
        result = evaluate_names(ruleset, ["salmon"], per_day=False)
        assert result.failed_phase == 2
        assert result.force_deficits[0].required == 2

    def test_zero_quota_never_fires(self):
        ruleset = _ruleset(make_constraint("fish", RuleAction.FORCE, ["salmon"], min_per_day=0))
        assert evaluate_names(ruleset, []).ok

    def test_limit_without_max_never_fires(self):
        ruleset = _ruleset(make_constraint("cheese", RuleAction.LIMIT, ["kaas"]))
        assert evaluate_names(ruleset, ["kaas"] * 5).ok

    def test_overlapping_category_counts_once(self):
        """An ingredient counts only toward its winning rule."""
        greens = make_constraint("greens", RuleAction.FORCE, ["spinach"], priority=1, min_per_day=1)
        veg = make_constraint("veg", RuleAction.FORCE, ["spinach", "carrot"], priority=2, min_per_day=1)
        result = evaluate_names(_ruleset(greens, veg), ["spinach"])
        assert result.failed_phase == 2
        assert [d.category_code for d in result.force_deficits] == ["veg"]

    def test_empty_ruleset_passes(self):
        assert evaluate_names(_ruleset(), ["anything"]).ok


class TestConservation:
    """Evaluation never mutates its inputs."""

    def test_repeat_evaluation_is_identical(self, wahls_ruleset):
        target = Target(ingredients=(Ingredient("spinach"), Ingredient("cheese"), Ingredient("kaas")))
        ruleset_before = copy.deepcopy(wahls_ruleset)
        target_before = copy.deepcopy(target)

        first = evaluate(wahls_ruleset, target)
        second = evaluate(wahls_ruleset, target)

        assert first == second
        assert first.to_dict() == second.to_dict()
        assert wahls_ruleset == ruleset_before
        assert target == target_before


class TestMealHelpers:
    """Tests for meal and plan evaluation helpers."""

    def test_evaluate_meals_flattens_ingredients(self, wahls_ruleset):
        meals = [_meal("2024-01-01", "lunch", "Salmon"), _meal("2024-01-01", "dinner", "Spinach")]
        assert evaluate_meals(wahls_ruleset, meals).ok

    def test_evaluate_plan_per_day(self, wahls_ruleset):
        days = (
            Day("2024-01-01", (_meal("2024-01-01", "lunch", "Spinach", "Salmon"),)),
            Day("2024-01-02", (_meal("2024-01-02", "lunch", "Bread", "Spinach"),)),
        )
        plan = Plan(
            request_id="p1",
            days=days,
            metadata=PlanMetadata("2024-01-01T00:00:00+00:00", "default", 2, 2),
        )
        results = evaluate_plan(wahls_ruleset, plan)
        assert results["2024-01-01"].ok
        assert results["2024-01-02"].failed_phase == 1

    def test_to_dict_is_plain_data(self, wahls_ruleset):
        data = evaluate_names(wahls_ruleset, ["spinach", "cheese", "kaas"]).to_dict()
        assert data["ok"] is False
        assert data["failed_phase"] == 3
        excess = data["phase_results"][2]["limit_excesses"][0]
        assert excess["strictness"] == "hard"
