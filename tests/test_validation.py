"""Tests for the sanity validator, variety scorecard and tuning advisor."""

from __future__ import annotations

import pytest

from dietcoach.errors import GeneratorConfigError, VarietyTargetsNotMetError
from dietcoach.generator.definitions import default_config
from dietcoach.generator.models import (
    Day,
    GeneratorLimits,
    IngredientPools,
    Meal,
    MealIngredientRef,
    Plan,
    PlanMetadata,
    PlanRequest,
    PoolItem,
    QualityMetrics,
    SynthesisResult,
)
from dietcoach.generator.synthesizer import synthesize
from dietcoach.validation.advisor import AdvisorConfig, Severity, get_tuning_suggestions
from dietcoach.validation.sanity import (
    SanityIssueCode,
    is_placeholder_name,
    validate_meal,
    validate_plan,
)
from dietcoach.validation.variety import (
    VarietyTargets,
    build_variety_scorecard,
    is_fruit,
    is_protein,
    is_vegetable,
    max_repeat_within_days,
    raise_if_variety_targets_not_met,
)


def _refs(*items):
    return tuple(MealIngredientRef(code, grams, name) for code, grams, name in items)


GOOD_REFS = _refs(("salmon", 120, "Salmon"), ("spinach", 80, "Spinach"), ("carrot", 60, "Carrot"))


def _meal(name="Salmon bowl", refs=GOOD_REFS, day="2024-01-01", slot="lunch", mid="m1"):
    return Meal(id=mid, name=name, slot=slot, date=day, ingredient_refs=refs)


def _plan(*days):
    return Plan(
        request_id="p1",
        days=tuple(days),
        metadata=PlanMetadata(
            "2024-01-01T00:00:00+00:00", "default", len(days), sum(len(d.meals) for d in days)
        ),
    )


def _result(plan, quality=None):
    return SynthesisResult(
        plan=plan, rotation=["bowl"], used_template_ids=["bowl"], quality=quality or QualityMetrics()
    )


class TestSanity:
    """Tests for the sanity validator."""

    def test_placeholder_name(self):
        plan = _plan(Day("2024-01-01", (_meal(name="tbd"),)))
        result = validate_plan(plan)
        assert not result.ok
        assert [i.code for i in result.issues] == [SanityIssueCode.PLACEHOLDER_NAME]
        assert result.issues[0].date == "2024-01-01"

    def test_placeholder_heuristics(self):
        assert is_placeholder_name("Lunch")
        assert is_placeholder_name("ab")
        assert not is_placeholder_name("Salmon bowl")

    def test_empty_name(self):
        codes = [i.code for i in validate_meal(_meal(name="  "), "2024-01-01")]
        assert codes == [SanityIssueCode.EMPTY_NAME]

    def test_ingredient_count(self):
        codes = [i.code for i in validate_meal(_meal(refs=()), "2024-01-01")]
        assert codes == [SanityIssueCode.INGREDIENT_COUNT_OUT_OF_RANGE]
        many = tuple(MealIngredientRef(f"c{i}", 10, f"Item {i}") for i in range(11))
        codes = [i.code for i in validate_meal(_meal(refs=many), "2024-01-01")]
        assert codes == [SanityIssueCode.INGREDIENT_COUNT_OUT_OF_RANGE]

    def test_quantity_range(self):
        refs = _refs(("salmon", 0.5, "Salmon"), ("rice", 401, "Rice"), ("kale", 400, "Kale"))
        issues = validate_meal(_meal(refs=refs), "2024-01-01")
        assert [i.code for i in issues] == [SanityIssueCode.INGREDIENT_QTY_OUT_OF_RANGE] * 2

    def test_duplicate_and_missing_code(self):
        refs = _refs(("salmon", 100, "Salmon"), ("salmon", 100, "Salmon"), ("", 50, "Mystery"))
        codes = {i.code for i in validate_meal(_meal(refs=refs), "2024-01-01")}
        assert codes == {SanityIssueCode.DUPLICATE_INGREDIENT, SanityIssueCode.MISSING_CODE}

    def test_empty_day(self):
        result = validate_plan(_plan(Day("2024-01-01", ())))
        assert result.count(SanityIssueCode.EMPTY_DAY) == 1

    def test_plan_not_modified(self):
        plan = _plan(Day("2024-01-01", (_meal(name="tbd"),)))
        before = plan.to_dict()
        validate_plan(plan)
        assert plan.to_dict() == before

    def test_generated_plan_is_clean(self, monday, starter_pools):
        result = synthesize(PlanRequest.for_days(monday, 7), default_config(), starter_pools)
        assert validate_plan(result.plan).ok


class TestVariety:
    """Tests for the variety scorecard."""

    def test_keyword_heuristics(self):
        assert is_vegetable("spinach")
        assert is_vegetable("spinazie")
        assert is_fruit("blueberries")
        assert is_protein("salmon")
        assert not is_fruit("salmon")

    def test_unavailable_without_targets(self):
        scorecard = build_variety_scorecard(_plan(Day("2024-01-01", (_meal(),))), None)
        assert scorecard.status == "unavailable"
        with pytest.raises(GeneratorConfigError):
            raise_if_variety_targets_not_met(scorecard)

    def test_targets_scaled_to_plan_length(self):
        scaled = VarietyTargets().scaled(2)
        assert scaled.unique_veg_min == 2
        assert scaled.unique_fruit_min == 1
        assert scaled.protein_rotation_min_categories == 1
        assert scaled.max_repeat_same_recipe_within_days == 2

    def test_repeat_window(self):
        days = [
            Day("2024-01-01", (_meal(mid="a"),)),
            Day("2024-01-02", (_meal(mid="b"),)),
            Day("2024-01-03", (_meal(name="Tofu soup", mid="c"),)),
        ]
        plan = _plan(*days)
        assert max_repeat_within_days(plan, 2)[0] == 2
        max_repeat, top = max_repeat_within_days(plan, 1)
        assert max_repeat == 1
        assert top == [("salmon bowl", 2)]

    def test_scorecard_counts(self):
        refs = _refs(
            ("salmon", 120, "Salmon"),
            ("spinach", 80, "Spinach"),
            ("apple", 60, "Apple"),
        )
        plan = _plan(Day("2024-01-01", (_meal(refs=refs),)))
        scorecard = build_variety_scorecard(plan, VarietyTargets())
        assert scorecard.status == "ok"
        assert scorecard.unique_veg_count == 1
        assert scorecard.unique_fruit_count == 1
        assert scorecard.protein_unique_count == 1
        assert scorecard.meets_all

    def test_targets_not_met(self):
        plan = _plan(
            *[Day(f"2024-01-0{i}", (_meal(mid=str(i), day=f"2024-01-0{i}"),)) for i in range(1, 8)]
        )
        scorecard = build_variety_scorecard(plan, VarietyTargets())
        assert not scorecard.meets_all
        with pytest.raises(VarietyTargetsNotMetError):
            raise_if_variety_targets_not_met(scorecard)

    def test_none_scorecard_is_ignored(self):
        raise_if_variety_targets_not_met(None)


class TestAdvisor:
    """Tests for tuning suggestions."""

    def _config(self, **counts):
        pool_counts = {"protein": 10, "veg": 10, "fat": 10, "flavor": 5}
        pool_counts.update(counts)
        return AdvisorConfig(diet_key="default", pool_counts=pool_counts)

    def test_clean_run_has_no_suggestions(self):
        plan = _plan(Day("2024-01-01", (_meal(),)))
        assert get_tuning_suggestions(_result(plan), validate_plan(plan), self._config()) == []

    def test_forced_repeats(self):
        plan = _plan(Day("2024-01-01", (_meal(),)))
        quality = QualityMetrics(repeats_forced=2, protein_counts_top=[("salmon", 4)])
        suggestions = get_tuning_suggestions(_result(plan, quality), None, self._config())
        assert [s.code for s in suggestions] == ["REPEATS_FORCED"]
        assert len(suggestions[0].actions) <= 3

    def test_low_pools(self):
        plan = _plan(Day("2024-01-01", (_meal(),)))
        suggestions = get_tuning_suggestions(_result(plan), None, self._config(protein=2, fat=1))
        assert [s.code for s in suggestions] == ["POOL_LOW"]
        assert "protein (2)" in suggestions[0].actions[0].hint
        assert "fat (1)" in suggestions[0].actions[0].hint

    def test_sanity_codes_and_order(self):
        days = [
            Day(f"2024-01-0{i}", (_meal(name="tbd", mid=str(i), day=f"2024-01-0{i}"),))
            for i in range(1, 4)
        ] + [Day("2024-01-04", ())]
        plan = _plan(*days)
        suggestions = get_tuning_suggestions(_result(plan), validate_plan(plan), self._config())
        codes = [s.code for s in suggestions]
        assert codes == ["SANITY_PLACEHOLDER", "SANITY_EMPTY_DAY", "VEG_MONOTONY"]
        assert suggestions[-1].severity == Severity.INFO

    def test_at_most_eight(self, monday):
        pools = IngredientPools(
            protein=[PoolItem("salmon", "Salmon")],
            veg=[PoolItem("kale", "Kale"), PoolItem("carrot", "Carrot")],
        )
        result = synthesize(PlanRequest.for_days(monday, 7), default_config(GeneratorLimits()), pools)
        config = AdvisorConfig.from_config(default_config(), pools, "default")
        suggestions = get_tuning_suggestions(result, validate_plan(result.plan), config)
        assert len(suggestions) <= 8
        assert suggestions[0].code == "REPEATS_FORCED"
        assert "POOL_LOW" in [s.code for s in suggestions]
        severities = [s.severity for s in suggestions]
        assert severities == sorted(severities, key=lambda s: 0 if s == Severity.WARN else 1)
