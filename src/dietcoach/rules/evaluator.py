"""Four-phase diet rule evaluation.

Phases run in a fixed order and stop at the first hard failure:

1. DROP  - any ingredient owned by a hard DROP rule fails the target
2. FORCE - every FORCE rule must own at least its required count
3. LIMIT - no LIMIT rule may own more than its cap (soft caps only warn)
4. PASS  - informational, always succeeds

DROP runs first so that an excluded ingredient can never be rescued by a
quota that happens to be satisfied elsewhere. Ownership is decided by
``winning_constraint``: each ingredient counts towards exactly one rule,
the matching rule with the lowest priority number.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from dietcoach.rules.matcher import matches
from dietcoach.rules.models import (
    Constraint,
    EvaluationResult,
    ForceDeficit,
    Ingredient,
    LimitExcess,
    PhaseResult,
    RuleAction,
    RuleSet,
    Target,
)

logger = logging.getLogger(__name__)

PHASE_NAMES = {1: "DROP", 2: "FORCE", 3: "LIMIT", 4: "PASS"}


def winning_constraint(
    ingredient_name: str,
    constraints_by_priority: Sequence[Constraint],
) -> Optional[Constraint]:
    """Return the first constraint (in priority order) whose terms match.

    Args:
        ingredient_name: Ingredient name as written in the meal
        constraints_by_priority: Constraints sorted by priority ascending

    Returns:
        The owning Constraint, or None if no rule matches.
    """
    for constraint in constraints_by_priority:
        if matches(ingredient_name, constraint.terms):
            return constraint
    return None


def _failure(
    phase: int,
    phase_results: list[PhaseResult],
    violation_count: int,
    warnings: list[str],
) -> EvaluationResult:
    summary = f"Phase {phase} {PHASE_NAMES[phase]}: {violation_count} violation(s)."
    logger.info("Diet rule evaluation failed: %s", summary)
    return EvaluationResult(
        ok=False,
        failed_phase=phase,
        phase_results=phase_results,
        summary=summary,
        warnings=list(warnings),
    )


def evaluate(ruleset: RuleSet, target: Target) -> EvaluationResult:
    """Evaluate a target's ingredients against a rule set.

    Neither argument is modified; calling twice with the same inputs gives
    equal results.

    Args:
        ruleset: Rules of the diet profile
        target: Ingredients to check (one meal, a day, or a week)

    Returns:
        EvaluationResult; falsy when a phase failed.
    """
    ingredients = target.ingredients
    all_by_priority = ruleset.constraints
    phase_results: list[PhaseResult] = []
    all_warnings: list[str] = []

    # Resolve ownership once; every phase counts against the same winners
    winners: list[tuple[Ingredient, Optional[Constraint]]] = [
        (ing, winning_constraint(ing.name, all_by_priority)) for ing in ingredients
    ]

    # Phase 1: DROP
    drop_violations: list[str] = []
    drop_warnings: list[str] = []
    for ing, winner in winners:
        if winner is None or winner.action != RuleAction.DROP:
            continue
        msg = f'{ing.name} belongs to "{winner.category_label}" (DROP - not allowed)'
        if winner.is_hard:
            drop_violations.append(msg)
        else:
            drop_warnings.append(msg)
    phase_results.append(
        PhaseResult(
            phase=1,
            ok=not drop_violations,
            violations=drop_violations,
            warnings=drop_warnings,
        )
    )
    all_warnings.extend(drop_warnings)
    if drop_violations:
        return _failure(1, phase_results, len(drop_violations), all_warnings)

    # Phase 2: FORCE (always hard)
    force_deficits: list[ForceDeficit] = []
    for constraint in ruleset.for_action(RuleAction.FORCE):
        count = sum(1 for _, winner in winners if winner is not None and winner.id == constraint.id)
        required = constraint.required_count
        if required > 0 and count < required:
            force_deficits.append(
                ForceDeficit(
                    category_code=constraint.category_code,
                    category_label=constraint.category_label,
                    actual=count,
                    required=required,
                    min_per_day=constraint.min_per_day,
                    min_per_week=constraint.min_per_week,
                )
            )
    force_violations = [
        f'Too few from "{d.category_label}" (FORCE quota not met: {d.actual}/{d.required})'
        for d in force_deficits
    ]
    phase_results.append(
        PhaseResult(
            phase=2,
            ok=not force_deficits,
            violations=force_violations,
            force_deficits=force_deficits,
        )
    )
    if force_deficits:
        return _failure(2, phase_results, len(force_deficits), all_warnings)

    # Phase 3: LIMIT
    limit_violations: list[str] = []
    limit_warnings: list[str] = []
    limit_excesses: list[LimitExcess] = []
    for constraint in ruleset.for_action(RuleAction.LIMIT):
        cap = constraint.max_count
        if cap is None:
            continue
        count = sum(1 for _, winner in winners if winner is not None and winner.id == constraint.id)
        if count <= cap:
            continue
        limit_excesses.append(
            LimitExcess(
                category_code=constraint.category_code,
                category_label=constraint.category_label,
                actual=count,
                max_per_day=constraint.max_per_day,
                max_per_week=constraint.max_per_week,
                strictness=constraint.strictness,
            )
        )
        msg = f'"{constraint.category_label}": {count} used, max {cap}'
        if constraint.is_hard:
            limit_violations.append(msg)
        else:
            limit_warnings.append(msg)
    all_warnings.extend(limit_warnings)
    phase_results.append(
        PhaseResult(
            phase=3,
            ok=not limit_violations,
            violations=limit_violations,
            warnings=limit_warnings,
            limit_excesses=limit_excesses,
        )
    )
    if limit_violations:
        return _failure(3, phase_results, len(limit_violations), all_warnings)

    # Phase 4: PASS
    phase_results.append(PhaseResult(phase=4, ok=True))

    return EvaluationResult(
        ok=True,
        failed_phase=None,
        phase_results=phase_results,
        summary="Diet rules: all phases passed.",
        warnings=all_warnings,
    )


def evaluate_names(ruleset: RuleSet, names: Iterable[str], per_day: bool = True) -> EvaluationResult:
    """Evaluate plain ingredient names."""
    return evaluate(ruleset, Target.from_names(list(names), per_day=per_day))


def evaluate_meals(ruleset: RuleSet, meals: Iterable, per_day: bool = True) -> EvaluationResult:
    """Evaluate the combined ingredients of one or more meals.

    Meals may be ``Meal`` or ``MealDraft`` objects; display names are used
    for matching, falling back to the ingredient code.
    """
    ingredients: list[Ingredient] = []
    for meal in meals:
        for ref in meal.ingredient_refs:
            ingredients.append(
                Ingredient(name=ref.display_name or ref.code, amount_grams=ref.grams)
            )
    return evaluate(ruleset, Target(ingredients=tuple(ingredients), per_day=per_day))


def evaluate_plan(ruleset: RuleSet, plan) -> dict[str, EvaluationResult]:
    """Evaluate every day of a plan against the rule set.

    Returns:
        Dict mapping ISO date string to that day's EvaluationResult.
    """
    return {day.date: evaluate_meals(ruleset, day.meals) for day in plan.days}
