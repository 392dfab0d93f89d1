"""Diet rule model, matching and four-phase compliance evaluation."""

from __future__ import annotations

from dietcoach.rules.evaluator import (
    evaluate,
    evaluate_meals,
    evaluate_names,
    evaluate_plan,
    winning_constraint,
)
from dietcoach.rules.loader import load_ruleset, load_ruleset_for_user
from dietcoach.rules.matcher import matches, normalize
from dietcoach.rules.models import (
    Constraint,
    EvaluationResult,
    ForceDeficit,
    Ingredient,
    LimitExcess,
    PhaseResult,
    RuleAction,
    RuleSet,
    Strictness,
    Target,
)
from dietcoach.rules.profiles import load_ruleset_from_yaml

__all__ = [
    "Constraint",
    "EvaluationResult",
    "ForceDeficit",
    "Ingredient",
    "LimitExcess",
    "PhaseResult",
    "RuleAction",
    "RuleSet",
    "Strictness",
    "Target",
    "evaluate",
    "evaluate_meals",
    "evaluate_names",
    "evaluate_plan",
    "load_ruleset",
    "load_ruleset_for_user",
    "load_ruleset_from_yaml",
    "matches",
    "normalize",
    "winning_constraint",
]
