"""Data models for diet rules and compliance evaluation.

A diet profile is a prioritized list of rules. Each rule owns a category
of ingredient terms and says what to do with it:

- DROP: ingredient is not allowed (hard) or discouraged (soft)
- FORCE: at least N ingredients from the category per day/week
- LIMIT: at most N ingredients from the category per day/week
- PASS: allowed, informational only

When an ingredient matches several rules, the rule with the lowest
priority number owns it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


class RuleAction(Enum):
    """What a rule does with the ingredients it owns."""

    DROP = "drop"
    FORCE = "force"
    LIMIT = "limit"
    PASS = "pass"


class Strictness(Enum):
    """Enforcement level: hard blocks, soft warns."""

    HARD = "hard"
    SOFT = "soft"


# Phase number per action; evaluation runs in this order
PHASE_BY_ACTION: dict[RuleAction, int] = {
    RuleAction.DROP: 1,
    RuleAction.FORCE: 2,
    RuleAction.LIMIT: 3,
    RuleAction.PASS: 4,
}

DEFAULT_PRIORITY = 50


@dataclass(frozen=True)
class Constraint:
    """One diet rule bound to an ingredient category.

    Attributes:
        id: Rule identifier (storage id or synthetic id)
        diet_profile_id: Diet profile this rule belongs to
        action: What the rule does (drop/force/limit/pass)
        category_code: Stable category code (e.g. "wahls_leafy_greens")
        category_label: Human-readable category name
        terms: Lowercased terms and synonyms matched against ingredient names
        min_per_day: FORCE quota per day
        min_per_week: FORCE quota per week (used when min_per_day is unset/0)
        max_per_day: LIMIT cap per day (preferred)
        max_per_week: LIMIT cap per week
        strictness: hard or soft
        priority: 1 = highest precedence; ties keep input order
    """

    id: str
    diet_profile_id: str
    action: RuleAction
    category_code: str
    category_label: str
    terms: tuple[str, ...]
    min_per_day: Optional[int] = None
    min_per_week: Optional[int] = None
    max_per_day: Optional[int] = None
    max_per_week: Optional[int] = None
    strictness: Strictness = Strictness.HARD
    priority: int = DEFAULT_PRIORITY

    def __post_init__(self) -> None:
        if not self.terms:
            raise ValueError(f"Constraint {self.id} has no terms")

    @property
    def is_hard(self) -> bool:
        return self.strictness == Strictness.HARD

    @property
    def required_count(self) -> int:
        """FORCE quota: per-day minimum if set, else per-week minimum."""
        min_day = self.min_per_day or 0
        min_week = self.min_per_week or 0
        return min_day if min_day > 0 else min_week

    @property
    def max_count(self) -> Optional[int]:
        """LIMIT cap: per-day maximum if set, else per-week maximum."""
        if self.max_per_day is not None:
            return self.max_per_day
        return self.max_per_week

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        data["strictness"] = self.strictness.value
        data["terms"] = list(self.terms)
        return data


@dataclass(frozen=True)
class RuleSet:
    """All rules for one diet profile, sorted by priority.

    Built once per evaluation request and never mutated. ``by_action``
    gives each phase direct access to its own rules.
    """

    diet_profile_id: str
    constraints: tuple[Constraint, ...] = ()
    by_action: dict[RuleAction, tuple[Constraint, ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        # sorted() is stable, so equal priorities keep their input order
        ordered = tuple(sorted(self.constraints, key=lambda c: c.priority))
        object.__setattr__(self, "constraints", ordered)
        object.__setattr__(
            self,
            "by_action",
            {
                action: tuple(c for c in ordered if c.action == action)
                for action in RuleAction
            },
        )

    def __len__(self) -> int:
        return len(self.constraints)

    def for_action(self, action: RuleAction) -> tuple[Constraint, ...]:
        return self.by_action[action]

    def find_category(self, category_code: str) -> Optional[Constraint]:
        for constraint in self.constraints:
            if constraint.category_code == category_code:
                return constraint
        return None


@dataclass(frozen=True)
class Ingredient:
    """An ingredient reference as seen by the evaluator."""

    name: str
    amount_grams: Optional[float] = None


@dataclass(frozen=True)
class Target:
    """The set of ingredients being evaluated (a meal, a day, or a week)."""

    ingredients: tuple[Ingredient, ...] = ()
    per_day: bool = True

    @classmethod
    def from_names(cls, names: list[str], per_day: bool = True) -> "Target":
        return cls(ingredients=tuple(Ingredient(name=n) for n in names), per_day=per_day)


@dataclass
class ForceDeficit:
    """A FORCE quota that was not met."""

    category_code: str
    category_label: str
    actual: int
    required: int
    min_per_day: Optional[int] = None
    min_per_week: Optional[int] = None


@dataclass
class LimitExcess:
    """A LIMIT cap that was exceeded."""

    category_code: str
    category_label: str
    actual: int
    max_per_day: Optional[int] = None
    max_per_week: Optional[int] = None
    strictness: Strictness = Strictness.HARD


@dataclass
class PhaseResult:
    """Outcome of one evaluation phase."""

    phase: int
    ok: bool
    violations: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    force_deficits: list[ForceDeficit] = field(default_factory=list)
    limit_excesses: list[LimitExcess] = field(default_factory=list)


@dataclass
class EvaluationResult:
    """Outcome of evaluating a target against a rule set.

    Attributes:
        ok: True when no phase reported a hard failure
        failed_phase: First failing phase (1=DROP, 2=FORCE, 3=LIMIT) or None
        phase_results: Results for the phases that actually ran
        summary: One-line human-readable summary
        warnings: Soft warnings from all phases that ran
    """

    ok: bool
    failed_phase: Optional[int]
    phase_results: list[PhaseResult]
    summary: str
    warnings: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok

    @property
    def executed_phases(self) -> list[int]:
        return [p.phase for p in self.phase_results]

    @property
    def violations(self) -> list[str]:
        return [v for p in self.phase_results for v in p.violations]

    @property
    def force_deficits(self) -> list[ForceDeficit]:
        return [d for p in self.phase_results for d in p.force_deficits]

    @property
    def limit_excesses(self) -> list[LimitExcess]:
        return [e for p in self.phase_results for e in p.limit_excesses]

    def to_dict(self) -> dict[str, Any]:
        def _phase(p: PhaseResult) -> dict[str, Any]:
            data = asdict(p)
            for excess in data["limit_excesses"]:
                excess["strictness"] = excess["strictness"].value
            return data

        return {
            "ok": self.ok,
            "failed_phase": self.failed_phase,
            "summary": self.summary,
            "warnings": list(self.warnings),
            "phase_results": [_phase(p) for p in self.phase_results],
        }
