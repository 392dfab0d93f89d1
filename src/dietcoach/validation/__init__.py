"""Post-generation checks: sanity issues, variety scorecard, tuning advice."""

from __future__ import annotations

from dietcoach.validation.advisor import AdvisorConfig, TuningSuggestion, get_tuning_suggestions
from dietcoach.validation.sanity import SanityIssue, SanityIssueCode, SanityResult, validate_plan
from dietcoach.validation.variety import (
    VarietyScorecard,
    VarietyTargets,
    build_variety_scorecard,
    raise_if_variety_targets_not_met,
)

__all__ = [
    "AdvisorConfig",
    "SanityIssue",
    "SanityIssueCode",
    "SanityResult",
    "TuningSuggestion",
    "VarietyScorecard",
    "VarietyTargets",
    "build_variety_scorecard",
    "get_tuning_suggestions",
    "raise_if_variety_targets_not_met",
    "validate_plan",
]
