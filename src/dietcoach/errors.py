"""Exception types raised by the rule engine and the plan generator.

Rule violations are never exceptions: they come back as a falsy
``EvaluationResult``. Exceptions are reserved for configuration problems
that make a generation attempt impossible.
"""

from __future__ import annotations

from typing import Any, Optional


class DietCoachError(Exception):
    """Base class for all dietcoach errors.

    Attributes:
        code: Stable machine-readable error code
        details: Optional structured context for logging or UI
    """

    code = "DIETCOACH_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class GeneratorConfigError(DietCoachError):
    """Generator configuration is unusable (no templates, missing slots, ...)."""

    code = "MEAL_PLAN_CONFIG_INVALID"


class InsufficientIngredientsError(DietCoachError):
    """Allowed ingredient pools are too small to build a meal."""

    code = "INSUFFICIENT_ALLOWED_INGREDIENTS"

    def __init__(
        self,
        message: str,
        empty_pools: Optional[list[str]] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.empty_pools = list(empty_pools or [])


class VarietyTargetsNotMetError(DietCoachError):
    """A generated plan misses one or more configured variety targets."""

    code = "MEAL_PLAN_VARIETY_TARGETS_NOT_MET"


class StorageError(DietCoachError):
    """A storage provider failed to load or persist rows."""

    code = "STORAGE_ERROR"


class NutritionLookupError(DietCoachError):
    """Macro lookup failed for one or more ingredient codes."""

    code = "NUTRITION_LOOKUP_FAILED"
