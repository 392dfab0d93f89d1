"""Load diet rule sets from a storage provider.

Storage hands back plain rows (dicts); this module turns them into
immutable ``Constraint`` objects right at the boundary. Rows with an
unknown action or strictness, or without any usable terms, are dropped
here so nothing downstream ever sees a free-form string.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Protocol

from dietcoach.rules.models import (
    DEFAULT_PRIORITY,
    Constraint,
    RuleAction,
    RuleSet,
    Strictness,
)

logger = logging.getLogger(__name__)

# Categories added as hard DROP rules for inflammation-sensitive profiles
INFLAMMATORY_CATEGORY_CODES = ("wahls_nightshades", "nightshades")
INFLAMMATORY_LABEL_SUFFIX = " (inflammation-sensitive)"

QUOTA_KEYS = ("min_per_day", "min_per_week", "max_per_day", "max_per_week")


class RuleStorage(Protocol):
    """What the loader needs from rule/category storage."""

    def load_rule_rows(self, diet_profile_id: str) -> list[dict[str, Any]]:
        """Active rule rows for a diet profile, each with a nested ``category``."""
        ...

    def load_category_rows(self, codes: Iterable[str]) -> list[dict[str, Any]]:
        """Active category rows (with ``items``) for the given codes."""
        ...

    def load_user_profile(self, user_id: str) -> Optional[dict[str, Any]]:
        """The user's current diet profile row (``diet_profile_id``, ``is_inflamed``)."""
        ...


def collect_terms(items: Iterable[dict[str, Any]]) -> tuple[str, ...]:
    """Collect lowercased terms and synonyms from active category items.

    Order is first-seen; duplicates and blanks are removed.
    """
    seen: dict[str, None] = {}
    for item in items:
        if item.get("is_active") is False:
            continue
        term = str(item.get("term") or "").strip().lower()
        if term:
            seen.setdefault(term, None)
        for synonym in item.get("synonyms") or []:
            value = str(synonym).strip().lower()
            if value:
                seen.setdefault(value, None)
    return tuple(seen)


def _parse_action(row: dict[str, Any]) -> Optional[RuleAction]:
    raw = row.get("action")
    if raw is None:
        # Legacy rows only carry constraint_type
        raw = "force" if row.get("constraint_type") == "required" else "drop"
    try:
        return RuleAction(str(raw).strip().lower())
    except ValueError:
        return None


def _parse_strictness(raw: Any) -> Optional[Strictness]:
    if raw is None:
        return Strictness.HARD
    try:
        return Strictness(str(raw).strip().lower())
    except ValueError:
        return None


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def constraint_from_row(row: dict[str, Any]) -> Optional[Constraint]:
    """Convert one storage row into a Constraint.

    Returns:
        The Constraint, or None if the row has an unknown action or
        strictness, no usable terms, or a non-numeric quota or priority.
    """
    action = _parse_action(row)
    if action is None:
        logger.debug("Dropping rule %s: unknown action %r", row.get("id"), row.get("action"))
        return None
    strictness = _parse_strictness(row.get("strictness"))
    if strictness is None:
        logger.debug(
            "Dropping rule %s: unknown strictness %r", row.get("id"), row.get("strictness")
        )
        return None

    category = row.get("category") or {}
    terms = collect_terms(category.get("items") or [])
    if not terms:
        logger.debug("Dropping rule %s: category has no active terms", row.get("id"))
        return None

    priority = row.get("rule_priority")
    if priority is None:
        priority = row.get("priority")
    if priority is None:
        priority = DEFAULT_PRIORITY

    try:
        quotas = {key: _optional_int(row.get(key)) for key in QUOTA_KEYS}
        priority = int(priority)
    except (TypeError, ValueError):
        logger.debug("Dropping rule %s: non-numeric quota or priority", row.get("id"))
        return None

    return Constraint(
        id=str(row["id"]),
        diet_profile_id=str(row.get("diet_profile_id") or ""),
        action=action,
        category_code=str(category.get("code") or ""),
        category_label=str(category.get("label") or category.get("code") or ""),
        terms=terms,
        strictness=strictness,
        priority=priority,
        **quotas,
    )


def inflammatory_constraints(
    diet_profile_id: str, category_rows: Iterable[dict[str, Any]]
) -> list[Constraint]:
    """Build synthetic hard DROP rules from inflammatory trigger categories."""
    out: list[Constraint] = []
    for cat in category_rows:
        terms = collect_terms(cat.get("items") or [])
        if not terms:
            continue
        label = cat.get("label") or "Nightshades"
        out.append(
            Constraint(
                id=f"synthetic:nightshade:{cat.get('id', cat.get('code'))}",
                diet_profile_id=diet_profile_id,
                action=RuleAction.DROP,
                category_code=str(cat.get("code") or ""),
                category_label=f"{label}{INFLAMMATORY_LABEL_SUFFIX}",
                terms=terms,
                strictness=Strictness.HARD,
                priority=DEFAULT_PRIORITY,
            )
        )
    return out


def build_ruleset(
    diet_profile_id: str,
    rows: Iterable[dict[str, Any]],
    inflammatory_rows: Optional[Iterable[dict[str, Any]]] = None,
) -> RuleSet:
    """Assemble a RuleSet from storage rows.

    Inactive and paused rows are skipped. Synthetic inflammatory rules are
    only added for categories not already covered by a loaded rule.
    """
    constraints: list[Constraint] = []
    for row in rows:
        if row.get("is_active") is False or row.get("is_paused") is True:
            continue
        constraint = constraint_from_row(row)
        if constraint is not None:
            constraints.append(constraint)

    if inflammatory_rows is not None:
        known_codes = {c.category_code for c in constraints}
        for extra in inflammatory_constraints(diet_profile_id, inflammatory_rows):
            if extra.category_code not in known_codes:
                constraints.append(extra)
                known_codes.add(extra.category_code)

    ruleset = RuleSet(diet_profile_id=diet_profile_id, constraints=tuple(constraints))
    logger.debug("Loaded %d rules for diet profile %s", len(ruleset), diet_profile_id)
    return ruleset


def load_ruleset(
    storage: RuleStorage,
    diet_profile_id: str,
    is_inflamed: bool = False,
) -> RuleSet:
    """Load the rule set for a diet profile.

    Args:
        storage: Rule/category storage provider
        diet_profile_id: Diet profile to load
        is_inflamed: Add inflammatory trigger categories as hard DROP rules

    Raises:
        StorageError: If the provider fails (propagated unchanged)
    """
    rows = storage.load_rule_rows(diet_profile_id)
    inflammatory_rows = None
    if is_inflamed:
        inflammatory_rows = storage.load_category_rows(INFLAMMATORY_CATEGORY_CODES)
    return build_ruleset(diet_profile_id, rows, inflammatory_rows)


def load_ruleset_for_user(storage: RuleStorage, user_id: str) -> Optional[RuleSet]:
    """Load the rule set of a user's active diet profile, or None if they have none."""
    profile = storage.load_user_profile(user_id)
    if not profile or not profile.get("diet_profile_id"):
        return None
    return load_ruleset(
        storage,
        str(profile["diet_profile_id"]),
        is_inflamed=bool(profile.get("is_inflamed", False)),
    )
