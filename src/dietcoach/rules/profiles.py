"""Rule profiles stored as YAML files.

A profile file looks like::

    diet_profile_id: wahls
    rules:
      - id: r1
        action: drop
        category_code: gluten
        category_label: Gluten
        terms: [tarwe, gerst]
        synonyms: [spelt]
        strictness: hard
        priority: 10
    inflammatory:
      - code: nightshades
        label: Nightshades
        terms: [tomaat, paprika, aubergine]

Rows go through the same conversion as rows from storage.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Union

import yaml

from dietcoach.rules.loader import build_ruleset
from dietcoach.rules.models import RuleSet

_RULE_FIELDS = (
    "id",
    "action",
    "constraint_type",
    "strictness",
    "min_per_day",
    "min_per_week",
    "max_per_day",
    "max_per_week",
    "priority",
    "rule_priority",
    "is_active",
    "is_paused",
)


def _items_from_terms(entry: dict[str, Any]) -> list[dict[str, Any]]:
    items = [{"term": term} for term in entry.get("terms") or []]
    if entry.get("synonyms"):
        items.append({"term": "", "synonyms": list(entry["synonyms"])})
    return items


def rule_row_from_dict(entry: dict[str, Any], diet_profile_id: str, index: int) -> dict[str, Any]:
    """Convert a YAML rule entry into a storage-shaped row."""
    row = {key: entry[key] for key in _RULE_FIELDS if key in entry}
    row.setdefault("id", f"{diet_profile_id}:{index}")
    row["diet_profile_id"] = diet_profile_id
    code = entry.get("category_code") or ""
    row["category"] = {
        "code": code,
        "label": entry.get("category_label") or code,
        "items": _items_from_terms(entry),
    }
    return row


def category_row_from_dict(entry: dict[str, Any]) -> dict[str, Any]:
    """Convert a YAML inflammatory category entry into a category row."""
    code = entry.get("code") or ""
    return {
        "id": entry.get("id", code),
        "code": code,
        "label": entry.get("label") or code,
        "items": _items_from_terms(entry),
    }


def ruleset_from_dict(data: dict[str, Any], is_inflamed: bool = False) -> RuleSet:
    """Build a RuleSet from parsed profile data.

    Raises:
        ValueError: If ``diet_profile_id`` is missing
    """
    diet_profile_id = str(data.get("diet_profile_id") or "").strip()
    if not diet_profile_id:
        raise ValueError("Rule profile is missing 'diet_profile_id'")

    rows = [
        rule_row_from_dict(entry, diet_profile_id, i)
        for i, entry in enumerate(data.get("rules") or [])
    ]
    inflammatory_rows = None
    if is_inflamed:
        inflammatory_rows = [
            category_row_from_dict(entry) for entry in data.get("inflammatory") or []
        ]
    return build_ruleset(diet_profile_id, rows, inflammatory_rows)


def load_ruleset_from_yaml(path: Union[str, Path], is_inflamed: bool = False) -> RuleSet:
    """Load a rule profile from a YAML file.

    Args:
        path: Path to the profile file
        is_inflamed: Add the file's ``inflammatory`` categories as hard DROP rules

    Returns:
        RuleSet for the profile
    """
    with open(Path(path).expanduser()) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Rule profile {path} must be a mapping")
    return ruleset_from_dict(data, is_inflamed=is_inflamed)
