"""SQLite persistence for rules, generator config, nutrients and usage."""

from dietcoach.db.connection import DatabaseConnection, get_db, set_db
from dietcoach.db.storage import (
    SqliteGeneratorStorage,
    SqliteNutritionLookup,
    SqliteRuleStorage,
    SqliteUsageHistory,
)

__all__ = [
    "DatabaseConnection",
    "SqliteGeneratorStorage",
    "SqliteNutritionLookup",
    "SqliteRuleStorage",
    "SqliteUsageHistory",
    "get_db",
    "set_db",
]
