"""SQLite database schema definitions."""

SCHEMA_SQL = """
-- Diet profiles (e.g. "wahls", "low_histamine")
CREATE TABLE IF NOT EXISTS diet_profiles (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    is_active BOOLEAN DEFAULT TRUE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Ingredient categories referenced by rules
CREATE TABLE IF NOT EXISTS ingredient_categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT NOT NULL UNIQUE,
    label TEXT NOT NULL,
    is_active BOOLEAN DEFAULT TRUE
);

-- Terms of a category; synonyms stored as a JSON list
CREATE TABLE IF NOT EXISTS ingredient_category_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    category_id INTEGER NOT NULL,
    term TEXT NOT NULL,
    synonyms_json TEXT DEFAULT '[]',
    is_active BOOLEAN DEFAULT TRUE,
    FOREIGN KEY (category_id) REFERENCES ingredient_categories(id)
);

CREATE INDEX IF NOT EXISTS idx_category_items_category ON ingredient_category_items(category_id);

-- Diet rules: one category + one action per row; ids are unique per profile
CREATE TABLE IF NOT EXISTS diet_rules (
    id TEXT NOT NULL,
    diet_profile_id TEXT NOT NULL,
    category_id INTEGER NOT NULL,
    action TEXT,
    constraint_type TEXT,
    strictness TEXT DEFAULT 'hard',
    min_per_day INTEGER,
    min_per_week INTEGER,
    max_per_day INTEGER,
    max_per_week INTEGER,
    priority INTEGER,
    rule_priority INTEGER,
    is_active BOOLEAN DEFAULT TRUE,
    is_paused BOOLEAN DEFAULT FALSE,
    PRIMARY KEY (diet_profile_id, id),
    FOREIGN KEY (diet_profile_id) REFERENCES diet_profiles(id),
    FOREIGN KEY (category_id) REFERENCES ingredient_categories(id)
);

CREATE INDEX IF NOT EXISTS idx_diet_rules_profile ON diet_rules(diet_profile_id);

-- Which diet profile a user follows
CREATE TABLE IF NOT EXISTS user_diet_profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    diet_profile_id TEXT NOT NULL,
    is_inflamed BOOLEAN DEFAULT FALSE,
    is_active BOOLEAN DEFAULT TRUE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (diet_profile_id) REFERENCES diet_profiles(id)
);

CREATE INDEX IF NOT EXISTS idx_user_diet_profiles_user ON user_diet_profiles(user_id);

-- Recipe templates and their slots
CREATE TABLE IF NOT EXISTS meal_templates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    template_key TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL,
    step_count INTEGER DEFAULT 6,
    is_active BOOLEAN DEFAULT TRUE
);

CREATE TABLE IF NOT EXISTS meal_template_slots (
    template_id INTEGER NOT NULL,
    slot_key TEXT NOT NULL,
    default_grams REAL NOT NULL,
    min_grams REAL NOT NULL,
    max_grams REAL NOT NULL,
    PRIMARY KEY (template_id, slot_key),
    FOREIGN KEY (template_id) REFERENCES meal_templates(id),
    CHECK (min_grams <= max_grams)
);

-- Whitelisted ingredient pools per diet key
CREATE TABLE IF NOT EXISTS pool_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    diet_key TEXT NOT NULL,
    category TEXT NOT NULL CHECK (category IN ('protein', 'veg', 'fat', 'flavor')),
    item_key TEXT NOT NULL,
    code TEXT,
    name TEXT NOT NULL,
    default_grams REAL,
    min_grams REAL,
    max_grams REAL,
    is_active BOOLEAN DEFAULT TRUE,
    UNIQUE (diet_key, category, item_key)
);

CREATE INDEX IF NOT EXISTS idx_pool_items_diet ON pool_items(diet_key);

-- Generator limits per diet key
CREATE TABLE IF NOT EXISTS generator_settings (
    diet_key TEXT PRIMARY KEY,
    max_ingredients INTEGER NOT NULL,
    max_flavor_items INTEGER NOT NULL,
    protein_repeat_cap_7d INTEGER NOT NULL,
    template_repeat_cap_7d INTEGER NOT NULL,
    signature_retry_limit INTEGER NOT NULL
);

-- Meal name patterns
CREATE TABLE IF NOT EXISTS name_patterns (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    diet_key TEXT NOT NULL,
    template_key TEXT NOT NULL,
    slot TEXT NOT NULL,
    pattern TEXT NOT NULL,
    is_active BOOLEAN DEFAULT TRUE,
    UNIQUE (diet_key, template_key, slot, pattern)
);

-- Nutrients per 100g, keyed by pool item code
CREATE TABLE IF NOT EXISTS ingredient_nutrients (
    code TEXT PRIMARY KEY,
    calories REAL NOT NULL,
    protein REAL NOT NULL,
    carbs REAL NOT NULL,
    fat REAL NOT NULL
);

-- Historical usage counts for least-used selection
CREATE TABLE IF NOT EXISTS ingredient_usage (
    code TEXT NOT NULL,
    category TEXT NOT NULL,
    usage_count INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (code, category)
);
"""


def get_schema_sql() -> str:
    """Return the complete schema SQL."""
    return SCHEMA_SQL
