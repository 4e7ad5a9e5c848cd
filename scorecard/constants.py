SCHEMA_FAMILY = "accountability_scorecard"

STORE_KEY = "accountability_daily_scorecard_v1"
CATALOG_KEY = "store.metric_definitions"

# Version 1 is the flat list written by the first browser build; version 2 uses
# the current type/aggregation vocabulary.
METRIC_DEFINITIONS_VERSION = 2

SCHEMA_SCOPES = ("day", "week", "all")
CURRENT_SCHEMA_VERSIONS = {"day": 3, "week": 3, "all": 3}
SUPPORTED_SCHEMA_VERSIONS = dict(CURRENT_SCHEMA_VERSIONS)
OLDEST_LEGACY_SCHEMA_VERSIONS = {"day": 2, "week": 2, "all": 2}

MIGRATION_MARKER = "migrated_to_metric_map_v3"

DEFAULT_STEP_TOLERANCE = 1e-9
DEFAULT_ACTIVE_FROM = "1970-01-01"
DEFAULT_GROUP = "Metrics"

LEGACY_TYPE_TOKENS = {
    "number": "number_float",
    "float": "number_float",
    "integer": "number_int",
    "int": "number_int",
    "boolean": "binary_yes_no",
    "bool": "binary_yes_no",
    "text": "text_short",
    "textarea": "text_long",
    "long_text": "text_long",
    "select": "select_single",
    "multiselect": "select_multi",
}
FALLBACK_TYPE = "text_short"

LEGACY_AGGREGATION_TOKENS = {
    "avg": "average",
    "mean": "average",
    "total": "sum",
    "last": "latest",
    "count": "count_true",
}
FALLBACK_AGGREGATION = "none"

LEGACY_DAY_FIELD_PATHS = {
    "reflection.one_sentence": "one_sentence",
    "physiology.sleep_hours": "sleep_hours",
    "physiology.caffeine_drinks": "caffeine_drinks",
    "physiology.sugar_binge": "sugar_binge",
    "physiology.movement_20m": "movement_20m",
    "physiology.weight_optional": "weight_optional",
    "execution.deep_work_tech": "deep_work_tech",
    "execution.deep_work_creative": "deep_work_creative",
    "execution.artifact_technical": "artifact_technical",
    "execution.artifact_creative": "artifact_creative",
}

WEEK_STRUCTURE_FLAGS = ("priorities_defined", "two_completed", "weekly_review_done")

DEFAULT_METRIC_DEFINITIONS = (
    {
        "metric_id": "one_sentence",
        "label": "One-sentence reflection",
        "type": "text_short",
        "unit": None,
        "options": None,
        "active_from": "2024-01-01",
        "active_to": None,
        "aggregation": "latest",
        "group": "Reflection",
        "input_attrs": {"maxlength": 200, "placeholder": "Concrete: what moved, what leaked, what mattered."},
    },
    {
        "metric_id": "sleep_hours",
        "label": "Sleep",
        "type": "number_float",
        "unit": "hours",
        "options": None,
        "active_from": "2024-01-01",
        "active_to": None,
        "aggregation": "average",
        "group": "Physiology",
        "input_attrs": {"min": 0, "max": 24, "step": 0.1, "placeholder": "e.g., 7.4"},
    },
    {
        "metric_id": "caffeine_drinks",
        "label": "Caffeine",
        "type": "number_float",
        "unit": "drinks",
        "options": None,
        "active_from": "2024-01-01",
        "active_to": None,
        "aggregation": "average",
        "group": "Physiology",
        "input_attrs": {"min": 0, "max": 20, "step": 0.1, "placeholder": "e.g., 2"},
    },
    {
        "metric_id": "sugar_binge",
        "label": "Sugar binge",
        "type": "binary_yes_no",
        "unit": None,
        "options": None,
        "active_from": "2024-01-01",
        "active_to": None,
        "aggregation": "count_true",
        "group": "Physiology",
        "input_attrs": {},
    },
    {
        "metric_id": "movement_20m",
        "label": "Movement 20+ mins",
        "type": "binary_yes_no",
        "unit": None,
        "options": None,
        "active_from": "2024-01-01",
        "active_to": None,
        "aggregation": "count_true",
        "group": "Physiology",
        "input_attrs": {},
    },
    {
        "metric_id": "deep_work_tech",
        "label": "Deep work sessions (tech)",
        "type": "number_int",
        "unit": "sessions",
        "options": None,
        "active_from": "2024-01-01",
        "active_to": None,
        "aggregation": "sum",
        "group": "Execution",
        "input_attrs": {"min": 0, "max": 10, "step": 1, "placeholder": "0-10"},
    },
    {
        "metric_id": "deep_work_creative",
        "label": "Deep work sessions (creative)",
        "type": "number_int",
        "unit": "sessions",
        "options": None,
        "active_from": "2024-01-01",
        "active_to": None,
        "aggregation": "sum",
        "group": "Execution",
        "input_attrs": {"min": 0, "max": 10, "step": 1, "placeholder": "0-10"},
    },
    {
        "metric_id": "weight_optional",
        "label": "Optional: weight",
        "type": "number_float",
        "unit": "kg",
        "options": None,
        "active_from": "2024-01-01",
        "active_to": None,
        "aggregation": "latest",
        "group": "Execution",
        "input_attrs": {"min": 0, "step": 0.1, "placeholder": "optional"},
    },
    {
        "metric_id": "artifact_technical",
        "label": "Artifact (tech)",
        "type": "text_short",
        "unit": None,
        "options": None,
        "active_from": "2024-01-01",
        "active_to": None,
        "aggregation": "none",
        "group": "Execution",
        "input_attrs": {"maxlength": 140, "placeholder": "e.g., committed input parsing + validation."},
    },
    {
        "metric_id": "artifact_creative",
        "label": "Artifact (creative)",
        "type": "text_short",
        "unit": None,
        "options": None,
        "active_from": "2024-01-01",
        "active_to": None,
        "aggregation": "none",
        "group": "Execution",
        "input_attrs": {"maxlength": 140, "placeholder": "e.g., 600 words; revised Scene 1."},
    },
)

# Week summary convenience fields, each read from one metric's aggregate.
PHYSIOLOGY_SUMMARY_FIELDS = {
    "sleep_avg_hours": ("sleep_hours", "value"),
    "sleep_days_logged": ("sleep_hours", "value_count"),
    "caffeine_avg_drinks": ("caffeine_drinks", "value"),
    "caffeine_days_logged": ("caffeine_drinks", "value_count"),
    "sugar_binge_days": ("sugar_binge", "value"),
    "movement_days": ("movement_20m", "value"),
}
EXECUTION_SUMMARY_FIELDS = {
    "deep_work_sessions_technical_total": ("deep_work_tech", "value"),
    "deep_work_sessions_creative_total": ("deep_work_creative", "value"),
}
