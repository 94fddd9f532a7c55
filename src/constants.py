"""
Shared constants used across multiple modules.
Single source of truth for units, default thresholds and variable names.

All weight thresholds are kilograms. Pound-denominated values from the
product rules are converted exactly once, here.
"""

LB_TO_KG = 0.453592

# ─── Default detection thresholds (kg) ──────────────────────

BREAKTHROUGH_THRESHOLD_KG = 1.5 * LB_TO_KG        # 0.680 kg
PLATEAU_VARIANCE_THRESHOLD_KG = 0.2 * LB_TO_KG    # 0.091 kg, backward walk
ACTIVE_PLATEAU_VARIANCE_KG = 0.15 * LB_TO_KG      # 0.068 kg, trailing window
WATER_WEIGHT_BAND_KG = 0.5

MIN_PLATEAU_DAYS = 7
LONG_PLATEAU_DAYS = 14
LONG_PLATEAU_BOOST = 1.3
MAX_BREAKTHROUGH_PROBABILITY = 0.95
DEFAULT_BREAKTHROUGH_CONFIDENCE = 0.1

# Day-over-day change that flags a weigh-in as suspicious
DAILY_CHANGE_ANOMALY_PCT = 0.05

# ─── Lag bounds ─────────────────────────────────────────────

MIN_LAG_DAYS = 0
MAX_LAG_DAYS = 30

# ─── Variables ──────────────────────────────────────────────

RAW_VARIABLES = (
    "calories", "protein_g", "carbs_g", "fats_g",
    "sleep_hours", "sleep_quality", "stress_level", "water_ml",
)

# Computed from raw fields on each record
DERIVED_VARIABLES = (
    "eating_window_minutes", "protein_pct", "carbs_pct", "fats_pct",
)

LIFESTYLE_VARIABLES = RAW_VARIABLES + DERIVED_VARIABLES

# Variables that must all be present for a day to count as compliant
CRITICAL_VARIABLES = ("weight", "calories", "sleep_hours")

# kcal per gram
KCAL_PER_GRAM = {"protein_g": 4, "carbs_g": 4, "fats_g": 9}

# ─── Streak badges ──────────────────────────────────────────

BADGE_TIERS = (
    (7, "Bronze"),
    (30, "Silver"),
    (90, "Gold"),
    (180, "Platinum"),
)

# ─── Correlation strength bands ─────────────────────────────

STRONG_R = 0.7
MODERATE_R = 0.4

# ─── Effect-size bands (Cohen 1988) ─────────────────────────

EFFECT_SIZE_BANDS = (
    (0.2, "negligible"),
    (0.5, "small"),
    (0.8, "medium"),
)

# ─── Human-readable variable names ──────────────────────────

VARIABLE_LABELS = {
    "weight": "weight",
    "calories": "calories",
    "protein_g": "protein intake",
    "carbs_g": "carb intake",
    "fats_g": "fat intake",
    "sleep_hours": "sleep hours",
    "sleep_quality": "sleep quality",
    "stress_level": "stress level",
    "water_ml": "water intake",
    "eating_window_minutes": "eating window",
    "protein_pct": "protein share",
    "carbs_pct": "carb share",
    "fats_pct": "fat share",
}
