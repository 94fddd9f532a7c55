"""
Analysis configuration
======================
One immutable settings object passed explicitly into every analytics
component. Defaults come from constants.py; callers may override any
subset, either in code or through PLATEAU_* environment variables
(a local .env file is honoured).

Invalid values are rejected here, at construction time, so the
analytics core can assume validated input.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Literal, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from constants import (
    ACTIVE_PLATEAU_VARIANCE_KG,
    BREAKTHROUGH_THRESHOLD_KG,
    DEFAULT_BREAKTHROUGH_CONFIDENCE,
    LB_TO_KG,
    LONG_PLATEAU_DAYS,
    MAX_LAG_DAYS,
    MIN_LAG_DAYS,
    MIN_PLATEAU_DAYS,
    PLATEAU_VARIANCE_THRESHOLD_KG,
    WATER_WEIGHT_BAND_KG,
)

ENV_PREFIX = "PLATEAU_"


class ThresholdRule(BaseModel):
    """High/low split used for threshold insights."""

    model_config = ConfigDict(frozen=True)

    variable: str
    low_cutoff: float
    high_cutoff: float
    lag: int = Field(default=0, ge=MIN_LAG_DAYS, le=MAX_LAG_DAYS)

    @model_validator(mode="after")
    def _check_cutoffs(self) -> "ThresholdRule":
        if self.low_cutoff > self.high_cutoff:
            raise ValueError(
                f"{self.variable}: low_cutoff {self.low_cutoff} exceeds "
                f"high_cutoff {self.high_cutoff}"
            )
        return self


DEFAULT_THRESHOLD_RULES: Tuple[ThresholdRule, ...] = (
    ThresholdRule(variable="sleep_hours", low_cutoff=6.0, high_cutoff=7.5),
    ThresholdRule(variable="stress_level", low_cutoff=3, high_cutoff=7),
    ThresholdRule(variable="water_ml", low_cutoff=1500, high_cutoff=2500),
)


class AnalysisConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Units
    weight_unit: Literal["kg", "lb"] = "kg"
    same_day_policy: Literal["mean", "first", "last", "min"] = "mean"

    # Plateau / breakthrough detection
    breakthrough_threshold_kg: float = Field(default=BREAKTHROUGH_THRESHOLD_KG, gt=0)
    water_weight_band_kg: float = Field(default=WATER_WEIGHT_BAND_KG, ge=0)
    rebound_days: int = Field(default=2, ge=0)
    plateau_variance_threshold_kg: float = Field(default=PLATEAU_VARIANCE_THRESHOLD_KG, gt=0)
    active_plateau_variance_kg: float = Field(default=ACTIVE_PLATEAU_VARIANCE_KG, gt=0)
    active_plateau_window_days: int = Field(default=7, ge=2)
    min_plateau_days: int = Field(default=MIN_PLATEAU_DAYS, ge=2)
    long_plateau_days: int = Field(default=LONG_PLATEAU_DAYS, ge=1)
    rolling_window_days: int = Field(default=3, ge=1)
    lookback_days: int = Field(default=90, ge=1)
    min_detection_days: int = Field(default=10, ge=2)
    context_days: int = Field(default=7, ge=1)
    similar_sleep_hours: float = Field(default=1.0, ge=0)
    similar_calorie_ratio: float = Field(default=0.15, ge=0)
    default_breakthrough_confidence: float = Field(
        default=DEFAULT_BREAKTHROUGH_CONFIDENCE, ge=0, le=1
    )

    # Correlation
    max_lag_days: int = Field(default=7, ge=MIN_LAG_DAYS, le=MAX_LAG_DAYS)
    min_correlation_samples: int = Field(default=7, ge=3)
    significance_level: float = Field(default=0.05, gt=0, lt=1)

    # Insights
    min_confidence: float = Field(default=0.3, ge=0, le=1)
    min_threshold_effect_kg: float = Field(default=0.05, ge=0)
    min_group_size: int = Field(default=3, ge=2)
    signature_prefix_length: int = Field(default=48, ge=8)
    max_insights: int = Field(default=10, ge=1)
    threshold_rules: Tuple[ThresholdRule, ...] = DEFAULT_THRESHOLD_RULES

    # Forensics
    breakthrough_window_days: int = Field(default=3, ge=1)

    # Streaks
    streak_freeze: bool = False

    @field_validator("threshold_rules", mode="before")
    @classmethod
    def _coerce_rules(cls, value: Any) -> Any:
        if isinstance(value, list):
            return tuple(value)
        return value

    def to_kg(self, weight: Optional[float]) -> Optional[float]:
        """Convert an incoming record weight to kilograms."""
        if weight is None:
            return None
        if self.weight_unit == "lb":
            return float(weight) * LB_TO_KG
        return float(weight)

    def with_overrides(self, **overrides: Any) -> "AnalysisConfig":
        """Return a validated copy with some fields replaced."""
        data = self.model_dump()
        data["threshold_rules"] = self.threshold_rules
        data.update(overrides)
        return AnalysisConfig(**data)

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "AnalysisConfig":
        """Build a config from PLATEAU_* variables.

        Reads the process environment (after loading .env) unless an
        explicit mapping is given. Unknown PLATEAU_* keys are ignored;
        threshold rules are not configurable through the environment.
        """
        if env is None:
            load_dotenv()
            env = dict(os.environ)

        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            if name == "threshold_rules":
                continue
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is None or raw.strip() == "":
                continue
            values[name] = raw.strip()
        return cls(**values)
