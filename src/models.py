"""
Canonical entity definitions shared by every analytics component.

Records are immutable; analytics results are plain dataclasses that the
caller may persist, display or serialise (see `to_jsonable`).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from constants import DERIVED_VARIABLES, KCAL_PER_GRAM, RAW_VARIABLES


def to_day(value: Union[date, datetime, str]) -> date:
    """Normalise a timestamp to its calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    if hasattr(value, "date"):
        return value.date()
    raise TypeError(f"Cannot interpret {value!r} as a date")


def parse_clock(value: Optional[str]) -> Optional[time]:
    """Parse an "HH:MM" meal time; None stays None."""
    if value is None:
        return None
    if isinstance(value, time):
        return value
    hours, _, minutes = str(value).strip().partition(":")
    h, m = int(hours), int(minutes or 0)
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid meal time {value!r}, expected HH:MM")
    return time(h, m)


# ─── Input ──────────────────────────────────────────────────

@dataclass(frozen=True)
class DailyRecord:
    """One day's log. Any lifestyle field may be None (not logged)."""

    logged_at: Union[date, datetime]
    weight: Optional[float] = None
    calories: Optional[float] = None
    protein_g: Optional[float] = None
    carbs_g: Optional[float] = None
    fats_g: Optional[float] = None
    sleep_hours: Optional[float] = None
    sleep_quality: Optional[float] = None
    stress_level: Optional[float] = None
    water_ml: Optional[float] = None
    first_meal_at: Optional[str] = None
    last_meal_at: Optional[str] = None

    @property
    def day(self) -> date:
        return to_day(self.logged_at)

    @property
    def eating_window_minutes(self) -> Optional[float]:
        first = parse_clock(self.first_meal_at)
        last = parse_clock(self.last_meal_at)
        if first is None or last is None:
            return None
        start = first.hour * 60 + first.minute
        end = last.hour * 60 + last.minute
        if end < start:
            end += 24 * 60
        return float(end - start)

    def _macro_pct(self, macro: str) -> Optional[float]:
        grams = getattr(self, macro)
        if grams is None or self.calories is None:
            return None
        if self.calories <= 0:
            return 0.0
        return round(grams * KCAL_PER_GRAM[macro] / self.calories * 100, 2)

    @property
    def protein_pct(self) -> Optional[float]:
        return self._macro_pct("protein_g")

    @property
    def carbs_pct(self) -> Optional[float]:
        return self._macro_pct("carbs_g")

    @property
    def fats_pct(self) -> Optional[float]:
        return self._macro_pct("fats_g")

    def value(self, name: str) -> Optional[float]:
        """Resolve a raw or derived variable by name."""
        if name == "weight" or name in RAW_VARIABLES or name in DERIVED_VARIABLES:
            v = getattr(self, name)
            return None if v is None else float(v)
        raise KeyError(f"Unknown variable: {name}")


@dataclass(frozen=True)
class BreakthroughContext:
    """Context of a past breakthrough, supplied by the history store."""

    occurred_on: date
    avg_sleep_hours: Optional[float] = None
    avg_calories: Optional[float] = None


@dataclass(frozen=True)
class ExistingInsight:
    """A previously surfaced insight, used only for de-duplication."""

    type: str
    involved_variables: Tuple[str, ...]
    message: str
    dismissed: bool = False


# ─── Results ────────────────────────────────────────────────

@dataclass(frozen=True)
class InsufficientData:
    """Returned in place of a result when a component cannot compute."""

    component: str
    reason: str
    required: int
    available: int


@dataclass(frozen=True)
class PlateauSegment:
    plateau_id: str
    start_index: int
    start_date: date
    end_index: Optional[int]
    end_date: Optional[date]
    duration_days: int
    avg_weight: float
    variance: float
    is_broken: bool = False
    breakthrough_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.end_date is None


@dataclass(frozen=True)
class BreakthroughEvent:
    breakthrough_id: str
    index: int
    occurred_on: date
    magnitude: float
    baseline: float
    weight: float
    preceding_plateau_id: Optional[str]
    context_snapshot: Dict[str, Optional[float]]
    probability_score: float
    pending_confirmation: bool = False


@dataclass(frozen=True)
class WeightAnomaly:
    occurred_on: date
    weight: float
    reason: str
    detail: str


@dataclass(frozen=True)
class DetectionResult:
    plateaus: List[PlateauSegment]
    breakthroughs: List[BreakthroughEvent]
    active_plateau: Optional[PlateauSegment]
    anomalies: List[WeightAnomaly]
    days_analyzed: int


class CorrelationMethod(str, Enum):
    PEARSON = "pearson"
    SPEARMAN = "spearman"


@dataclass(frozen=True)
class CorrelationResult:
    variable: str
    method: str
    coefficient: float
    p_value: float
    sample_size: int
    lag_days: int
    date_start: date
    date_end: date
    strength: str
    direction: str
    confidence: float

    @property
    def lag_label(self) -> str:
        if self.lag_days == 0:
            return "same-day"
        return f"{self.lag_days}-day delayed"


class InsightType(str, Enum):
    CORRELATION = "correlation"
    THRESHOLD = "threshold"
    LAG = "lag"


@dataclass(frozen=True)
class GeneratedInsight:
    type: str
    message: str
    confidence: float
    involved_variables: Tuple[str, ...]
    statistics: Dict[str, Any]
    generated_at: datetime
    signature: str


@dataclass(frozen=True)
class StreakMetrics:
    current_streak: int
    longest_streak: int
    density_score: float
    last_logged: Optional[date]
    badges: List[str] = field(default_factory=list)
    current_tier: Optional[str] = None
    next_milestone: Optional[int] = None
    compliance_rate: Optional[float] = None
    points: int = 0


@dataclass(frozen=True)
class VariableDifferential:
    variable: str
    plateau_mean: float
    breakthrough_mean: float
    mean_difference: float
    plateau_n: int
    breakthrough_n: int
    t_statistic: float
    degrees_of_freedom: float
    p_value: float
    cohens_d: float
    effect_size: str
    significant: bool


@dataclass(frozen=True)
class ForensicReport:
    differentials: List[VariableDifferential]
    skipped: List[InsufficientData]
    plateau_days: int
    breakthrough_days: int


# ─── Serialisation ──────────────────────────────────────────

def to_jsonable(value: Any) -> Any:
    """Recursively convert results into JSON-safe structures."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if hasattr(value, "item"):  # numpy scalars
        return value.item()
    return value
