"""
Plateau & Breakthrough Detector
===============================
Single chronological pass over a user's logged daily weights (kg).

  1. Breakthrough candidates:  weight[i] − mean(weight[i−w : i]) ≤ −threshold
     where w is the rolling window (default 3 logged days).
  2. Water-weight filter:      a candidate is dropped when, within the next
     `rebound_days` calendar days, weight comes back to within
     `water_weight_band_kg` of the pre-drop baseline.
  3. Preceding plateau:        walk backward from the day before the drop
     while max − min of raw weights stays ≤ plateau variance threshold;
     kept only if it spans ≥ `min_plateau_days` calendar days.
  4. Probability:              (similar historical contexts + 1) /
     (historical breakthroughs + 2), ×1.3 after a long plateau, ≤ 0.95.
  5. Active plateau:           trailing window of daily weights whose range
     is within the stricter active-plateau threshold, extended backward.

A new breakthrough is only considered once the rolling baseline starts
at or after the previous one, so a single drop is never counted twice.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from analysis_config import AnalysisConfig
from analytics.daily_frame import build_daily_frame, restrict_lookback, weight_series
from constants import (
    DAILY_CHANGE_ANOMALY_PCT,
    LIFESTYLE_VARIABLES,
    LONG_PLATEAU_BOOST,
    MAX_BREAKTHROUGH_PROBABILITY,
)
from models import (
    BreakthroughContext,
    BreakthroughEvent,
    DailyRecord,
    DetectionResult,
    InsufficientData,
    PlateauSegment,
    WeightAnomaly,
)

log = logging.getLogger("plateau_detector")

# Prior weigh-ins needed before the IQR outlier check applies
MIN_IQR_HISTORY = 7


def _plateau_id(start: date) -> str:
    return f"plateau-{start.isoformat()}"


def _breakthrough_id(day: date) -> str:
    return f"breakthrough-{day.isoformat()}"


def _span_days(start: date, end: date) -> int:
    return (end - start).days + 1


def _none_if_nan(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return round(float(value), 4)


class PlateauBreakthroughDetector:
    """Stateless detector; one instance may serve any number of users."""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    # ─── Main entry ───────────────────────────────────────────

    def detect(
        self,
        records: Iterable[DailyRecord],
        history: Sequence[BreakthroughContext] = (),
        end_date: Optional[date] = None,
    ) -> Union[DetectionResult, InsufficientData]:
        """Detect plateaus and breakthroughs over the lookback window.

        Parameters
        ----------
        records : iterable of DailyRecord
            Raw logs; weights in ``config.weight_unit``.
        history : sequence of BreakthroughContext
            Past breakthroughs for probability scoring. Empty is valid.
        end_date : date, optional
            Last day of the lookback window (defaults to the last record).
        """
        cfg = self.config
        frame = build_daily_frame(records, cfg)
        frame = restrict_lookback(frame, cfg.lookback_days,
                                  pd.Timestamp(end_date) if end_date else None)
        weights = weight_series(frame)

        if len(weights) < cfg.min_detection_days:
            log.info("Plateau detection skipped: %d weigh-ins (need %d)",
                     len(weights), cfg.min_detection_days)
            return InsufficientData(
                component="plateau_detector",
                reason="insufficient_weighins",
                required=cfg.min_detection_days,
                available=len(weights),
            )

        dates = [ts.date() for ts in weights.index]
        w = weights.to_numpy(dtype=float)
        smoothed = pd.Series(w).rolling(cfg.rolling_window_days, min_periods=1).mean().to_numpy()

        plateaus: List[PlateauSegment] = []
        breakthroughs: List[BreakthroughEvent] = []
        last_break: Optional[int] = None

        window = cfg.rolling_window_days
        for i in range(window, len(w)):
            if last_break is not None and i - window < last_break:
                continue
            baseline = float(np.mean(w[i - window:i]))
            delta = w[i] - baseline
            if delta > -cfg.breakthrough_threshold_kg:
                continue

            if self._rebounds(dates, w, i, baseline):
                log.info("Suppressed transient drop on %s (%.2f kg, rebound to baseline)",
                         dates[i], -delta)
                continue

            bt_id = _breakthrough_id(dates[i])
            plateau = self._preceding_plateau(dates, w, smoothed, i, last_break, bt_id)
            context = self._context_snapshot(frame, dates[i])
            score = self._probability(context, history, plateau)
            pending = (dates[-1] - dates[i]).days < cfg.rebound_days

            breakthroughs.append(BreakthroughEvent(
                breakthrough_id=bt_id,
                index=i,
                occurred_on=dates[i],
                magnitude=round(float(-delta), 4),
                baseline=round(baseline, 4),
                weight=round(float(w[i]), 4),
                preceding_plateau_id=plateau.plateau_id if plateau else None,
                context_snapshot=context,
                probability_score=score,
                pending_confirmation=pending,
            ))
            if plateau is not None:
                plateaus.append(plateau)
            last_break = i

        active = self._active_plateau(dates, w, smoothed, last_break)
        anomalies = self._anomalies(dates, w)

        log.info("Detection over %d weigh-ins: %d plateaus, %d breakthroughs, active=%s",
                 len(w), len(plateaus), len(breakthroughs), active is not None)
        return DetectionResult(
            plateaus=plateaus,
            breakthroughs=breakthroughs,
            active_plateau=active,
            anomalies=anomalies,
            days_analyzed=len(w),
        )

    # ─── Breakthrough helpers ─────────────────────────────────

    def _rebounds(self, dates: List[date], w: np.ndarray, i: int, baseline: float) -> bool:
        """True when weight returns near the baseline shortly after day i."""
        cfg = self.config
        horizon = dates[i] + timedelta(days=cfg.rebound_days)
        j = i + 1
        while j < len(w) and dates[j] <= horizon:
            if abs(w[j] - baseline) <= cfg.water_weight_band_kg:
                return True
            j += 1
        return False

    def _preceding_plateau(self, dates, w, smoothed, i, last_break, bt_id) -> Optional[PlateauSegment]:
        cfg = self.config
        end = i - 1
        floor = last_break if last_break is not None else 0
        lo = hi = w[end]
        start = end
        k = end - 1
        while k >= floor:
            lo, hi = min(lo, w[k]), max(hi, w[k])
            if hi - lo > cfg.plateau_variance_threshold_kg:
                break
            start = k
            k -= 1

        duration = _span_days(dates[start], dates[end])
        if duration < cfg.min_plateau_days:
            return None
        seg = smoothed[start:end + 1]
        return PlateauSegment(
            plateau_id=_plateau_id(dates[start]),
            start_index=start,
            start_date=dates[start],
            end_index=end,
            end_date=dates[end],
            duration_days=duration,
            avg_weight=round(float(np.mean(w[start:end + 1])), 4),
            variance=round(float(seg.max() - seg.min()), 4),
            is_broken=True,
            breakthrough_id=bt_id,
        )

    def _context_snapshot(self, frame: pd.DataFrame, day: date) -> Dict[str, Optional[float]]:
        """Mean of each variable over the context window before `day`."""
        end = pd.Timestamp(day) - pd.Timedelta(days=1)
        start = pd.Timestamp(day) - pd.Timedelta(days=self.config.context_days)
        window = frame.loc[(frame.index >= start) & (frame.index <= end)]
        snapshot: Dict[str, Optional[float]] = {"days_prior": float(self.config.context_days)}
        snapshot["weight_kg"] = _none_if_nan(window["weight"].mean())
        for name in LIFESTYLE_VARIABLES:
            snapshot[name] = _none_if_nan(window[name].mean())
        return snapshot

    def _probability(self, context: Dict[str, Optional[float]],
                     history: Sequence[BreakthroughContext],
                     plateau: Optional[PlateauSegment]) -> float:
        cfg = self.config
        if not history:
            return cfg.default_breakthrough_confidence

        sleep = context.get("sleep_hours")
        calories = context.get("calories")
        similar = 0
        for past in history:
            if None in (sleep, calories, past.avg_sleep_hours, past.avg_calories):
                continue
            if (abs(sleep - past.avg_sleep_hours) <= cfg.similar_sleep_hours
                    and abs(calories - past.avg_calories) <= cfg.similar_calorie_ratio * calories):
                similar += 1

        score = (similar + 1) / (len(history) + 2)
        if plateau is not None and plateau.duration_days > cfg.long_plateau_days:
            score *= LONG_PLATEAU_BOOST
        return round(min(MAX_BREAKTHROUGH_PROBABILITY, score), 4)

    # ─── Active plateau ───────────────────────────────────────

    def _active_plateau(self, dates, w, smoothed, last_break) -> Optional[PlateauSegment]:
        """Open plateau covering the trailing window, extended backward."""
        cfg = self.config
        n = len(w)
        size = cfg.active_plateau_window_days
        floor = last_break if last_break is not None else 0
        if n - size < floor:
            return None

        trailing = w[n - size:]
        if trailing.max() - trailing.min() > cfg.active_plateau_variance_kg:
            return None

        lo, hi = float(trailing.min()), float(trailing.max())
        start = n - size
        k = start - 1
        while k >= floor:
            lo, hi = min(lo, w[k]), max(hi, w[k])
            if hi - lo > cfg.active_plateau_variance_kg:
                break
            start = k
            k -= 1

        duration = _span_days(dates[start], dates[-1])
        if duration < cfg.min_plateau_days:
            return None
        seg = smoothed[start:]
        return PlateauSegment(
            plateau_id=_plateau_id(dates[start]),
            start_index=start,
            start_date=dates[start],
            end_index=None,
            end_date=None,
            duration_days=duration,
            avg_weight=round(float(np.mean(w[start:])), 4),
            variance=round(float(seg.max() - seg.min()), 4),
        )

    # ─── Anomalies ────────────────────────────────────────────

    def _anomalies(self, dates: List[date], w: np.ndarray) -> List[WeightAnomaly]:
        """Flag large day-over-day swings and IQR outliers.

        Day-over-day change is only checked between consecutive calendar
        days. IQR bounds use only weigh-ins before the day being checked.
        """
        out: List[WeightAnomaly] = []
        for i in range(1, len(w)):
            prev = w[i - 1]
            if prev > 0 and (dates[i] - dates[i - 1]).days == 1:
                pct = abs(w[i] - prev) / prev
                if pct > DAILY_CHANGE_ANOMALY_PCT:
                    out.append(WeightAnomaly(
                        occurred_on=dates[i],
                        weight=round(float(w[i]), 4),
                        reason="daily_change",
                        detail=f"{pct * 100:.1f}% change ({prev:.2f} -> {w[i]:.2f} kg)",
                    ))
            if i >= MIN_IQR_HISTORY:
                q1, q3 = np.percentile(w[:i], [25, 75])
                iqr = q3 - q1
                lower, upper = q1 - 1.5 * iqr, q3 + 1.5 * iqr
                if w[i] < lower or w[i] > upper:
                    out.append(WeightAnomaly(
                        occurred_on=dates[i],
                        weight=round(float(w[i]), 4),
                        reason="iqr_outlier",
                        detail=f"outside [{lower:.2f}, {upper:.2f}] (IQR {iqr:.2f})",
                    ))
        return out
