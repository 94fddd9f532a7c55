"""
Correlation Engine
==================
Relates each lifestyle variable to weight velocity (day-over-day change
in kg), optionally delayed by a lag of 0-30 days.

Layers:
  Layer 0 — Frame:   records → daily gap-filled frame (analytics.daily_frame).
                     Gap-fill guarantees a lag-k pair always spans exactly
                     k calendar days; incomplete pairs drop out.
  Layer 1 — Pairs:   variable on day d vs. velocity on day d + lag.
  Layer 2 — Stats:   Pearson (linear) or Spearman (rank) r, two-tailed
                     p-value from t = r·√((n−2)/(1−r²)), df = n − 2.
  Layer 3 — Labels:  strength band (|r| ≥ 0.7 Strong, ≥ 0.4 Moderate,
                     else Weak), direction, lag label, and a composite
                     confidence = min(0.99, (1−p)·|r|·log10(n+1)/2).

Multi-lag scans (Daza 2018 carryover effects) evaluate every lag in
[0, max_lag] and return all of them; `best_per_variable` then keeps the
best-supported lag per variable.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from analysis_config import AnalysisConfig
from analytics import stats_kernel as sk
from analytics.daily_frame import build_daily_frame, paired_values, restrict_lookback
from constants import LIFESTYLE_VARIABLES, MAX_LAG_DAYS, MIN_LAG_DAYS, MODERATE_R, STRONG_R
from models import CorrelationMethod, CorrelationResult, DailyRecord, InsufficientData

log = logging.getLogger("correlation_engine")


# ─── Labelling helpers ──────────────────────────────────────

def strength_band(r: float) -> str:
    a = abs(r)
    if a >= STRONG_R:
        return "Strong"
    if a >= MODERATE_R:
        return "Moderate"
    return "Weak"


def direction_of(r: float) -> str:
    if r > 0:
        return "positive"
    if r < 0:
        return "negative"
    return "none"


def confidence_score(r: float, p: float, n: int) -> float:
    """Blend significance, magnitude and sample size into [0, 0.99]."""
    if n <= 0:
        return 0.0
    raw = (1 - p) * abs(r) * math.log10(n + 1) / 2
    return round(max(0.0, min(0.99, raw)), 4)


def clamp_lag(lag: int) -> int:
    return max(MIN_LAG_DAYS, min(MAX_LAG_DAYS, int(lag)))


# ═══════════════════════════════════════════════════════════
#  ENGINE
# ═══════════════════════════════════════════════════════════

class CorrelationEngine:
    """Lag-aware correlation between lifestyle variables and weight velocity."""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    # ─── Layer 0: frame ──────────────────────────────────────

    def prepare(self, records: Iterable[DailyRecord], end_date=None) -> pd.DataFrame:
        """Build the lookback-restricted daily frame the other layers consume."""
        frame = build_daily_frame(records, self.config)
        return restrict_lookback(frame, self.config.lookback_days,
                                 pd.Timestamp(end_date) if end_date else None)

    # ─── Layers 1-3: single variable / lag ──────────────────

    def correlate(
        self,
        frame: pd.DataFrame,
        variable: str,
        lag: int = 0,
        method: Union[str, CorrelationMethod] = CorrelationMethod.PEARSON,
    ) -> Union[CorrelationResult, InsufficientData]:
        method = CorrelationMethod(method)
        lag = clamp_lag(lag)
        pairs = paired_values(frame, variable, lag)
        n = len(pairs)
        if n < self.config.min_correlation_samples:
            return InsufficientData(
                component="correlation_engine",
                reason=f"insufficient_pairs:{variable}:lag{lag}",
                required=self.config.min_correlation_samples,
                available=n,
            )

        x = pairs["x"].tolist()
        y = pairs["y"].tolist()
        if method is CorrelationMethod.SPEARMAN:
            r = sk.spearman(x, y)
        else:
            r = sk.pearson(x, y)
        p = sk.correlation_p_value(r, n)

        return CorrelationResult(
            variable=variable,
            method=method.value,
            coefficient=round(r, 4),
            p_value=round(p, 6),
            sample_size=n,
            lag_days=lag,
            date_start=pairs.index.min().date(),
            date_end=pairs.index.max().date(),
            strength=strength_band(r),
            direction=direction_of(r),
            confidence=confidence_score(r, p, n),
        )

    # ─── Multi-lag scan ──────────────────────────────────────

    def scan(
        self,
        frame: pd.DataFrame,
        variables: Optional[Sequence[str]] = None,
        max_lag: Optional[int] = None,
        method: Union[str, CorrelationMethod] = CorrelationMethod.PEARSON,
    ) -> Tuple[List[CorrelationResult], List[InsufficientData]]:
        """Every variable at every lag in [0, max_lag].

        Returns (results sorted by |r| descending, insufficient-data notes).
        """
        variables = list(variables or LIFESTYLE_VARIABLES)
        max_lag = clamp_lag(self.config.max_lag_days if max_lag is None else max_lag)
        log.info("   Scanning %d variables over lags 0..%d (%s)…",
                 len(variables), max_lag, CorrelationMethod(method).value)

        results: List[CorrelationResult] = []
        skipped: List[InsufficientData] = []
        for variable in variables:
            for lag in range(max_lag + 1):
                outcome = self.correlate(frame, variable, lag, method)
                if isinstance(outcome, InsufficientData):
                    skipped.append(outcome)
                else:
                    results.append(outcome)

        results.sort(key=lambda c: abs(c.coefficient), reverse=True)
        n_sig = sum(1 for c in results if c.p_value < self.config.significance_level)
        log.info("   ✓ %d correlations (%d significant), %d skipped",
                 len(results), n_sig, len(skipped))
        return results, skipped

    def best_lag(
        self,
        frame: pd.DataFrame,
        variable: str,
        max_lag: Optional[int] = None,
        method: Union[str, CorrelationMethod] = CorrelationMethod.PEARSON,
    ) -> Union[CorrelationResult, InsufficientData]:
        """Lag with the smallest p-value; ties go to the larger |r|."""
        results, skipped = self.scan(frame, [variable], max_lag, method)
        if not results:
            available = max((s.available for s in skipped), default=0)
            return InsufficientData(
                component="correlation_engine",
                reason=f"insufficient_pairs:{variable}",
                required=self.config.min_correlation_samples,
                available=available,
            )
        return self.best_per_variable(results)[0]

    @staticmethod
    def best_per_variable(results: Iterable[CorrelationResult]) -> List[CorrelationResult]:
        """One result per variable: smallest p, then larger |r|, then shorter lag.

        Returned sorted by |r| descending.
        """
        best: Dict[str, CorrelationResult] = {}
        for c in results:
            key = (c.p_value, -abs(c.coefficient), c.lag_days)
            current = best.get(c.variable)
            if current is None or key < (current.p_value, -abs(current.coefficient), current.lag_days):
                best[c.variable] = c
        return sorted(best.values(), key=lambda c: abs(c.coefficient), reverse=True)

    def significant(self, results: Iterable[CorrelationResult]) -> List[CorrelationResult]:
        alpha = self.config.significance_level
        return [c for c in results if c.p_value < alpha]
