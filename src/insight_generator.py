"""
Insight Generator
=================
Turns statistical signals into ranked, de-duplicated insight records.

Two sources:
  (a) Correlations   — CorrelationEngine results with p < α and
                       confidence ≥ the caller's minimum. Lag 0 becomes a
                       "correlation" insight, lag > 0 a "lag" insight.
  (b) Threshold splits — for each ThresholdRule, weight velocity on
                       high days (variable ≥ high cutoff) vs. low days
                       (variable ≤ low cutoff). Needs ≥ min_group_size
                       samples per group and |Δmean| > min effect; Welch's
                       t-test p-value, Cohen's d and group size map to
                       confidence = min(0.95, (1−p)·min(1, |d|)·log10(n+1)/2).

Every candidate is reduced to a signature

    <type>|<sorted variables>|<message prefix>

and dropped when the same signature is already among the caller's
non-dismissed insights (or earlier in the same batch). Messages lead
with the stable wording so that the prefix survives small numeric drift
between runs.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Set, Union

import pandas as pd

from analysis_config import AnalysisConfig, ThresholdRule
from analytics import stats_kernel as sk
from analytics.daily_frame import paired_values
from constants import VARIABLE_LABELS
from models import (
    CorrelationResult,
    ExistingInsight,
    GeneratedInsight,
    InsightType,
    InsufficientData,
)

log = logging.getLogger("insight_generator")


def _label(variable: str) -> str:
    return VARIABLE_LABELS.get(variable, variable.replace("_", " "))


class InsightGenerator:

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    # ─── Signatures ──────────────────────────────────────────

    def signature(self, insight_type: Union[str, InsightType],
                  variables: Iterable[str], message: str) -> str:
        kind = insight_type.value if isinstance(insight_type, InsightType) else str(insight_type)
        prefix = " ".join(message.lower().split())[: self.config.signature_prefix_length]
        return f"{kind}|{','.join(sorted(variables))}|{prefix}"

    def existing_signatures(self, existing: Iterable[ExistingInsight]) -> Set[str]:
        return {
            self.signature(e.type, e.involved_variables, e.message)
            for e in existing
            if not e.dismissed
        }

    # ─── (a) Correlation insights ────────────────────────────

    def from_correlation(self, result: CorrelationResult,
                         generated_at: datetime) -> GeneratedInsight:
        kind = InsightType.CORRELATION if result.lag_days == 0 else InsightType.LAG
        if result.lag_days == 0:
            target = "same-day weight change"
        elif result.lag_days == 1:
            target = "weight change 1 day later"
        else:
            target = f"weight change {result.lag_days} days later"

        message = (
            f"{_label(result.variable).capitalize()} vs {target}: "
            f"{result.strength.lower()} {result.direction} link "
            f"(r = {result.coefficient:+.2f}, p = {result.p_value:.3f}, "
            f"n = {result.sample_size})."
        )
        variables = (result.variable, "weight_velocity")
        return GeneratedInsight(
            type=kind.value,
            message=message,
            confidence=result.confidence,
            involved_variables=variables,
            statistics={
                "coefficient": result.coefficient,
                "p_value": result.p_value,
                "sample_size": result.sample_size,
                "lag_days": result.lag_days,
                "method": result.method,
                "strength": result.strength,
                "direction": result.direction,
                "date_start": result.date_start,
                "date_end": result.date_end,
            },
            generated_at=generated_at,
            signature=self.signature(kind, variables, message),
        )

    def correlation_candidates(self, correlations: Iterable[CorrelationResult],
                               min_confidence: float,
                               generated_at: datetime) -> List[GeneratedInsight]:
        alpha = self.config.significance_level
        return [
            self.from_correlation(c, generated_at)
            for c in correlations
            if c.p_value < alpha and c.confidence >= min_confidence
        ]

    # ─── (b) Threshold insights ──────────────────────────────

    def threshold_comparison(
        self,
        frame: pd.DataFrame,
        rule: ThresholdRule,
        generated_at: datetime,
    ) -> Union[GeneratedInsight, InsufficientData, None]:
        """High-vs-low split for one rule.

        Returns None when both groups exist but the difference is too
        small or not significant.
        """
        cfg = self.config
        if rule.variable not in frame.columns:
            raise KeyError(f"Unknown variable: {rule.variable}")
        pairs = paired_values(frame, rule.variable, rule.lag)
        high = pairs.loc[pairs["x"] >= rule.high_cutoff, "y"].tolist()
        low = pairs.loc[pairs["x"] <= rule.low_cutoff, "y"].tolist()

        if min(len(high), len(low)) < cfg.min_group_size:
            return InsufficientData(
                component="insight_generator",
                reason=f"threshold_groups:{rule.variable}",
                required=cfg.min_group_size,
                available=min(len(high), len(low)),
            )

        mean_high, mean_low = sk.mean(high), sk.mean(low)
        diff = mean_high - mean_low
        if abs(diff) <= cfg.min_threshold_effect_kg:
            return None

        var_high = sk.sample_variance(high, mean_high)
        var_low = sk.sample_variance(low, mean_low)
        t, df = sk.welch_t_test(mean_high, mean_low, var_high, var_low, len(high), len(low))
        p = sk.two_tailed_p_value(t, df)
        if p >= cfg.significance_level:
            return None
        d = sk.cohens_d(mean_high, mean_low, var_high, var_low, len(high), len(low))
        n = len(high) + len(low)
        confidence = min(0.95, (1 - p) * min(1.0, abs(d)) * math.log10(n + 1) / 2)

        label = _label(rule.variable)
        phrase = "more weight loss" if diff < 0 else "less weight loss"
        message = (
            f"Days with high {label} (>= {rule.high_cutoff:g}) show {phrase} "
            f"than low-{label} days (<= {rule.low_cutoff:g}): "
            f"{mean_high:+.2f} vs {mean_low:+.2f} kg/day, p = {p:.3f}."
        )
        variables = (rule.variable, "weight_velocity")
        return GeneratedInsight(
            type=InsightType.THRESHOLD.value,
            message=message,
            confidence=round(max(0.0, confidence), 4),
            involved_variables=variables,
            statistics={
                "high_cutoff": rule.high_cutoff,
                "low_cutoff": rule.low_cutoff,
                "lag_days": rule.lag,
                "mean_high": round(mean_high, 4),
                "mean_low": round(mean_low, 4),
                "mean_difference": round(diff, 4),
                "n_high": len(high),
                "n_low": len(low),
                "t_statistic": round(t, 4),
                "degrees_of_freedom": round(df, 2),
                "p_value": round(p, 6),
                "cohens_d": round(d, 4),
            },
            generated_at=generated_at,
            signature=self.signature(InsightType.THRESHOLD, variables, message),
        )

    # ─── Main entry ──────────────────────────────────────────

    def generate(
        self,
        correlations: Iterable[CorrelationResult] = (),
        frame: Optional[pd.DataFrame] = None,
        existing: Sequence[ExistingInsight] = (),
        min_confidence: Optional[float] = None,
        generated_at: Optional[datetime] = None,
    ) -> List[GeneratedInsight]:
        """Ranked new insights, highest confidence first.

        ``frame`` (a daily frame) enables threshold insights; without it
        only correlation insights are produced.
        """
        cfg = self.config
        floor = cfg.min_confidence if min_confidence is None else min_confidence
        stamp = generated_at or datetime.now(timezone.utc)

        candidates = self.correlation_candidates(correlations, floor, stamp)
        if frame is not None and not frame.empty:
            for rule in cfg.threshold_rules:
                outcome = self.threshold_comparison(frame, rule, stamp)
                if isinstance(outcome, InsufficientData):
                    log.info("   Threshold insight skipped for %s: %d/%d samples",
                             rule.variable, outcome.available, outcome.required)
                elif outcome is not None:
                    candidates.append(outcome)

        candidates = [c for c in candidates if c.confidence >= floor]
        candidates.sort(key=lambda c: (-c.confidence, c.signature))

        seen = self.existing_signatures(existing)
        fresh: List[GeneratedInsight] = []
        n_dupes = 0
        for candidate in candidates:
            if candidate.signature in seen:
                n_dupes += 1
                continue
            seen.add(candidate.signature)
            fresh.append(candidate)

        fresh = fresh[: cfg.max_insights]
        log.info("   ✓ %d new insights (%d duplicates suppressed)", len(fresh), n_dupes)
        return fresh

    @staticmethod
    def as_existing(insights: Iterable[GeneratedInsight]) -> List[ExistingInsight]:
        """Convert generated insights into history records for later runs."""
        return [
            ExistingInsight(type=i.type, involved_variables=i.involved_variables, message=i.message)
            for i in insights
        ]
