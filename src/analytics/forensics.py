"""
Forensic differential analysis: what differed between being stuck and
breaking through?

For each lifestyle variable, compares samples from a plateau window with
samples from the breakthrough window using Welch's t-test and Cohen's d.
Effect size is reported next to significance so that small-sample
"significant" results with negligible effect are visible. Descriptive
only; no causal claim is made.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from analysis_config import AnalysisConfig
from analytics import stats_kernel as sk
from analytics.daily_frame import build_daily_frame
from constants import EFFECT_SIZE_BANDS, LIFESTYLE_VARIABLES
from models import (
    BreakthroughEvent,
    DailyRecord,
    ForensicReport,
    InsufficientData,
    PlateauSegment,
    VariableDifferential,
)

log = logging.getLogger("forensics")

# Each side needs at least two samples for a variance
MIN_SIDE_SAMPLES = 2


def effect_size_label(d: float) -> str:
    magnitude = abs(d)
    for bound, label in EFFECT_SIZE_BANDS:
        if magnitude < bound:
            return label
    return "large"


def split_windows(
    records: Iterable[DailyRecord],
    plateau: PlateauSegment,
    breakthrough: BreakthroughEvent,
    config: Optional[AnalysisConfig] = None,
) -> Tuple[List[DailyRecord], List[DailyRecord]]:
    """Attribute records to the plateau window and the breakthrough window.

    The breakthrough window is the `breakthrough_window_days` days ending
    on the breakthrough day (the run-up plus the drop itself). The
    plateau side is the rest of the plateau before that window.
    """
    cfg = config or AnalysisConfig()
    plateau_end = plateau.end_date or breakthrough.occurred_on
    bt_start = breakthrough.occurred_on - timedelta(days=cfg.breakthrough_window_days - 1)

    plateau_side: List[DailyRecord] = []
    breakthrough_side: List[DailyRecord] = []
    for record in records:
        day = record.day
        if bt_start <= day <= breakthrough.occurred_on:
            breakthrough_side.append(record)
        elif plateau.start_date <= day <= plateau_end:
            plateau_side.append(record)
    return plateau_side, breakthrough_side


class ForensicDifferentialAnalyzer:

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def compare_variable(
        self, variable: str, plateau_values: Sequence[float], breakthrough_values: Sequence[float]
    ):
        n1, n2 = len(plateau_values), len(breakthrough_values)
        if min(n1, n2) < MIN_SIDE_SAMPLES:
            return InsufficientData(
                component="forensics",
                reason=f"samples:{variable}",
                required=MIN_SIDE_SAMPLES,
                available=min(n1, n2),
            )

        m1, m2 = sk.mean(plateau_values), sk.mean(breakthrough_values)
        v1 = sk.sample_variance(plateau_values, m1)
        v2 = sk.sample_variance(breakthrough_values, m2)
        # Oriented breakthrough − plateau
        t, df = sk.welch_t_test(m2, m1, v2, v1, n2, n1)
        p = sk.two_tailed_p_value(t, df)
        d = sk.cohens_d(m2, m1, v2, v1, n2, n1)
        return VariableDifferential(
            variable=variable,
            plateau_mean=round(m1, 4),
            breakthrough_mean=round(m2, 4),
            mean_difference=round(m2 - m1, 4),
            plateau_n=n1,
            breakthrough_n=n2,
            t_statistic=round(t, 4),
            degrees_of_freedom=round(df, 2),
            p_value=round(p, 6),
            cohens_d=round(d, 4),
            effect_size=effect_size_label(d),
            significant=p < self.config.significance_level,
        )

    def analyze(
        self,
        plateau_records: Sequence[DailyRecord],
        breakthrough_records: Sequence[DailyRecord],
        variables: Optional[Sequence[str]] = None,
    ) -> ForensicReport:
        """Per-variable differentials, largest |d| first.

        Same-day entries are reduced per `same_day_policy` first, so each
        side contributes at most one sample per calendar day.
        """
        variables = list(variables or LIFESTYLE_VARIABLES)
        plateau_frame = build_daily_frame(plateau_records, self.config)
        breakthrough_frame = build_daily_frame(breakthrough_records, self.config)
        differentials: List[VariableDifferential] = []
        skipped: List[InsufficientData] = []

        for variable in variables:
            before = plateau_frame[variable].dropna().tolist()
            after = breakthrough_frame[variable].dropna().tolist()
            outcome = self.compare_variable(variable, before, after)
            if isinstance(outcome, InsufficientData):
                skipped.append(outcome)
            else:
                differentials.append(outcome)

        differentials.sort(key=lambda v: abs(v.cohens_d), reverse=True)
        plateau_days = len({r.day for r in plateau_records})
        breakthrough_days = len({r.day for r in breakthrough_records})
        log.info("Forensics: %d variables compared, %d skipped (plateau days=%d, breakthrough days=%d)",
                 len(differentials), len(skipped), plateau_days, breakthrough_days)
        return ForensicReport(
            differentials=differentials,
            skipped=skipped,
            plateau_days=plateau_days,
            breakthrough_days=breakthrough_days,
        )

    def analyze_event(
        self,
        records: Iterable[DailyRecord],
        plateau: PlateauSegment,
        breakthrough: BreakthroughEvent,
        variables: Optional[Sequence[str]] = None,
    ) -> ForensicReport:
        plateau_side, breakthrough_side = split_windows(records, plateau, breakthrough, self.config)
        return self.analyze(plateau_side, breakthrough_side, variables)
