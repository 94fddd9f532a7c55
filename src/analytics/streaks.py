"""
Streak & Compliance Engine

Recomputes logging-consistency metrics from the set of days a variable
was logged. Nothing is stored between calls.

  current streak   consecutive logged days ending at the last log, or 0
                   when the last log is more than one day before `reference`
  longest streak   longest consecutive run anywhere in the history
  density          distinct logged days / days from first log (or the
                   caller's `since`) to `reference`, inclusive
  badges           Bronze 7 · Silver 30 · Gold 90 · Platinum 180 days

With `streak_freeze` enabled, one missed day per ISO week is forgiven
when it is bridged by logged days on both sides.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from analysis_config import AnalysisConfig
from constants import BADGE_TIERS, CRITICAL_VARIABLES
from models import DailyRecord, StreakMetrics, to_day

log = logging.getLogger("streaks")

ONE_DAY = timedelta(days=1)


def _iso_week(day: date) -> Tuple[int, int]:
    iso = day.isocalendar()
    return iso[0], iso[1]


def run_ending_at(days: Set[date], end: date, allow_freeze: bool = False) -> int:
    """Length of the consecutive run that ends on `end` (walking backward)."""
    streak = 0
    used_weeks: Set[Tuple[int, int]] = set()
    day = end
    while True:
        if day in days:
            streak += 1
        elif (allow_freeze and streak > 0
              and (day - ONE_DAY) in days
              and _iso_week(day) not in used_weeks):
            used_weeks.add(_iso_week(day))
            streak += 1
        else:
            break
        day -= ONE_DAY
    return streak


def badge_progress(current: int, longest: int) -> Tuple[List[str], Optional[str], Optional[int]]:
    """(earned badges, tier held by the current streak, days to next tier)."""
    badges = [label for threshold, label in BADGE_TIERS if longest >= threshold]
    current_tier = None
    next_milestone = None
    for threshold, label in BADGE_TIERS:
        if current >= threshold:
            current_tier = label
        elif next_milestone is None:
            next_milestone = threshold - current
    return badges, current_tier, next_milestone


class StreakComplianceEngine:

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def compute(
        self,
        logged_dates: Iterable[Union[date, datetime, str]],
        reference: Optional[Union[date, datetime]] = None,
        since: Optional[Union[date, datetime]] = None,
        records: Optional[Iterable[DailyRecord]] = None,
    ) -> StreakMetrics:
        """Streak metrics as of `reference` (today when omitted).

        `since` overrides the density denominator start (e.g. account
        creation). When `records` are given, compliance rate and points
        are included.
        """
        ref = to_day(reference) if reference is not None else date.today()
        days = {to_day(d) for d in logged_dates}
        days = {d for d in days if d <= ref}
        allow_freeze = self.config.streak_freeze

        compliance = None
        if records is not None:
            compliance = compliance_rate(records, start=to_day(since) if since else None, end=ref)

        if not days:
            _, _, next_milestone = badge_progress(0, 0)
            return StreakMetrics(
                current_streak=0,
                longest_streak=0,
                density_score=0.0,
                last_logged=None,
                badges=[],
                current_tier=None,
                next_milestone=next_milestone,
                compliance_rate=compliance,
                points=int(round((compliance or 0.0) * 100)),
            )

        ordered = sorted(days)
        last = ordered[-1]
        if (ref - last).days > 1:
            current = 0
        else:
            current = run_ending_at(days, last, allow_freeze)

        run_ends = [d for d in ordered if (d + ONE_DAY) not in days]
        longest = max(run_ending_at(days, d, allow_freeze) for d in run_ends)
        longest = max(longest, current)

        start = to_day(since) if since is not None else ordered[0]
        span = (ref - start).days + 1
        counted = sum(1 for d in ordered if d >= start)
        density = counted / span if span > 0 else 0.0
        density = round(min(1.0, max(0.0, density)), 4)

        badges, current_tier, next_milestone = badge_progress(current, longest)
        points = current * 10 + int(round((compliance or 0.0) * 100))

        log.info("Streaks: current=%d longest=%d density=%.2f", current, longest, density)
        return StreakMetrics(
            current_streak=current,
            longest_streak=longest,
            density_score=density,
            last_logged=last,
            badges=badges,
            current_tier=current_tier,
            next_milestone=next_milestone,
            compliance_rate=compliance,
            points=points,
        )

    def compute_for_variable(self, records: Iterable[DailyRecord], variable: str,
                             reference=None, since=None) -> StreakMetrics:
        """Streaks for the days on which `variable` was logged."""
        records = list(records)
        logged = [r.day for r in records if r.value(variable) is not None]
        return self.compute(logged, reference=reference, since=since, records=records)


def compliance_rate(records: Iterable[DailyRecord], start: Optional[date] = None,
                    end: Optional[date] = None) -> Optional[float]:
    """Share of days in [start, end] on which every critical variable was logged.

    Returns None when there is no range to evaluate.
    """
    present: Dict[date, Set[str]] = {}
    for record in records:
        day = record.day
        logged = {name for name in CRITICAL_VARIABLES if record.value(name) is not None}
        present.setdefault(day, set()).update(logged)
    if not present:
        return None

    start = start or min(present)
    end = end or max(present)
    total = (end - start).days + 1
    if total <= 0:
        return None
    compliant = sum(
        1 for day, names in present.items()
        if start <= day <= end and names.issuperset(CRITICAL_VARIABLES)
    )
    return round(compliant / total, 4)
