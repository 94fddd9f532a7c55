"""Daily frame construction: records → gap-filled, kg-normalised DataFrame."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from analysis_config import AnalysisConfig
from constants import LIFESTYLE_VARIABLES
from models import DailyRecord

log = logging.getLogger("daily_frame")

FRAME_COLUMNS = ["weight", *LIFESTYLE_VARIABLES]


def _record_row(record: DailyRecord, config: AnalysisConfig) -> dict:
    row = {"date": pd.Timestamp(record.day), "weight": config.to_kg(record.weight)}
    for name in LIFESTYLE_VARIABLES:
        row[name] = record.value(name)
    return row


def build_daily_frame(records: Iterable[DailyRecord], config: AnalysisConfig,
                      end_date: Optional[pd.Timestamp] = None) -> pd.DataFrame:
    """One row per calendar day between the first and last record.

    Duplicate same-day entries are reduced per ``config.same_day_policy``
    (each column independently, ignoring missing values). Missing days are
    inserted as NaN rows with ``asfreq("D")`` so that positional shifts
    never pair non-consecutive days. Adds ``weight_velocity`` (kg/day),
    which is NaN whenever the previous day has no weight.
    """
    rows = [_record_row(r, config) for r in records]
    if not rows:
        return pd.DataFrame(columns=[*FRAME_COLUMNS, "weight_velocity"],
                            index=pd.DatetimeIndex([], name="date"), dtype=float)

    df = pd.DataFrame(rows, columns=["date", *FRAME_COLUMNS])
    df[FRAME_COLUMNS] = df[FRAME_COLUMNS].astype(float)
    n_raw = len(df)

    grouped = df.groupby("date", sort=True)[FRAME_COLUMNS]
    policy = config.same_day_policy
    if policy == "mean":
        daily = grouped.mean()
    elif policy == "first":
        daily = grouped.first()
    elif policy == "last":
        daily = grouped.last()
    else:
        daily = grouped.min()
    if len(daily) < n_raw:
        log.info("Reduced %d same-day duplicates (policy=%s)", n_raw - len(daily), policy)

    daily = daily.asfreq("D")
    if end_date is not None and pd.Timestamp(end_date) > daily.index.max():
        daily = daily.reindex(pd.date_range(daily.index.min(), pd.Timestamp(end_date), freq="D"))
    daily.index.name = "date"
    daily["weight_velocity"] = daily["weight"].diff()
    return daily


def restrict_lookback(frame: pd.DataFrame, lookback_days: int,
                      end_date: Optional[pd.Timestamp] = None) -> pd.DataFrame:
    """Keep the trailing ``lookback_days`` calendar days ending at end_date."""
    if frame.empty:
        return frame
    end = pd.Timestamp(end_date) if end_date is not None else frame.index.max()
    start = end - pd.Timedelta(days=lookback_days - 1)
    return frame.loc[(frame.index >= start) & (frame.index <= end)]


def weight_series(frame: pd.DataFrame) -> pd.Series:
    """Logged daily weights only, chronological."""
    return frame["weight"].dropna()


def paired_values(frame: pd.DataFrame, variable: str, lag: int = 0) -> pd.DataFrame:
    """Align a variable with the weight velocity ``lag`` days later.

    Returns columns ``x`` (variable on day d) and ``y`` (velocity on day
    d + lag), indexed by d, with incomplete pairs dropped.
    """
    if variable not in frame.columns:
        raise KeyError(f"Unknown variable: {variable}")
    pairs = pd.DataFrame({
        "x": frame[variable],
        "y": frame["weight_velocity"].shift(-lag),
    })
    pairs = pairs.replace([np.inf, -np.inf], np.nan).dropna()
    return pairs
