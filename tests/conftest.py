"""
Shared test configuration.

Adds src/ to sys.path so flat modules (correlation_engine, models, ...)
and the analytics/ and pipeline/ packages import the same way they do
at runtime, without the per-file sys.path.insert() hack.
"""

import os
import sys
from datetime import date, timedelta

import pytest

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

from models import DailyRecord  # noqa: E402

START = date(2026, 1, 1)


def make_series(weights, start=START, **fields):
    """DailyRecords on consecutive days; None weights are skipped days.

    Extra keyword arguments are per-day lists (or scalars) for other fields.
    """
    records = []
    for i, w in enumerate(weights):
        if w is None:
            continue
        extra = {}
        for name, values in fields.items():
            extra[name] = values[i] if isinstance(values, (list, tuple)) else values
        records.append(DailyRecord(logged_at=start + timedelta(days=i), weight=w, **extra))
    return records


@pytest.fixture
def series_factory():
    return make_series


@pytest.fixture
def flat_then_drop():
    """Days 1-10 flat at 100.0 kg, day 11 at 98.0 kg."""
    return make_series([100.0] * 10 + [98.0])
