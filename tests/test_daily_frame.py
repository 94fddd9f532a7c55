"""Tests for daily frame construction and derived record fields."""
from datetime import date, datetime

import pandas as pd
import pytest

from analysis_config import AnalysisConfig
from analytics.daily_frame import build_daily_frame, restrict_lookback, weight_series
from constants import LB_TO_KG
from models import DailyRecord, parse_clock, to_day, to_jsonable

from conftest import make_series


class TestDailyRecord:

    def test_eating_window(self):
        r = DailyRecord(date(2026, 1, 1), first_meal_at="08:30", last_meal_at="19:00")
        assert r.eating_window_minutes == 630

    def test_eating_window_wraps_midnight(self):
        r = DailyRecord(date(2026, 1, 1), first_meal_at="18:00", last_meal_at="01:00")
        assert r.eating_window_minutes == 420

    def test_eating_window_missing(self):
        assert DailyRecord(date(2026, 1, 1), first_meal_at="08:00").eating_window_minutes is None

    def test_macro_percentages(self):
        r = DailyRecord(date(2026, 1, 1), calories=2000, protein_g=150, carbs_g=200, fats_g=60)
        assert r.protein_pct == pytest.approx(30.0)
        assert r.carbs_pct == pytest.approx(40.0)
        assert r.fats_pct == pytest.approx(27.0)

    def test_unknown_variable(self):
        with pytest.raises(KeyError):
            DailyRecord(date(2026, 1, 1)).value("mood")

    def test_invalid_clock(self):
        with pytest.raises(ValueError):
            parse_clock("25:10")

    def test_to_day(self):
        assert to_day("2026-01-05T23:30:00Z") == date(2026, 1, 5)
        assert to_day(datetime(2026, 1, 5, 6, 0)) == date(2026, 1, 5)


class TestBuildDailyFrame:

    def test_gap_filled(self):
        frame = build_daily_frame(make_series([80.0, None, None, 80.3]), AnalysisConfig())
        assert len(frame) == 4
        assert frame["weight"].isna().sum() == 2
        assert frame["weight_velocity"].isna().all()

    def test_velocity(self):
        frame = build_daily_frame(make_series([80.0, 79.8, 79.9]), AnalysisConfig())
        assert frame["weight_velocity"].tolist()[1:] == pytest.approx([-0.2, 0.1])

    @pytest.mark.parametrize("policy,expected", [
        ("mean", 80.5), ("first", 81.0), ("last", 80.0), ("min", 80.0),
    ])
    def test_same_day_policy(self, policy, expected):
        records = [
            DailyRecord(datetime(2026, 1, 1, 7, 0), weight=81.0),
            DailyRecord(datetime(2026, 1, 1, 21, 0), weight=80.0),
        ]
        frame = build_daily_frame(records, AnalysisConfig(same_day_policy=policy))
        assert frame["weight"].iloc[0] == pytest.approx(expected)

    def test_duplicate_fields_merge(self):
        records = [
            DailyRecord(datetime(2026, 1, 1, 7, 0), weight=81.0),
            DailyRecord(datetime(2026, 1, 1, 21, 0), sleep_hours=7.5),
        ]
        frame = build_daily_frame(records, AnalysisConfig())
        assert frame["weight"].iloc[0] == pytest.approx(81.0)
        assert frame["sleep_hours"].iloc[0] == pytest.approx(7.5)

    def test_pounds_converted(self):
        frame = build_daily_frame(make_series([200.0]), AnalysisConfig(weight_unit="lb"))
        assert frame["weight"].iloc[0] == pytest.approx(200 * LB_TO_KG)

    def test_empty(self):
        frame = build_daily_frame([], AnalysisConfig())
        assert frame.empty
        assert "weight_velocity" in frame.columns
        assert weight_series(frame).empty

    def test_extends_to_end_date(self):
        frame = build_daily_frame(make_series([80.0, 80.1]), AnalysisConfig(),
                                  end_date=pd.Timestamp("2026-01-05"))
        assert len(frame) == 5

    def test_restrict_lookback(self):
        frame = build_daily_frame(make_series([80.0] * 30), AnalysisConfig())
        recent = restrict_lookback(frame, 7)
        assert len(recent) == 7
        assert recent.index.min() == pd.Timestamp("2026-01-24")


class TestJsonable:

    def test_nested_conversion(self):
        out = to_jsonable({"day": date(2026, 1, 1), "items": (DailyRecord(date(2026, 1, 2)),)})
        assert out["day"] == "2026-01-01"
        assert out["items"][0]["logged_at"] == "2026-01-02"
        assert out["items"][0]["weight"] is None
