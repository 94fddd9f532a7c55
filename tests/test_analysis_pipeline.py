"""
Tests for the per-user analysis pipeline and its status reporting.
"""
import json
from datetime import date, datetime, timezone

import numpy as np
import pytest

from analysis_config import AnalysisConfig
from models import ExistingInsight
from pipeline.analysis_pipeline import PlateauAnalysisPipeline

from conftest import make_series

REFERENCE = date(2026, 2, 9)
STAMP = datetime(2026, 2, 9, 6, 0, tzinfo=timezone.utc)


def _full_history():
    """40 days: plateau, drop, second plateau; sleep drives next-day change."""
    rng = np.random.default_rng(21)
    sleep = rng.uniform(5.0, 9.0, size=40)
    weights = [100.0] * 12 + [98.0] * 27 + [96.0]
    return make_series(
        weights,
        sleep_hours=[float(s) for s in sleep],
        calories=[float(c) for c in rng.uniform(1600, 2400, size=40)],
    )


@pytest.fixture
def pipeline():
    return PlateauAnalysisPipeline(AnalysisConfig())


class TestPipelineRun:

    def test_full_run(self, pipeline):
        out = pipeline.run(_full_history(), reference=REFERENCE, generated_at=STAMP)
        status = out["status"]
        assert status["detection_ok"]
        assert status["forensics_ok"]
        assert status["streaks_ok"]
        assert status["analysis_status"] in ("success", "degraded")

        detection = out["detection"]
        assert [b["occurred_on"] for b in detection["breakthroughs"]] == ["2026-01-13", "2026-02-09"]
        assert len(out["forensics"]) == 2
        assert out["forensics"][0]["plateau_id"] == "plateau-2026-01-01"
        assert out["streaks"]["current_streak"] == 40

    def test_output_is_json_serialisable(self, pipeline):
        out = pipeline.run(_full_history(), reference=REFERENCE, generated_at=STAMP)
        json.dumps(out)

    def test_deterministic(self, pipeline):
        a = pipeline.run(_full_history(), reference=REFERENCE, generated_at=STAMP)
        b = pipeline.run(_full_history(), reference=REFERENCE, generated_at=STAMP)
        for key in ("detection", "forensics", "correlations", "insights", "streaks"):
            assert a[key] == b[key]

    def test_existing_insights_suppressed(self, pipeline):
        first = pipeline.run(_full_history(), reference=REFERENCE, generated_at=STAMP)
        existing = [
            ExistingInsight(i["type"], tuple(i["involved_variables"]), i["message"])
            for i in first["insights"]
        ]
        second = pipeline.run(_full_history(), existing_insights=existing,
                              reference=REFERENCE, generated_at=STAMP)
        assert second["insights"] == []


class TestPipelineStatus:

    def test_empty_input_degraded(self, pipeline):
        out = pipeline.run([], reference=REFERENCE)
        status = out["status"]
        assert status["analysis_status"] == "degraded"
        assert "insufficient_weighins" in status["degraded_reasons"]
        assert "insufficient_correlation_pairs" in status["degraded_reasons"]
        assert out["detection"]["reason"] == "insufficient_weighins"
        assert out["streaks"]["current_streak"] == 0

    def test_failing_step_isolated(self, pipeline, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("detector exploded")

        monkeypatch.setattr(pipeline.detector, "detect", boom)
        out = pipeline.run(_full_history(), reference=REFERENCE, generated_at=STAMP)
        status = out["status"]
        assert "detection_exception" in status["degraded_reasons"]
        assert status["analysis_status"] == "degraded"
        assert out["detection"] is None
        assert out["streaks"]["current_streak"] == 40

    def test_overall_status(self):
        steps = ("detection_ok", "forensics_ok", "correlation_ok", "insights_ok", "streaks_ok")
        all_ok = {s: True for s in steps}
        assert PlateauAnalysisPipeline._overall_status({**all_ok, "degraded_reasons": []}) == "success"
        assert PlateauAnalysisPipeline._overall_status(
            {**all_ok, "degraded_reasons": ["x"]}) == "degraded"
        assert PlateauAnalysisPipeline._overall_status(
            {s: False for s in steps}) == "failed"


class TestLagSelection:

    def _block_sleep_records(self):
        """60 days of sleep held for 5-day blocks; sleep drives same-day change."""
        rng = np.random.default_rng(8)
        block_sleep = rng.uniform(5.0, 9.0, size=12)
        sleep = [float(block_sleep[d // 5]) for d in range(60)]
        weights = [90.0]
        for d in range(1, 60):
            weights.append(weights[-1] - 0.2 * (sleep[d] - 7.0) + rng.normal(0, 0.01))
        return make_series(weights, sleep_hours=sleep)

    def test_one_insight_per_variable(self, pipeline):
        out = pipeline.run(self._block_sleep_records(), reference=date(2026, 3, 1),
                           generated_at=STAMP)
        sleep_lags = [c for c in out["correlations"] if c["variable"] == "sleep_hours"]
        assert len(sleep_lags) == 8

        sleep_insights = [
            i for i in out["insights"]
            if i["type"] in ("correlation", "lag") and "sleep_hours" in i["involved_variables"]
        ]
        assert len(sleep_insights) == 1
        assert sleep_insights[0]["type"] == "correlation"
