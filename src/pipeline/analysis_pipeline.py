"""Per-user analysis orchestration with explicit health signalling."""

from __future__ import annotations

import logging
import traceback
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from analysis_config import AnalysisConfig
from analytics.forensics import ForensicDifferentialAnalyzer
from analytics.plateau_detector import PlateauBreakthroughDetector
from analytics.streaks import StreakComplianceEngine
from correlation_engine import CorrelationEngine
from insight_generator import InsightGenerator
from models import (
    BreakthroughContext,
    DailyRecord,
    ExistingInsight,
    InsufficientData,
    to_jsonable,
)

log = logging.getLogger("analysis_pipeline")


class PlateauAnalysisPipeline:
    """Detector → forensics + correlations → insights → streaks.

    Every step is isolated: a failing or data-starved step marks the run
    as degraded and the remaining steps still run. All inputs are already
    in memory; the pipeline performs no I/O.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self.detector = PlateauBreakthroughDetector(self.config)
        self.correlations = CorrelationEngine(self.config)
        self.insights = InsightGenerator(self.config)
        self.forensics = ForensicDifferentialAnalyzer(self.config)
        self.streaks = StreakComplianceEngine(self.config)

    def run(
        self,
        records: Sequence[DailyRecord],
        history: Sequence[BreakthroughContext] = (),
        existing_insights: Sequence[ExistingInsight] = (),
        reference: Optional[date] = None,
        since: Optional[date] = None,
        generated_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Run every component and return a JSON-safe result dict."""
        records = list(records)
        reference = reference or date.today()
        status: Dict[str, Any] = {
            "run_started_at": datetime.now(timezone.utc).isoformat(),
            "records": len(records),
            "detection_ok": False,
            "forensics_ok": False,
            "correlation_ok": False,
            "insights_ok": False,
            "streaks_ok": False,
            "analysis_status": "unknown",
            "degraded_reasons": [],
        }
        result: Dict[str, Any] = {
            "detection": None,
            "forensics": [],
            "correlations": [],
            "insights": [],
            "streaks": None,
        }

        log.info("=" * 60)
        log.info("  PLATEAU ANALYSIS STARTED (%d records)", len(records))
        log.info("=" * 60)

        # Step 1: plateaus & breakthroughs
        detection = None
        try:
            log.info("Step 1/5: Detecting plateaus and breakthroughs...")
            detection = self.detector.detect(records, history=history, end_date=reference)
            if isinstance(detection, InsufficientData):
                status["degraded_reasons"].append(detection.reason)
            else:
                status["detection_ok"] = True
            result["detection"] = detection
        except Exception as e:
            log.error("Plateau detection failed: %s", e)
            traceback.print_exc()
            status["degraded_reasons"].append("detection_exception")

        # Step 2: forensics for each breakthrough that closed a plateau
        try:
            log.info("Step 2/5: Forensic differentials...")
            result["forensics"] = self._forensics(records, detection)
            status["forensics_ok"] = True
        except Exception as e:
            log.error("Forensic analysis failed: %s", e)
            traceback.print_exc()
            status["degraded_reasons"].append("forensics_exception")

        # Step 3: correlations
        frame = None
        correlations: List[Any] = []
        best_lags: List[Any] = []
        try:
            log.info("Step 3/5: Correlating lifestyle variables with weight velocity...")
            frame = self.correlations.prepare(records, end_date=reference)
            correlations, skipped = self.correlations.scan(frame)
            result["correlations"] = correlations
            best_lags = self.correlations.best_per_variable(correlations)
            if correlations:
                status["correlation_ok"] = True
            else:
                status["degraded_reasons"].append("insufficient_correlation_pairs")
            log.info("  %d variable/lag pairs lacked data, best lag kept for %d variables",
                     len(skipped), len(best_lags))
        except Exception as e:
            log.error("Correlation engine failed: %s", e)
            traceback.print_exc()
            status["degraded_reasons"].append("correlation_exception")

        # Step 4: insights
        try:
            log.info("Step 4/5: Generating insights...")
            result["insights"] = self.insights.generate(
                correlations=best_lags,
                frame=frame,
                existing=existing_insights,
                generated_at=generated_at,
            )
            status["insights_ok"] = True
        except Exception as e:
            log.error("Insight generation failed: %s", e)
            traceback.print_exc()
            status["degraded_reasons"].append("insight_exception")

        # Step 5: streaks on weight logging
        try:
            log.info("Step 5/5: Streaks and compliance...")
            result["streaks"] = self.streaks.compute_for_variable(
                records, "weight", reference=reference, since=since
            )
            status["streaks_ok"] = True
        except Exception as e:
            log.error("Streak computation failed: %s", e)
            traceback.print_exc()
            status["degraded_reasons"].append("streaks_exception")

        status["run_finished_at"] = datetime.now(timezone.utc).isoformat()
        status["analysis_status"] = self._overall_status(status)
        log.info("=" * 60)
        log.info("  PLATEAU ANALYSIS COMPLETE (status=%s)", status["analysis_status"])
        if status["degraded_reasons"]:
            log.warning("  Degraded reasons: %s", ", ".join(status["degraded_reasons"]))
        log.info("=" * 60)

        out = to_jsonable(result)
        out["status"] = status
        return out

    def _forensics(self, records, detection) -> List[Dict[str, Any]]:
        if detection is None or isinstance(detection, InsufficientData):
            return []
        plateaus = {p.plateau_id: p for p in detection.plateaus}
        reports = []
        for bt in detection.breakthroughs:
            plateau = plateaus.get(bt.preceding_plateau_id)
            if plateau is None:
                continue
            report = self.forensics.analyze_event(records, plateau, bt)
            reports.append({
                "breakthrough_id": bt.breakthrough_id,
                "plateau_id": plateau.plateau_id,
                "report": report,
            })
        return reports

    @staticmethod
    def _overall_status(status: Dict[str, Any]) -> str:
        steps = ("detection_ok", "forensics_ok", "correlation_ok", "insights_ok", "streaks_ok")
        if not any(status.get(s, False) for s in steps):
            return "failed"
        if status.get("degraded_reasons") or not all(status.get(s, False) for s in steps):
            return "degraded"
        return "success"
