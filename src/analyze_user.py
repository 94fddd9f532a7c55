"""
Plateau Analysis — command-line runner
======================================
Runs the full analysis for one user's exported daily logs.

Usage:
    python analyze_user.py --records logs.csv
    python analyze_user.py --records logs.csv --unit lb --reference 2026-03-01
    python analyze_user.py --records logs.csv --history past.csv --existing insights.json

The records CSV needs a `logged_at` (or `date`) column plus any of the
DailyRecord fields. Settings come from PLATEAU_* environment variables
(.env is honoured); command-line flags win.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger("analyze_user")

from analysis_config import AnalysisConfig
from models import BreakthroughContext, DailyRecord, ExistingInsight, to_day
from pipeline.analysis_pipeline import PlateauAnalysisPipeline

RECORD_FIELDS = [f for f in DailyRecord.__dataclass_fields__ if f != "logged_at"]


def _clean(value: Any) -> Any:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def load_records(path: Path) -> List[DailyRecord]:
    df = pd.read_csv(path)
    date_col = "logged_at" if "logged_at" in df.columns else "date"
    if date_col not in df.columns:
        raise ValueError(f"{path}: expected a 'logged_at' or 'date' column")
    df[date_col] = pd.to_datetime(df[date_col])

    records = []
    for row in df.to_dict(orient="records"):
        kwargs: Dict[str, Any] = {"logged_at": row[date_col].to_pydatetime()}
        for name in RECORD_FIELDS:
            if name in row:
                value = _clean(row[name])
                if value is not None and name not in ("first_meal_at", "last_meal_at"):
                    value = float(value)
                kwargs[name] = value
        records.append(DailyRecord(**kwargs))
    log.info("Loaded %d records from %s", len(records), path)
    return records


def load_history(path: Optional[Path]) -> List[BreakthroughContext]:
    if path is None:
        return []
    df = pd.read_csv(path)
    return [
        BreakthroughContext(
            occurred_on=to_day(str(row["occurred_on"])),
            avg_sleep_hours=_clean(row.get("avg_sleep_hours")),
            avg_calories=_clean(row.get("avg_calories")),
        )
        for row in df.to_dict(orient="records")
    ]


def load_existing(path: Optional[Path]) -> List[ExistingInsight]:
    if path is None:
        return []
    with open(path, encoding="utf-8") as fh:
        items = json.load(fh)
    return [
        ExistingInsight(
            type=item["type"],
            involved_variables=tuple(item.get("involved_variables", ())),
            message=item["message"],
            dismissed=bool(item.get("dismissed", False)),
        )
        for item in items
    ]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Plateau & breakthrough analysis")
    parser.add_argument("--records", type=Path, required=True,
                        help="CSV of daily logs")
    parser.add_argument("--history", type=Path, default=None,
                        help="CSV of past breakthrough contexts")
    parser.add_argument("--existing", type=Path, default=None,
                        help="JSON list of previously surfaced insights")
    parser.add_argument("--unit", choices=["kg", "lb"], default=None,
                        help="Weight unit of the records (default: from env, else kg)")
    parser.add_argument("--reference", type=date.fromisoformat, default=None,
                        help="Analysis date, YYYY-MM-DD (default: today)")
    parser.add_argument("--since", type=date.fromisoformat, default=None,
                        help="Start of the density window, e.g. account creation")
    parser.add_argument("--output", type=Path, default=None,
                        help="Write JSON here instead of stdout")
    args = parser.parse_args(argv)

    config = AnalysisConfig.from_env()
    if args.unit:
        config = config.with_overrides(weight_unit=args.unit)

    pipeline = PlateauAnalysisPipeline(config)
    result = pipeline.run(
        load_records(args.records),
        history=load_history(args.history),
        existing_insights=load_existing(args.existing),
        reference=args.reference,
        since=args.since,
    )

    payload = json.dumps(result, indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(payload, encoding="utf-8")
        log.info("Results written to %s", args.output)
    else:
        print(payload)

    return 0 if result["status"]["analysis_status"] != "failed" else 1


if __name__ == "__main__":
    sys.exit(main())
