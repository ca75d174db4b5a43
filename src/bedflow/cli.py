"""Print an analytics report for a stored bed dataset as JSON.

Examples::

    bedflow-report beds.json summary
    bedflow-report beds.json trends --granularity weekly --start-date 2025-10-01
    bedflow-report beds.json history ICU-01 --limit 20
    bedflow-report beds.json cleaning --ward ICU --period 14
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from bedflow.config import Settings
from bedflow.engine import AnalyticsEngine
from bedflow.errors import BedflowError, InvalidArgument
from bedflow.store import load_store
from bedflow.utils import parse_instant, to_payload

REPORTS = ["summary", "wards", "history", "trends", "los", "forecast", "cleaning", "beds"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bedflow-report", description="Bed occupancy analytics reports"
    )
    parser.add_argument("store", help="Path to a .json, .yaml or .pkl bed store")
    parser.add_argument("report", choices=REPORTS)
    parser.add_argument("bed_id", nargs="?", help="Bed id or code (history report)")
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("--now", help="Reference instant (ISO 8601), default: current time")
    parser.add_argument("--start-date")
    parser.add_argument("--end-date")
    parser.add_argument("--granularity", default="daily")
    parser.add_argument("--limit", type=int)
    parser.add_argument("--skip", type=int)
    parser.add_argument("--ward")
    parser.add_argument("--status")
    parser.add_argument("--period", type=int)
    parser.add_argument("--verbose", action="store_true")
    return parser


def run_report(engine: AnalyticsEngine, args: argparse.Namespace):
    if args.report == "summary":
        return engine.occupancy_summary()
    if args.report == "wards":
        return engine.occupancy_by_ward()
    if args.report == "history":
        if not args.bed_id:
            raise InvalidArgument("The history report needs a bed id or code")
        return engine.bed_history(args.bed_id, limit=args.limit, skip=args.skip)
    if args.report == "trends":
        return engine.occupancy_trends(
            start_date=args.start_date,
            end_date=args.end_date,
            granularity=args.granularity,
        )
    if args.report == "los":
        return engine.length_of_stay()
    if args.report == "forecast":
        return engine.forecast()
    if args.report == "cleaning":
        return engine.cleaning_performance(
            ward=args.ward,
            start_date=args.start_date,
            end_date=args.end_date,
            period=args.period,
        )
    return engine.list_beds(status=args.status, ward=args.ward)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_yaml(args.config) if args.config else Settings()
    logging.basicConfig(level=settings.log_level)

    clock = None
    if args.now:
        fixed = parse_instant(args.now, "now")
        clock = lambda: fixed  # noqa: E731

    engine = AnalyticsEngine(
        load_store(args.store), clock=clock, settings=settings, verbose=args.verbose
    )
    try:
        result = run_report(engine, args)
    except BedflowError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    json.dump(to_payload(result), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
