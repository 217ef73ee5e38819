from __future__ import annotations

import argparse
import json
import sys

from utmtrack.app.runner import run
from utmtrack.features.bootstrap.service import report_from_duckdb


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="utm-track")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Replay the configured visits")
    p_run.add_argument("--config", default="config/tracker.yaml")

    p_report = sub.add_parser("report", help="Aggregate a stored run into a report")
    p_report.add_argument("--duckdb", required=True)
    p_report.add_argument("--run-id", required=True)

    args = parser.parse_args(argv)

    if args.cmd == "run":
        result = run(args.config)
        # minimal stdout signal
        print(
            f"run_id={result.ctx.run_id} duckdb={result.duckdb_path} "
            f"events={result.report.total_events}"
        )
        return 0

    if args.cmd == "report":
        report = report_from_duckdb(args.duckdb, args.run_id)
        print(json.dumps(report.as_dict(), indent=2, sort_keys=True))
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
