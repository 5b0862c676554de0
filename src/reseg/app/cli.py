from __future__ import annotations

import argparse
import sys

from reseg.app.runner import run
from reseg.core.errors import ResegmentError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="reseg")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Re-segment sessions and write result tables")
    p_run.add_argument("--config", default="config/resegment.yaml")

    p_report = sub.add_parser("report", help="Run, then print source/medium counts")
    p_report.add_argument("--config", default="config/resegment.yaml")

    args = parser.parse_args(argv)

    try:
        result = run(args.config)
    except ResegmentError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    s = result.summary
    # minimal stdout signal
    print(
        f"run_id={result.ctx.run_id} events={s.events} visitors={s.visitors} "
        f"original_sessions={s.original_sessions} resegmented_sessions={s.resegmented_sessions} "
        f"delta={s.delta}"
    )

    if args.cmd == "report":
        if result.label_counts is None:
            print("attribution disabled")
            return 0
        print("source\tsessions")
        for label, n in result.label_counts.sources:
            print(f"{label}\t{n}")
        print("medium\tsessions")
        for label, n in result.label_counts.mediums:
            print(f"{label}\t{n}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
