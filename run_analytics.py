#!/usr/bin/env python3
"""Institution-wide analytics across graded exams.

Reads the exam definitions and the cached result set of each exam and
produces:
- Enrollment and grading totals
- Overall mean, weighted by the number of graded copies per exam
- Merged score distribution
- The most recent evaluations

Usage:
    python run_grading.py --exam sample_data/exam.json --mode synthetic --seed 1
    python run_analytics.py --exams sample_data/exams.json --cache-dir output/cache
"""
import argparse
import json
import logging
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

from exam_results.aggregation import DEFAULT_RECENT_LIMIT, rollup_exams
from exam_results.cache import JsonDirectoryResultCache
from exam_results.pipeline import build_rollup_entries, save_rollup_json
from exam_results.schemas import CrossExamAggregate, Exam
from exam_results.settings import Settings


def parse_args(settings: Settings) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate cross-exam analytics from cached results.")
    parser.add_argument(
        "--exams",
        type=Path,
        required=True,
        help="JSON file holding a list of exams (id, title, submissions).",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=settings.cache_dir,
        help="Directory containing correction_<exam id>.json files.",
    )
    parser.add_argument(
        "--recent",
        type=int,
        default=DEFAULT_RECENT_LIMIT,
        help="Number of recent evaluations to list.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("output/analytics_report.json"),
        help="Where to write the analytics JSON.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Logging level.",
    )
    return parser.parse_args()


def load_exams(path: Path) -> List[Exam]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError("Exams file must contain a JSON list.")
    return [Exam.from_dict(item) for item in payload]


def print_analytics(aggregate: CrossExamAggregate) -> None:
    """Print a formatted analytics report to the terminal."""
    print("\n" + "=" * 60)
    print("📊  ANALYTICS REPORT")
    print("=" * 60)

    print(f"\n📋 Summary")
    print(f"   Exams:          {aggregate.total_exams} ({aggregate.exams_with_results} with results)")
    print(f"   Copies:         {aggregate.total_submissions}")
    print(f"   Graded copies:  {aggregate.total_graded}")
    print(f"   Overall mean:   {aggregate.overall_mean}%")

    print(f"\n📈 Distribution")
    for label, count in aggregate.distribution.items():
        print(f"   {label:<12} {count:>5}  ({aggregate.distribution_percent[label]}%)")

    print(f"\n🕒 Recent evaluations")
    if not aggregate.recent:
        print("   (none)")
    for item in aggregate.recent:
        print(
            f"   {item.generated_at:%Y-%m-%d %H:%M}  {item.title:<30} "
            f"{item.graded_copies:>4} copies  mean {item.mean}%"
        )

    print("\n" + "=" * 60)


def main() -> None:
    args = parse_args(Settings.from_env())
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    exams = load_exams(args.exams)
    if not exams:
        print(f"[ERROR] No exams found in {args.exams}")
        return

    cache = JsonDirectoryResultCache(args.cache_dir)
    aggregate = rollup_exams(build_rollup_entries(exams, cache), recent_limit=args.recent)

    print_analytics(aggregate)
    save_rollup_json(args.output, aggregate)
    print(f"[DONE] Analytics saved to {args.output}")


if __name__ == "__main__":
    main()
