#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from exam_results.aggregation import BAND_SCHEMES, SummaryAggregator
from exam_results.cache import JsonDirectoryResultCache
from exam_results.errors import GradingServiceError, MalformedResponseError
from exam_results.grading_client import GradingApiClient, HttpGradingProvider
from exam_results.pipeline import ResultService, load_exam, save_copies_csv, save_result_json
from exam_results.settings import Settings
from exam_results.synthetic import SyntheticGradingProvider


def parse_args(settings: Settings) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Grade one exam and aggregate its results.")
    parser.add_argument(
        "--exam",
        type=Path,
        required=True,
        help="Exam JSON file (id, title, submissions, scoring).",
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=["api", "synthetic"],
        default="api",
        help="Grade through the grading API or generate synthetic grades.",
    )
    parser.add_argument(
        "--fallback",
        action="store_true",
        help="Use synthetic grades when the grading API is unreachable.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for synthetic grading.",
    )
    parser.add_argument(
        "--api-base",
        type=str,
        default=settings.api_base,
        help="Grading API base URL.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.timeout,
        help="Grading API timeout in seconds.",
    )
    parser.add_argument(
        "--bands",
        type=str,
        choices=sorted(BAND_SCHEMES),
        default=settings.band_scheme,
        help="Distribution band scheme.",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=settings.cache_dir,
        help="Directory holding cached result sets.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Output directory for the CSV export.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args(Settings.from_env())
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    exam = load_exam(args.exam)
    synthetic = SyntheticGradingProvider(seed=args.seed)
    cache = JsonDirectoryResultCache(args.cache_dir)
    aggregator = SummaryAggregator(BAND_SCHEMES[args.bands])

    with GradingApiClient(base_url=args.api_base, timeout=args.timeout) as client:
        if args.mode == "api":
            service = ResultService(
                HttpGradingProvider(client),
                cache,
                aggregator=aggregator,
                fallback_provider=synthetic if args.fallback else None,
            )
        else:
            service = ResultService(synthetic, cache, aggregator=aggregator)
        print(f"Grading exam {exam.id} ({len(exam.submissions)} copies) in {args.mode.upper()} mode...")

        try:
            run = service.run_grading(exam)
        except (GradingServiceError, MalformedResponseError) as e:
            print(f"[ERROR] Grading failed for exam {exam.id}: {e}")
            print("[ERROR] Retry later, or rerun with --fallback or --mode synthetic.")
            raise SystemExit(1)

    result_set = run.result_set
    for copy in result_set.copies:
        print(f"[OK] {copy.student_name}: {copy.note:g}/{copy.max_note:g} ({copy.percent:.1f}%)")
    for error in run.errors:
        print(f"[SKIPPED] {error.copy_key}: {error.reason}")

    summary = result_set.summary
    print(
        f"[SUMMARY] {run.progress_label} | mean {summary.mean}% | "
        f"min {summary.minimum}% | median {summary.median}% | max {summary.maximum}%"
    )
    print("[SUMMARY] " + ", ".join(f"{label}: {count}" for label, count in summary.distribution.items()))
    if run.used_fallback:
        print("[WARN] Grading API unavailable; results are synthetic.")

    json_path = args.output_dir / f"correction_{exam.id}.json"
    save_result_json(json_path, result_set)
    csv_path = args.output_dir / f"correction_{exam.id}.csv"
    save_copies_csv(csv_path, result_set)
    print(f"[DONE] Results cached in {cache.path_for(exam.id)}, exported to {json_path} and {csv_path}")


if __name__ == "__main__":
    main()
