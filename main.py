# main.py
"""CLI entry point for the interview article pipeline."""

from __future__ import annotations

import argparse
import sys

from config import settings
from orchestration.cli_runner import run


def main() -> None:
    """Parse command-line arguments and generate one article."""
    parser = argparse.ArgumentParser(
        description="Generate an interview-based article through the staged pipeline."
    )
    parser.add_argument("--topic", required=True, help="Article topic")
    parser.add_argument(
        "--key", default=None, help="Idempotency key (derived from inputs if omitted)"
    )
    parser.add_argument(
        "--material", default=None, help="Path to a text file with interview Q&A"
    )
    parser.add_argument(
        "--store-dir",
        default=settings.JOB_STORE_DIR,
        help="Directory for persisted job state",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=settings.WORKER_CONCURRENCY,
        help="Number of worker tasks",
    )
    args = parser.parse_args()
    sys.exit(run(args.topic, args.key, args.material, args.store_dir, args.workers))


if __name__ == "__main__":
    main()
