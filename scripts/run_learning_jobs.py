#!/usr/bin/env python3
"""
Run the learning loop's scheduled jobs once and exit.

Meant to be invoked by an external scheduler (cron, k8s CronJob):
recompute every ~10 minutes, cleanup once a day.

Usage:
    # From project root, with venv active:
    PYTHONPATH=src python scripts/run_learning_jobs.py --recompute

    # Recompute at most 20 users:
    PYTHONPATH=src python scripts/run_learning_jobs.py --recompute --limit 20

    # Retention sweep:
    PYTHONPATH=src python scripts/run_learning_jobs.py --cleanup
"""

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotenv import load_dotenv
load_dotenv()

from config.settings import get_settings
from core.logging import configure_logging_from_settings, get_logger
from learning.factory import get_learning_events_service, get_learning_jobs

logger = get_logger("run_learning_jobs")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run learning loop jobs")
    parser.add_argument("--recompute", action="store_true", help="Recompute stale fashion states")
    parser.add_argument("--cleanup", action="store_true", help="Delete events past the retention window")
    parser.add_argument("--limit", type=int, default=None, help="Max users to recompute (default 100)")
    args = parser.parse_args()

    if not args.recompute and not args.cleanup:
        parser.error("nothing to do: pass --recompute and/or --cleanup")

    configure_logging_from_settings(get_settings())
    jobs = get_learning_jobs()
    exit_code = 0

    try:
        if args.recompute:
            result = jobs.recompute_stale_states(limit=args.limit)
            if result is None:
                logger.info("Recompute skipped (learning disabled or already running)")
            elif result.error_count:
                exit_code = 1

        if args.cleanup:
            jobs.cleanup_old_events()
    finally:
        get_learning_events_service().shutdown(wait=True)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
