#!/usr/bin/env python3
"""Run exposure checks locally.

Runs the same proximity + geo cycle as the Cloud Function, against the
Firestore project and feed named in the configuration.

Usage:
    # One cycle, honouring the throttle checkpoint
    python scripts/run_cycle.py

    # One cycle, ignoring the checkpoint
    python scripts/run_cycle.py --ignore-throttle

    # Keep running: one cycle now, then every fetch_interval_seconds
    python scripts/run_cycle.py --loop

Environment:
    CONFIG_PATH: Path to config file (default: config/config.yaml)
    GCP_PROJECT: GCP project ID for Secret Manager access
"""

import argparse
import logging
import os
import sys
import time

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from exposure_watch.core.config import validate_config
from exposure_watch.orchestrator import Orchestrator
from exposure_watch.scheduler import Scheduler
from exposure_watch.shell.config_loader import load_config

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Run exposure checks locally")
    parser.add_argument(
        "--ignore-throttle",
        action="store_true",
        help="Run both checks even if the last fetch is too recent",
    )
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep running, one cycle every fetch_interval_seconds",
    )
    args = parser.parse_args()

    config = load_config(os.environ.get("CONFIG_PATH"))

    validation = validate_config(config)
    for issue in validation.errors:
        log = logger.error if issue.severity == "error" else logger.warning
        log("%s: %s", issue.field, issue.message)
    if not validation.valid:
        return 1

    scheduler = Scheduler(Orchestrator(config), config.fetch_interval_seconds)

    if args.loop:
        scheduler.start()
        try:
            while scheduler.running:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Stopping")
            scheduler.stop()
        return 0

    result = scheduler.run_once(ignore_throttle=args.ignore_throttle)
    if result is None:
        return 1

    logger.info("=" * 50)
    logger.info("Cycle Summary: %s", result.summary)
    for error in result.all_errors:
        logger.error("  ✗ %s", error)

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
