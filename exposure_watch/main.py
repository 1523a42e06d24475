"""Cloud Function Entry Point.

This module provides the entry point for Google Cloud Functions.
It's a thin wrapper that loads configuration and invokes the orchestrator.
Cloud Scheduler acts as the periodic trigger; for a long-running process
use exposure_watch.scheduler.Scheduler instead (scripts/run_cycle.py --loop).
"""

import logging
import os
from typing import Any

import functions_framework
from flask import Request

from exposure_watch.core.config import Config, validate_config
from exposure_watch.orchestrator import CycleResult, Orchestrator
from exposure_watch.shell.config_loader import load_config, load_config_from_env


# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _get_config() -> Config:
    """Load configuration from file or environment."""
    config_path = os.environ.get("CONFIG_PATH")

    if config_path:
        return load_config(config_path)
    elif os.environ.get("FEED_URL"):
        # Simple env-based config
        return load_config_from_env()
    else:
        # Try default config path
        return load_config()


def _validated_config() -> Config | None:
    """Load config, log validation findings, None if it is unusable."""
    config = _get_config()
    validation = validate_config(config)

    for warning in validation.warnings:
        logger.warning("Config %s: %s", warning.field, warning.message)
    for error in validation.critical_errors:
        logger.error("Config %s: %s", error.field, error.message)

    return config if validation.valid else None


def build_response(result: CycleResult) -> dict[str, Any]:
    """JSON summary of a cycle."""
    response: dict[str, Any] = {
        "status": "success" if result.success else "partial_failure",
        "summary": result.summary,
        "checkpoint_ms": result.checkpoint_ms,
    }
    for check in (result.proximity, result.geo):
        response[check.name] = {
            "ran": check.ran,
            "skipped_reason": check.skipped_reason,
            "candidates": check.candidates,
            "created": len(check.outcome.created),
            "merged": len(check.outcome.merged),
            "revived": len(check.outcome.revived),
            "duplicates": check.outcome.duplicates,
            "notified": check.notified,
        }

    if result.all_errors:
        response["errors"] = result.all_errors

    return response


@functions_framework.http
def exposure_check(request: Request) -> tuple[dict[str, Any], int]:
    """HTTP Cloud Function entry point.

    Triggered by Cloud Scheduler or a manual HTTP request. Runs one
    proximity + geo check cycle.

    Args:
        request: Flask request object (?force=true ignores the throttle)

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    logger.info("Starting exposure check cycle")

    try:
        config = _validated_config()
        if config is None:
            return {
                "status": "error",
                "message": "Invalid configuration",
            }, 400

        force = False
        args = getattr(request, "args", None)
        if args is not None:
            force = str(args.get("force", "")).lower() == "true"

        result = Orchestrator(config).run_cycle(ignore_throttle=force)

        logger.info("Completed: %s", result.summary)

        status_code = 200 if result.success else 207  # 207 = Multi-Status
        return build_response(result), status_code

    except Exception as e:
        logger.exception("Unexpected error in exposure check")
        return {
            "status": "error",
            "message": str(e),
        }, 500


@functions_framework.cloud_event
def exposure_check_pubsub(cloud_event: Any) -> None:
    """Pub/Sub Cloud Function entry point.

    Alternative trigger for Cloud Scheduler via Pub/Sub.

    Args:
        cloud_event: CloudEvent from Pub/Sub
    """
    logger.info("Starting exposure check cycle (Pub/Sub trigger)")

    try:
        config = _validated_config()
        if config is None:
            return

        result = Orchestrator(config).run_cycle()

        logger.info("Completed: %s", result.summary)

        for error in result.all_errors:
            logger.error("Error: %s", error)

    except Exception:
        logger.exception("Unexpected error in exposure check")
        raise
