"""Cloud Function Entry Point - Root Module.

This is the root-level entry point for Google Cloud Functions.
It imports from the exposure_watch package.
"""

from exposure_watch.main import (
    exposure_check,
    exposure_check_pubsub,
)

__all__ = [
    "exposure_check",
    "exposure_check_pubsub",
]
