"""Notification formatting - Pure functions.

This module turns newly created or revived exposures into the
notification the user sees. All functions are pure with no side effects.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from exposure_watch.core.config import NotificationConfig
from exposure_watch.core.models import IntersectionRecord


@dataclass(frozen=True)
class ExposureNotification:
    """A notification ready for dispatch.

    Attributes:
        title: Notification title
        body: Notification body
        duration: How long the notification stays up
        unit: Unit of duration
        record_ids: Records the notification covers
    """
    title: str
    body: str
    duration: int
    unit: str
    record_ids: tuple[str, ...]


def format_timestamp(timestamp_ms: int) -> str:
    """Format an epoch-ms timestamp as UTC text.

    Pure function.
    """
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M UTC")


def describe_record(record: IntersectionRecord) -> str:
    """One-line description of an exposure.

    Pure function.
    """
    if record.source_id is not None and record.proximity_timestamp is not None:
        kind = "location + proximity"
    elif record.source_id is not None:
        kind = "location"
    else:
        kind = "proximity"
    return (
        f"{format_timestamp(record.from_time_utc)} - "
        f"{format_timestamp(record.to_time_utc)} ({kind})"
    )


def build_notification(
    records: list[IntersectionRecord],
    config: NotificationConfig,
) -> ExposureNotification | None:
    """Build one notification for a batch of exposures.

    Pure function.

    Args:
        records: New or revived exposure records
        config: Notification content settings

    Returns:
        ExposureNotification, or None when there is nothing to notify
    """
    if not records:
        return None

    return ExposureNotification(
        title=config.title,
        body=config.body.format(count=len(records)),
        duration=config.duration,
        unit=config.unit,
        record_ids=tuple(r.record_id for r in records),
    )

