"""Tests for notification formatting."""

from exposure_watch.core.config import NotificationConfig
from exposure_watch.core.formatter import (
    build_notification,
    describe_record,
    format_timestamp,
)
from exposure_watch.core.models import IntersectionRecord


class TestFormatTimestamp:
    """Tests for format_timestamp function."""

    def test_formats_as_utc(self):
        assert format_timestamp(0) == "1970-01-01 00:00 UTC"

    def test_drops_seconds(self):
        assert format_timestamp(1_700_000_059_000) == "2023-11-14 22:14 UTC"


class TestDescribeRecord:
    """Tests for describe_record function."""

    def test_location_only(self):
        record = IntersectionRecord("s1", "s1", 0, 3_600_000)

        assert describe_record(record) == (
            "1970-01-01 00:00 UTC - 1970-01-01 01:00 UTC (location)"
        )

    def test_proximity_only(self):
        record = IntersectionRecord("proximity-5", None, 0, 3_600_000, proximity_timestamp=5)

        assert describe_record(record).endswith("(proximity)")

    def test_both_kinds(self):
        record = IntersectionRecord("s1", "s1", 0, 3_600_000, proximity_timestamp=5)

        assert describe_record(record).endswith("(location + proximity)")


class TestBuildNotification:
    """Tests for build_notification function."""

    def test_nothing_to_notify(self):
        assert build_notification([], NotificationConfig()) is None

    def test_one_notification_for_batch(self):
        records = [
            IntersectionRecord("s1", "s1", 0, 1),
            IntersectionRecord("proximity-5", None, 0, 1, proximity_timestamp=5),
        ]
        config = NotificationConfig(
            title="Exposure",
            body="{count} new exposures",
            duration=5000,
            unit="ms",
        )

        notification = build_notification(records, config)

        assert notification.title == "Exposure"
        assert notification.body == "2 new exposures"
        assert notification.duration == 5000
        assert notification.unit == "ms"
        assert notification.record_ids == ("s1", "proximity-5")
