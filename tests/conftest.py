"""Shared fixtures: in-memory stand-ins for the Firestore-backed stores and lease.

They follow the same contract as exposure_watch.shell.firestore_client so
merge and orchestration tests can assert on real registry state.
"""

import pytest

from exposure_watch.core.merge import (
    merge_geo_into,
    merge_proximity_into,
    new_geo_record,
    new_proximity_record,
)
from exposure_watch.core.models import IntersectionRecord, hour_bucket


class FakeRegistry:
    """In-memory IntersectionStore."""

    def __init__(self, records: list[IntersectionRecord] | None = None) -> None:
        self.records = {r.record_id: r for r in records or []}

    def put(self, record: IntersectionRecord) -> None:
        self.records[record.record_id] = record

    def contains_by_source_id(self, source_id):
        return any(r.source_id == source_id for r in self.records.values())

    def contains_by_proximity_bucket(self, timestamp_ms):
        bucket = hour_bucket(timestamp_ms)[0]
        return any(
            r.proximity_timestamp is not None
            and hour_bucket(r.proximity_timestamp)[0] == bucket
            for r in self.records.values()
        )

    def list_all_records(self):
        return list(self.records.values())

    def add_from_geo(self, match):
        record = new_geo_record(match)
        self.put(record)
        return record

    def add_from_proximity(self, timestamp_ms):
        record = new_proximity_record(timestamp_ms)
        self.put(record)
        return record

    def merge_proximity_into_geo(self, source_id, timestamp_ms):
        record = next(r for r in self.records.values() if r.source_id == source_id)
        self.put(merge_proximity_into(record, timestamp_ms))

    def merge_geo_into_proximity(self, match, timestamp_ms):
        record = next(
            r for r in self.records.values()
            if r.proximity_timestamp == timestamp_ms and r.source_id is None
        )
        self.put(merge_geo_into(record, match))

    def by_source(self, source_id):
        return next(r for r in self.records.values() if r.source_id == source_id)


class FakeDismissedStore:
    """In-memory DismissedStore."""

    def __init__(self, ids: set[str] | None = None) -> None:
        self.ids = set(ids or ())

    def get_dismissed_ids(self):
        return set(self.ids)

    def remove(self, ids):
        self.ids -= set(ids)


class FakeCheckpointStore:
    """In-memory CheckpointStore."""

    def __init__(self, values: dict[str, int] | None = None) -> None:
        self.values = dict(values or {})

    def get(self, key):
        return self.values.get(key)

    def set(self, key, timestamp_ms):
        self.values[key] = timestamp_ms


class FakeLease:
    """In-memory CycleLease."""

    def __init__(self, holder: str | None = None, expires_at: int = 0) -> None:
        self.holder = holder
        self.expires_at = expires_at
        self.acquired_by: list[str] = []
        self.released_by: list[str] = []

    def acquire(self, owner, now_ms, ttl_ms):
        if self.holder not in (None, owner) and self.expires_at > now_ms:
            return False
        self.holder = owner
        self.expires_at = now_ms + ttl_ms
        self.acquired_by.append(owner)
        return True

    def release(self, owner):
        self.released_by.append(owner)
        if self.holder == owner:
            self.holder = None


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def dismissed_store():
    return FakeDismissedStore()


@pytest.fixture
def checkpoint_store():
    return FakeCheckpointStore()


@pytest.fixture
def lease():
    return FakeLease()
