"""Merge/dedup decisions for exposure evidence - Pure functions.

Geo evidence (a matched sick report) and proximity evidence (a Bluetooth
encounter) of the same real-world exposure are reconciled into one
IntersectionRecord. This module only decides what should happen; the
registry writes are performed by exposure_watch.merge_engine.

Geo evidence:
    1. source ID already recorded      -> DUPLICATE
    2. overlaps a proximity-only record -> MERGE_INTO_EXISTING
    3. otherwise                        -> NEW_GEO

Proximity evidence (after the hour-bucket duplicate check):
    1. overlaps a geo-only record       -> MERGE_INTO_EXISTING
    2. otherwise                        -> NEW_PROXIMITY

Overlap is always strict (> 0 ms) against the encounter's hour bucket.
"""

from dataclasses import dataclass, replace
from enum import Enum

from exposure_watch.core.geometry import window_overlap_ms
from exposure_watch.core.models import (
    GeoMatch,
    IntersectionRecord,
    hour_bucket,
    proximity_record_id,
)


class EvidenceState(Enum):
    """What a piece of incoming evidence turns into."""
    NEW_GEO = "new_geo"
    NEW_PROXIMITY = "new_proximity"
    MERGE_INTO_EXISTING = "merge_into_existing"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class MergeDecision:
    """Outcome of evaluating one piece of evidence.

    Attributes:
        state: Resulting state
        target: Existing record to merge into (MERGE_INTO_EXISTING only)
        renotify: Whether the merge revives a dismissed record and must notify
    """
    state: EvidenceState
    target: IntersectionRecord | None = None
    renotify: bool = False

    @property
    def notifies(self) -> bool:
        """New records always notify; merges only when reviving a dismissal."""
        if self.state in (EvidenceState.NEW_GEO, EvidenceState.NEW_PROXIMITY):
            return True
        return self.state == EvidenceState.MERGE_INTO_EXISTING and self.renotify


def is_dismissed(record: IntersectionRecord, dismissed_ids: set[str]) -> bool:
    """A record is dismissed when the user marked it or it lost was_there."""
    return not record.was_there or record.record_id in dismissed_ids


def _best_overlap(
    candidates: list[tuple[int, IntersectionRecord]],
) -> IntersectionRecord | None:
    positive = [(overlap, r) for overlap, r in candidates if overlap > 0]
    if not positive:
        return None
    # Largest overlap wins, then the newest window, then the lowest ID
    positive.sort(key=lambda item: item[1].record_id)
    positive.sort(key=lambda item: (item[0], item[1].from_time_utc), reverse=True)
    return positive[0][1]


def find_proximity_record_for_geo(
    match: GeoMatch,
    records: list[IntersectionRecord],
) -> IntersectionRecord | None:
    """Find a proximity-only record whose hour bucket overlaps a geo match.

    Pure function.
    """
    candidates = []
    for record in records:
        if not record.is_proximity_only:
            continue
        bucket_start, bucket_end = hour_bucket(record.proximity_timestamp)
        overlap = window_overlap_ms(
            match.from_time_utc, match.to_time_utc, bucket_start, bucket_end
        )
        candidates.append((overlap, record))
    return _best_overlap(candidates)


def find_geo_record_for_proximity(
    timestamp_ms: int,
    records: list[IntersectionRecord],
) -> IntersectionRecord | None:
    """Find a geo-only record whose window overlaps an encounter's hour bucket.

    Pure function.
    """
    bucket_start, bucket_end = hour_bucket(timestamp_ms)
    candidates = []
    for record in records:
        if not record.is_geo_only:
            continue
        overlap = window_overlap_ms(
            record.from_time_utc, record.to_time_utc, bucket_start, bucket_end
        )
        candidates.append((overlap, record))
    return _best_overlap(candidates)


def decide_geo(
    match: GeoMatch,
    records: list[IntersectionRecord],
    dismissed_ids: set[str],
) -> MergeDecision:
    """Decide what a geo match does to the registry.

    Pure function.

    Args:
        match: Geo match with its overlap window
        records: Current registry snapshot
        dismissed_ids: Record IDs the user dismissed

    Returns:
        MergeDecision for the match
    """
    if any(r.source_id == match.source_id for r in records):
        return MergeDecision(state=EvidenceState.DUPLICATE)

    target = find_proximity_record_for_geo(match, records)
    if target is not None:
        return MergeDecision(
            state=EvidenceState.MERGE_INTO_EXISTING,
            target=target,
            renotify=is_dismissed(target, dismissed_ids),
        )

    return MergeDecision(state=EvidenceState.NEW_GEO)


def decide_proximity(
    timestamp_ms: int,
    records: list[IntersectionRecord],
    dismissed_ids: set[str],
) -> MergeDecision:
    """Decide what a (non-duplicate) encounter does to the registry.

    Pure function.

    Args:
        timestamp_ms: Encounter start (epoch ms)
        records: Current registry snapshot
        dismissed_ids: Record IDs the user dismissed

    Returns:
        MergeDecision for the encounter
    """
    target = find_geo_record_for_proximity(timestamp_ms, records)
    if target is not None:
        return MergeDecision(
            state=EvidenceState.MERGE_INTO_EXISTING,
            target=target,
            renotify=is_dismissed(target, dismissed_ids),
        )

    return MergeDecision(state=EvidenceState.NEW_PROXIMITY)


def new_geo_record(match: GeoMatch) -> IntersectionRecord:
    """Build the record for first-seen geo evidence."""
    return IntersectionRecord(
        record_id=match.source_id,
        source_id=match.source_id,
        from_time_utc=match.from_time_utc,
        to_time_utc=match.to_time_utc,
        proximity_timestamp=None,
        was_there=True,
    )


def new_proximity_record(timestamp_ms: int) -> IntersectionRecord:
    """Build the record for first-seen proximity evidence.

    Its window is the encounter's hour bucket until geo evidence arrives.
    """
    bucket_start, bucket_end = hour_bucket(timestamp_ms)
    return IntersectionRecord(
        record_id=proximity_record_id(timestamp_ms),
        source_id=None,
        from_time_utc=bucket_start,
        to_time_utc=bucket_end,
        proximity_timestamp=timestamp_ms,
        was_there=True,
    )


def merge_geo_into(record: IntersectionRecord, match: GeoMatch) -> IntersectionRecord:
    """Attach geo evidence to a proximity-only record.

    Pure function - returns new record without modifying input.
    """
    return replace(
        record,
        source_id=match.source_id,
        from_time_utc=match.from_time_utc,
        to_time_utc=match.to_time_utc,
        was_there=True,
    )


def merge_proximity_into(
    record: IntersectionRecord,
    timestamp_ms: int,
) -> IntersectionRecord:
    """Attach proximity evidence to a geo-only record.

    Pure function - returns new record without modifying input.
    """
    return replace(record, proximity_timestamp=timestamp_ms, was_there=True)


def ids_to_undismiss(record: IntersectionRecord) -> set[str]:
    """Dismissed-set entries that must go when a record is revived."""
    ids = {record.record_id}
    if record.source_id is not None:
        ids.add(record.source_id)
    return ids
