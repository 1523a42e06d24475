"""Merge Engine - Applies merge/dedup decisions to the registry.

The decisions themselves are pure (exposure_watch.core.merge). This module
performs the registry and dismissed-set writes they call for and reports
which records are new or revived so the caller can notify.

The registry snapshot is re-read before each piece of evidence, so a merge
made earlier in a batch is visible to the evidence after it. With geo
matches ordered newest window first, the newest overlapping report is the
one that merges into a pending proximity-only record.
"""

import logging
from dataclasses import dataclass, field

from exposure_watch.core.merge import (
    EvidenceState,
    decide_geo,
    decide_proximity,
    ids_to_undismiss,
    merge_geo_into,
    merge_proximity_into,
)
from exposure_watch.core.models import GeoMatch, IntersectionRecord, ProximityEncounter
from exposure_watch.shell.firestore_client import DismissedStore, IntersectionStore


logger = logging.getLogger(__name__)


@dataclass
class MergeOutcome:
    """What applying a batch of evidence did to the registry.

    Attributes:
        created: Records created from first-seen evidence
        merged: Existing records that gained the other modality
        revived: Merged records that had been dismissed by the user
        duplicates: Evidence dropped as already recorded
    """
    created: list[IntersectionRecord] = field(default_factory=list)
    merged: list[IntersectionRecord] = field(default_factory=list)
    revived: list[IntersectionRecord] = field(default_factory=list)
    duplicates: int = 0

    @property
    def to_notify(self) -> list[IntersectionRecord]:
        """Records the user has to hear about."""
        return [*self.created, *self.revived]


class MergeEngine:
    """Reconciles geo and proximity evidence into canonical records."""

    def __init__(
        self,
        registry: IntersectionStore,
        dismissed_store: DismissedStore,
    ) -> None:
        self.registry = registry
        self.dismissed_store = dismissed_store

    def _revive(
        self,
        record: IntersectionRecord,
        dismissed_ids: set[str],
        outcome: MergeOutcome,
    ) -> None:
        ids = ids_to_undismiss(record) & dismissed_ids
        if ids:
            self.dismissed_store.remove(ids)
            dismissed_ids -= ids
        outcome.revived.append(record)
        logger.info("Dismissed exposure %s revived by new evidence", record.record_id)

    def apply_geo_matches(self, matches: list[GeoMatch]) -> MergeOutcome:
        """Apply geo matches in the given order.

        Args:
            matches: Matches from the geo matcher (newest window first)

        Returns:
            MergeOutcome for the batch

        Raises:
            StorageError: If the registry cannot be read or written
        """
        outcome = MergeOutcome()
        if not matches:
            return outcome

        dismissed_ids = self.dismissed_store.get_dismissed_ids()

        for match in matches:
            if self.registry.contains_by_source_id(match.source_id):
                outcome.duplicates += 1
                continue

            decision = decide_geo(match, self.registry.list_all_records(), dismissed_ids)

            if decision.state == EvidenceState.DUPLICATE:
                outcome.duplicates += 1

            elif decision.state == EvidenceState.MERGE_INTO_EXISTING:
                target = decision.target
                self.registry.merge_geo_into_proximity(match, target.proximity_timestamp)
                merged = merge_geo_into(target, match)
                outcome.merged.append(merged)
                if decision.notifies:
                    self._revive(merged, dismissed_ids, outcome)

            else:
                outcome.created.append(self.registry.add_from_geo(match))

        logger.info(
            "Geo evidence: %d new, %d merged, %d revived, %d duplicates",
            len(outcome.created),
            len(outcome.merged),
            len(outcome.revived),
            outcome.duplicates,
        )
        return outcome

    def apply_encounter(self, encounter: ProximityEncounter) -> MergeOutcome:
        """Apply one non-duplicate proximity encounter.

        Args:
            encounter: Normalised encounter (already checked against its hour bucket)

        Returns:
            MergeOutcome for the encounter

        Raises:
            StorageError: If the registry cannot be read or written
        """
        outcome = MergeOutcome()
        timestamp = encounter.start_contact_timestamp

        dismissed_ids = self.dismissed_store.get_dismissed_ids()
        decision = decide_proximity(timestamp, self.registry.list_all_records(), dismissed_ids)

        if decision.state == EvidenceState.MERGE_INTO_EXISTING:
            target = decision.target
            self.registry.merge_proximity_into_geo(target.source_id, timestamp)
            merged = merge_proximity_into(target, timestamp)
            outcome.merged.append(merged)
            if decision.notifies:
                self._revive(merged, dismissed_ids, outcome)
            logger.info("Proximity encounter merged into %s", target.record_id)
        else:
            outcome.created.append(self.registry.add_from_proximity(timestamp))
            logger.info("New proximity exposure at %d", timestamp)

        return outcome
