"""Orchestrator - Wires Functional Core and Imperative Shell.

This module coordinates the flow of data between the pure functional
core and the I/O-performing shell components. One cycle runs the
proximity check, then the geo check, then refreshes the throttle
checkpoint. A Firestore lease keeps cycles on different instances from
writing the registry at the same time.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from exposure_watch.core.config import Config
from exposure_watch.core.formatter import build_notification, describe_record
from exposure_watch.core.geo_matcher import find_intersections
from exposure_watch.core.models import parse_encounters, parse_sick_feed
from exposure_watch.core.proximity import select_latest_encounter
from exposure_watch.core.throttle import check_throttle
from exposure_watch.merge_engine import MergeEngine, MergeOutcome
from exposure_watch.shell.feed_client import FeedClient
from exposure_watch.shell.firestore_client import (
    LAST_FETCH_TS,
    CheckpointStore,
    CycleLease,
    DismissedStore,
    FirestoreClient,
    FirestoreConfig,
    IntersectionStore,
)
from exposure_watch.shell.history_client import HistoryStore, ProximityLogClient
from exposure_watch.shell.notification_client import NotificationClient


logger = logging.getLogger(__name__)


def _epoch_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


@dataclass
class CheckResult:
    """Result of a single proximity or geo check.

    Attributes:
        name: 'proximity' or 'geo'
        ran: False when the check was throttled or disabled
        skipped_reason: Why the check did not run
        candidates: Evidence items handed to the merge engine
        outcome: Registry changes made by the check
        notified: Whether a notification was raised
        errors: Errors reported during the check
    """
    name: str
    ran: bool = False
    skipped_reason: str | None = None
    candidates: int = 0
    outcome: MergeOutcome = field(default_factory=MergeOutcome)
    notified: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Returns True if no errors occurred."""
        return len(self.errors) == 0


@dataclass
class CycleResult:
    """Result of a complete check cycle.

    Attributes:
        proximity: Proximity check result
        geo: Geo check result
        checkpoint_ms: Checkpoint written at the end (None if the write failed)
        errors: Cycle-level errors (lease, checkpoint write)
    """
    proximity: CheckResult
    geo: CheckResult
    checkpoint_ms: int | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def all_errors(self) -> list[str]:
        return [*self.proximity.errors, *self.geo.errors, *self.errors]

    @property
    def success(self) -> bool:
        """Returns True if no errors occurred anywhere in the cycle."""
        return len(self.all_errors) == 0

    @property
    def summary(self) -> str:
        """Human-readable summary of the cycle."""
        parts = []
        for check in (self.proximity, self.geo):
            if not check.ran:
                parts.append(f"{check.name}: skipped")
                continue
            parts.append(
                f"{check.name}: {check.candidates} candidates, "
                f"{len(check.outcome.created)} new, "
                f"{len(check.outcome.merged)} merged"
            )
        return "; ".join(parts)


class Orchestrator:
    """Coordinates exposure checks.

    This class wires together:
    - Feed client (downloads and verifies the sick-report feed)
    - History store and proximity log (the user's recorded data)
    - Core functions (matching, throttling, merge decisions)
    - Merge engine (registry writes)
    - Notification client (raising the local notification)
    - Checkpoint store (throttle state that survives restarts)
    - Cycle lease (one writer across instances)
    """

    def __init__(
        self,
        config: Config,
        feed_client: FeedClient | None = None,
        history_store: HistoryStore | None = None,
        proximity_log: ProximityLogClient | None = None,
        registry: IntersectionStore | None = None,
        dismissed_store: DismissedStore | None = None,
        checkpoint_store: CheckpointStore | None = None,
        notification_client: NotificationClient | None = None,
        lease: CycleLease | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize orchestrator with configuration.

        Clients that are not provided are created from the configuration;
        the Firestore-backed stores share one lazily-created client.

        Args:
            config: Application configuration
            clock: Returns the current time in epoch ms (defaults to UTC now)
        """
        self.config = config
        firestore_client = FirestoreClient(
            FirestoreConfig(
                database=config.firestore_database,
                collection_prefix=config.firestore_collection_prefix,
            )
        )
        self.feed_client = feed_client or FeedClient(config.feed_signing_key)
        self.history_store = history_store or HistoryStore(firestore_client)
        self.proximity_log = proximity_log or ProximityLogClient(firestore_client)
        self.registry = registry or IntersectionStore(firestore_client)
        self.dismissed_store = dismissed_store or DismissedStore(firestore_client)
        self.checkpoint_store = checkpoint_store or CheckpointStore(firestore_client)
        self.notification_client = notification_client or NotificationClient(
            config.notification.webhook_url
        )
        self.lease = lease or CycleLease(firestore_client)
        self.owner = uuid.uuid4().hex
        self.clock = clock or _epoch_ms
        self.merge_engine = MergeEngine(self.registry, self.dismissed_store)

    def _report_error(
        self,
        result: CheckResult | CycleResult,
        message: str,
        error: Exception | str,
    ) -> None:
        """Single sink for every error caught during a cycle."""
        logger.error("%s: %s", message, error, exc_info=isinstance(error, Exception))
        result.errors.append(f"{message}: {error}")

    def _throttled(self, result: CheckResult, min_interval_minutes: int) -> bool:
        last_fetch = self.checkpoint_store.get(LAST_FETCH_TS)
        throttle = check_throttle(result.name, last_fetch, self.clock(), min_interval_minutes)
        if not throttle.allowed:
            logger.info("%s", throttle.reason)
            result.skipped_reason = throttle.reason
            return True
        return False

    def _notify(self, result: CheckResult) -> None:
        """Raise one notification for everything new or revived in a check.

        Registry writes are already committed; a failed notification is
        reported, not retried.
        """
        records = result.outcome.to_notify
        notification = build_notification(records, self.config.notification)
        if notification is None:
            return

        for record in records:
            logger.info("Exposure %s: %s", record.record_id, describe_record(record))

        response = self.notification_client.notify(
            notification.title,
            notification.body,
            notification.duration,
            notification.unit,
        )
        if response.success:
            result.notified = True
        else:
            self._report_error(
                result,
                f"Notification failed for {len(records)} exposure(s)",
                response.error or "unknown error",
            )

    def check_proximity(self, ignore_throttle: bool = False) -> CheckResult:
        """Check the newest Bluetooth encounter against the registry.

        Args:
            ignore_throttle: Run even if the checkpoint is too recent

        Returns:
            CheckResult for the proximity check
        """
        result = CheckResult(name="proximity")

        if not self.config.proximity_enabled:
            result.skipped_reason = "proximity check disabled"
            return result

        try:
            if not ignore_throttle and self._throttled(
                result, self.config.throttle.min_ble_fetch_interval_minutes
            ):
                return result

            result.ran = True
            raw = self.proximity_log.collect_recent_encounters()
            encounters, rejected = parse_encounters(raw)
            for error in rejected:
                logger.warning("Skipping malformed encounter %r: %s", error.raw, error)

            encounter = select_latest_encounter(encounters)
            if encounter is None:
                logger.info("No proximity encounters to check")
                return result

            result.candidates = 1
            if self.registry.contains_by_proximity_bucket(encounter.start_contact_timestamp):
                logger.info(
                    "Encounter at %d already recorded",
                    encounter.start_contact_timestamp,
                )
                result.outcome.duplicates = 1
                return result

            result.outcome = self.merge_engine.apply_encounter(encounter)
        except Exception as e:
            self._report_error(result, "Proximity check failed", e)
            return result

        self._notify(result)
        return result

    def check_geo(self, ignore_throttle: bool = False) -> CheckResult:
        """Match location history against the sick-report feed.

        Args:
            ignore_throttle: Run even if the checkpoint is too recent

        Returns:
            CheckResult for the geo check
        """
        result = CheckResult(name="geo")
        matching = self.config.matching

        try:
            if not ignore_throttle and self._throttled(
                result, self.config.throttle.min_geo_fetch_interval_minutes
            ):
                return result

            result.ran = True
            feed = self.feed_client.fetch_and_verify(self.config.data_url)
            reports = parse_sick_feed(
                feed,
                lat_index=matching.sick_geometry_lat_index,
                lon_index=matching.sick_geometry_long_index,
            )

            if matching.intersect_with_clusters:
                samples = self.history_store.list_clusters()
            else:
                samples = self.history_store.list_samples()

            matches = find_intersections(samples, reports, matching)
            result.candidates = len(matches)
            logger.info(
                "%d sick reports intersect the user's history (of %d)",
                len(matches),
                len(reports),
            )

            result.outcome = self.merge_engine.apply_geo_matches(matches)
        except Exception as e:
            self._report_error(result, "Geo check failed", e)
            return result

        self._notify(result)
        return result

    def _skipped_cycle(self, reason: str) -> CycleResult:
        return CycleResult(
            proximity=CheckResult(name="proximity", skipped_reason=reason),
            geo=CheckResult(name="geo", skipped_reason=reason),
        )

    def run_cycle(self, ignore_throttle: bool = False) -> CycleResult:
        """Run both checks, then refresh the checkpoint.

        The cycle only runs while this instance holds the cycle lease; a
        contended cycle skips both checks and leaves the checkpoint alone.

        The checkpoint is written even when a check failed, so a persistent
        failure is retried every cycle without tightening the throttle.

        Args:
            ignore_throttle: Run both checks regardless of the checkpoint

        Returns:
            CycleResult with details of what happened
        """
        ttl_ms = self.config.cycle_lease_seconds * 1000
        try:
            acquired = self.lease.acquire(self.owner, self.clock(), ttl_ms)
        except Exception as e:
            cycle = self._skipped_cycle("cycle lease unavailable")
            self._report_error(cycle, "Failed to acquire cycle lease", e)
            return cycle

        if not acquired:
            logger.info("Another exposure check cycle is running, skipping")
            return self._skipped_cycle("another exposure check cycle is running")

        cycle = CycleResult(proximity=CheckResult(name="proximity"), geo=CheckResult(name="geo"))
        try:
            cycle.proximity = self.check_proximity(ignore_throttle=ignore_throttle)
            cycle.geo = self.check_geo(ignore_throttle=ignore_throttle)

            now = self.clock()
            try:
                self.checkpoint_store.set(LAST_FETCH_TS, now)
                cycle.checkpoint_ms = now
            except Exception as e:
                self._report_error(cycle, "Failed to write checkpoint", e)
        finally:
            try:
                self.lease.release(self.owner)
            except Exception as e:
                self._report_error(cycle, "Failed to release cycle lease", e)

        logger.info("Cycle complete: %s", cycle.summary)
        return cycle
