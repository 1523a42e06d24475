"""Firestore Client - Imperative Shell.

This module persists the exposure registry, the user's dismissed set, the
throttle checkpoint and the cycle lease in Google Cloud Firestore.

All I/O is contained here; merge/dedup decisions are in the core module.
Every Firestore failure is raised as StorageError so the running check
aborts instead of acting on a partial view of the registry.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from exposure_watch.core.errors import StorageError
from exposure_watch.core.merge import new_geo_record, new_proximity_record
from exposure_watch.core.models import GeoMatch, IntersectionRecord, hour_bucket


logger = logging.getLogger(__name__)


# Default prefix for all collections
DEFAULT_COLLECTION_PREFIX = "exposure_watch"

# Document holding the dismissed record IDs
DISMISSED_DOCUMENT = "dismissed"

# Checkpoint key shared by both checks
LAST_FETCH_TS = "last_fetch_ts"

# Document holding the single-writer lease for check cycles
CYCLE_LEASE_DOCUMENT = "cycle"


@dataclass
class FirestoreConfig:
    """Configuration for Firestore clients.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
        collection_prefix: Prefix for every collection name
    """
    project_id: str | None = None
    database: str | None = None
    collection_prefix: str = DEFAULT_COLLECTION_PREFIX

    def collection(self, name: str) -> str:
        return f"{self.collection_prefix}_{name}"


class FirestoreClient:
    """Lazily-created Firestore client shared by the stores below.

    This is part of the imperative shell - it handles database I/O.
    """

    def __init__(
        self,
        config: FirestoreConfig | None = None,
        client: firestore.Client | None = None,
    ) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
            client: Pre-built Firestore client (created lazily if not provided)
        """
        self.config = config or FirestoreConfig()
        self._client = client

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs = {}
            if self.config.project_id:
                kwargs['project'] = self.config.project_id
            if self.config.database:
                kwargs['database'] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def collection(self, name: str) -> Any:
        """Reference to a prefixed collection."""
        return self.client.collection(self.config.collection(name))


def record_to_dict(record: IntersectionRecord) -> dict[str, Any]:
    """Serialise a record for Firestore."""
    bucket = None
    if record.proximity_timestamp is not None:
        bucket = hour_bucket(record.proximity_timestamp)[0]
    return {
        "record_id": record.record_id,
        "source_id": record.source_id,
        "from_time_utc": record.from_time_utc,
        "to_time_utc": record.to_time_utc,
        "proximity_timestamp": record.proximity_timestamp,
        "proximity_bucket": bucket,
        "was_there": record.was_there,
        "updated_at": datetime.now(timezone.utc),
    }


def record_from_dict(doc_id: str, data: dict[str, Any]) -> IntersectionRecord:
    """Deserialise a Firestore document into a record."""
    return IntersectionRecord(
        record_id=data.get("record_id") or doc_id,
        source_id=data.get("source_id"),
        from_time_utc=int(data.get("from_time_utc", 0)),
        to_time_utc=int(data.get("to_time_utc", 0)),
        proximity_timestamp=data.get("proximity_timestamp"),
        was_there=bool(data.get("was_there", True)),
    )


class IntersectionStore:
    """The canonical exposure registry.

    One document per record, keyed by record_id.

    Document structure:
    {
        "record_id": "...",
        "source_id": "..." | null,
        "from_time_utc": <ms>,
        "to_time_utc": <ms>,
        "proximity_timestamp": <ms> | null,
        "proximity_bucket": <ms> | null,
        "was_there": true,
        "updated_at": <timestamp>
    }
    """

    COLLECTION = "intersections"

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client

    def _collection(self) -> Any:
        return self.firestore.collection(self.COLLECTION)

    def _first_doc(self, *filters: FieldFilter) -> Any | None:
        query = self._collection()
        for field_filter in filters:
            query = query.where(filter=field_filter)
        for doc in query.limit(1).stream():
            return doc
        return None

    def contains_by_source_id(self, source_id: str) -> bool:
        """Whether a record with this feed key exists."""
        try:
            return self._first_doc(FieldFilter("source_id", "==", source_id)) is not None
        except Exception as e:
            raise StorageError(f"Failed to look up source {source_id}: {e}") from e

    def contains_by_proximity_bucket(self, timestamp_ms: int) -> bool:
        """Whether a record already covers this encounter's hour bucket."""
        bucket_start = hour_bucket(timestamp_ms)[0]
        try:
            doc = self._first_doc(FieldFilter("proximity_bucket", "==", bucket_start))
            return doc is not None
        except Exception as e:
            raise StorageError(f"Failed to look up proximity bucket {bucket_start}: {e}") from e

    def list_all_records(self) -> list[IntersectionRecord]:
        """Every record in the registry."""
        try:
            docs = list(self._collection().stream())
        except Exception as e:
            raise StorageError(f"Failed to list exposure records: {e}") from e

        records = [record_from_dict(doc.id, doc.to_dict() or {}) for doc in docs]
        logger.debug("Loaded %d exposure records", len(records))
        return records

    def _write(self, record: IntersectionRecord) -> IntersectionRecord:
        try:
            self._collection().document(record.record_id).set(record_to_dict(record))
        except Exception as e:
            raise StorageError(f"Failed to write record {record.record_id}: {e}") from e
        return record

    def add_from_geo(self, match: GeoMatch) -> IntersectionRecord:
        """Create a record from first-seen geo evidence."""
        logger.info("Adding geo exposure %s", match.source_id)
        return self._write(new_geo_record(match))

    def add_from_proximity(self, timestamp_ms: int) -> IntersectionRecord:
        """Create a record from first-seen proximity evidence."""
        logger.info("Adding proximity exposure at %d", timestamp_ms)
        return self._write(new_proximity_record(timestamp_ms))

    def _update(self, doc: Any, fields: dict[str, Any]) -> None:
        fields["updated_at"] = datetime.now(timezone.utc)
        try:
            doc.reference.update(fields)
        except Exception as e:
            raise StorageError(f"Failed to update record {doc.id}: {e}") from e

    def merge_proximity_into_geo(self, source_id: str, timestamp_ms: int) -> None:
        """Attach proximity evidence to the geo record with this feed key."""
        try:
            doc = self._first_doc(FieldFilter("source_id", "==", source_id))
        except Exception as e:
            raise StorageError(f"Failed to look up source {source_id}: {e}") from e
        if doc is None:
            raise StorageError(f"No record for source {source_id}")

        logger.info("Merging proximity %d into geo exposure %s", timestamp_ms, source_id)
        self._update(doc, {
            "proximity_timestamp": timestamp_ms,
            "proximity_bucket": hour_bucket(timestamp_ms)[0],
            "was_there": True,
        })

    def merge_geo_into_proximity(self, match: GeoMatch, timestamp_ms: int) -> None:
        """Attach geo evidence to the proximity-only record for this encounter."""
        try:
            doc = self._first_doc(
                FieldFilter("proximity_timestamp", "==", timestamp_ms),
                FieldFilter("source_id", "==", None),
            )
        except Exception as e:
            raise StorageError(f"Failed to look up proximity record {timestamp_ms}: {e}") from e
        if doc is None:
            raise StorageError(f"No proximity-only record at {timestamp_ms}")

        logger.info("Merging geo exposure %s into proximity %d", match.source_id, timestamp_ms)
        self._update(doc, {
            "source_id": match.source_id,
            "from_time_utc": match.from_time_utc,
            "to_time_utc": match.to_time_utc,
            "was_there": True,
        })


class DismissedStore:
    """Record IDs the user dismissed ("I was not there").

    Written by the app UI; this engine only reads it and removes entries
    when new evidence revives a dismissed exposure.
    """

    COLLECTION = "user_state"

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client

    def _doc_ref(self) -> Any:
        return self.firestore.collection(self.COLLECTION).document(DISMISSED_DOCUMENT)

    def get_dismissed_ids(self) -> set[str]:
        """Fetch the dismissed record IDs."""
        try:
            doc = self._doc_ref().get()
        except Exception as e:
            raise StorageError(f"Failed to fetch dismissed exposures: {e}") from e

        if not doc.exists:
            return set()
        return {str(i) for i in (doc.to_dict() or {}).get("ids", [])}

    def remove(self, ids: set[str]) -> None:
        """Remove IDs from the dismissed set (atomic array remove)."""
        if not ids:
            return

        logger.info("Removing %d exposures from dismissed set", len(ids))
        try:
            self._doc_ref().set(
                {
                    "ids": firestore.ArrayRemove(sorted(ids)),
                    "updated_at": datetime.now(timezone.utc),
                },
                merge=True,
            )
        except Exception as e:
            raise StorageError(f"Failed to update dismissed exposures: {e}") from e


class CheckpointStore:
    """Persisted throttle checkpoints, one document per key."""

    COLLECTION = "checkpoints"

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client

    def get(self, key: str = LAST_FETCH_TS) -> int | None:
        """Read a checkpoint timestamp (epoch ms), None if never written."""
        try:
            doc = self.firestore.collection(self.COLLECTION).document(key).get()
        except Exception as e:
            raise StorageError(f"Failed to read checkpoint {key}: {e}") from e

        if not doc.exists:
            return None
        value = (doc.to_dict() or {}).get("timestamp")
        return int(value) if value is not None else None

    def set(self, key: str, timestamp_ms: int) -> None:
        """Write a checkpoint timestamp (epoch ms)."""
        try:
            self.firestore.collection(self.COLLECTION).document(key).set({
                "timestamp": timestamp_ms,
                "updated_at": datetime.now(timezone.utc),
            })
        except Exception as e:
            raise StorageError(f"Failed to write checkpoint {key}: {e}") from e


def _claim_lease(transaction: Any, doc_ref: Any, owner: str, now_ms: int, ttl_ms: int) -> bool:
    """Take the lease unless another owner holds an unexpired one.

    Runs inside a Firestore transaction, so two instances reading a free
    lease cannot both commit it.
    """
    snapshot = doc_ref.get(transaction=transaction)
    if snapshot.exists:
        data = snapshot.to_dict() or {}
        holder = data.get("owner")
        if holder != owner and int(data.get("expires_at", 0)) > now_ms:
            logger.info("Cycle lease held by %s until %s", holder, data.get("expires_at"))
            return False

    transaction.set(doc_ref, {
        "owner": owner,
        "expires_at": now_ms + ttl_ms,
        "updated_at": datetime.now(timezone.utc),
    })
    return True


def _drop_lease(transaction: Any, doc_ref: Any, owner: str) -> bool:
    """Delete the lease if this owner still holds it."""
    snapshot = doc_ref.get(transaction=transaction)
    if not snapshot.exists or (snapshot.to_dict() or {}).get("owner") != owner:
        return False
    transaction.delete(doc_ref)
    return True


class CycleLease:
    """Single-writer lease over the registry and checkpoint.

    Every trigger (HTTP, Pub/Sub, local scheduler) may run on a different
    instance; only the holder of the lease runs a cycle. The lease expires
    on its own so a crashed holder does not block later cycles.
    """

    COLLECTION = "leases"

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client

    def _doc_ref(self) -> Any:
        return self.firestore.collection(self.COLLECTION).document(CYCLE_LEASE_DOCUMENT)

    def acquire(self, owner: str, now_ms: int, ttl_ms: int) -> bool:
        """Try to take the lease.

        Args:
            owner: Unique ID of the caller
            now_ms: Current time (epoch ms)
            ttl_ms: How long the lease stays valid without a release

        Returns:
            True if the caller now holds the lease
        """
        claim = firestore.transactional(_claim_lease)
        try:
            return claim(self.firestore.client.transaction(), self._doc_ref(), owner, now_ms, ttl_ms)
        except Exception as e:
            raise StorageError(f"Failed to acquire cycle lease: {e}") from e

    def release(self, owner: str) -> None:
        """Give the lease back; a lease taken over by someone else is left alone."""
        drop = firestore.transactional(_drop_lease)
        try:
            released = drop(self.firestore.client.transaction(), self._doc_ref(), owner)
        except Exception as e:
            raise StorageError(f"Failed to release cycle lease: {e}") from e
        if not released:
            logger.warning("Cycle lease no longer held by %s", owner)
