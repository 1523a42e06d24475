"""Location History and Proximity Log Clients - Imperative Shell.

Read-only access to what the device has recorded: raw location samples,
clustered dwell areas and Bluetooth encounters. These collections are
written by the tracking subsystems; this engine never modifies them.
"""

import logging
from typing import Any

from exposure_watch.core.errors import StorageError
from exposure_watch.core.models import (
    ClusterSample,
    LocationSample,
    parse_cluster_sample,
    parse_location_sample,
)
from exposure_watch.shell.firestore_client import FirestoreClient


logger = logging.getLogger(__name__)


class HistoryStore:
    """The user's location history.

    Store order is not guaranteed; the matcher handles ordering.
    """

    SAMPLES_COLLECTION = "locations"
    CLUSTERS_COLLECTION = "clusters"

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client

    def _rows(self, collection: str) -> list[dict[str, Any]]:
        try:
            return [doc.to_dict() or {} for doc in self.firestore.collection(collection).stream()]
        except Exception as e:
            raise StorageError(f"Failed to read {collection}: {e}") from e

    def list_samples(self) -> list[LocationSample]:
        """All raw location samples. Unparseable rows are skipped."""
        rows = self._rows(self.SAMPLES_COLLECTION)
        samples = [s for s in (parse_location_sample(r) for r in rows) if s is not None]
        if len(samples) < len(rows):
            logger.warning("Skipped %d unparseable location samples", len(rows) - len(samples))
        logger.info("Loaded %d location samples", len(samples))
        return samples

    def list_clusters(self) -> list[ClusterSample]:
        """All clustered dwell areas. Unparseable rows are skipped."""
        rows = self._rows(self.CLUSTERS_COLLECTION)
        clusters = [c for c in (parse_cluster_sample(r) for r in rows) if c is not None]
        if len(clusters) < len(rows):
            logger.warning("Skipped %d unparseable clusters", len(rows) - len(clusters))
        logger.info("Loaded %d location clusters", len(clusters))
        return clusters


class ProximityLogClient:
    """Encounters logged by the Bluetooth proximity subsystem.

    Entries are returned raw (timestamps in seconds); normalisation happens
    in the core so a malformed entry can be isolated.
    """

    COLLECTION = "encounters"

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client

    def collect_recent_encounters(self) -> list[dict[str, Any]]:
        """Fetch the encounters matched against infected devices."""
        try:
            docs = list(self.firestore.collection(self.COLLECTION).stream())
        except Exception as e:
            raise StorageError(f"Failed to read proximity encounters: {e}") from e

        encounters = [doc.to_dict() or {} for doc in docs]
        logger.info("Collected %d proximity encounters", len(encounters))
        return encounters
