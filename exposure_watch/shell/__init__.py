"""Imperative Shell - I/O and side effects.

This module contains all code that interacts with external systems:
- Sick-report feed client (HTTP + signature verification)
- Notification webhook client (HTTP)
- Firestore stores (registry, dismissed set, checkpoints, history)
- Configuration loading (environment/files)

Keep this layer thin and simple. All business logic should be in core.
"""

from exposure_watch.shell.feed_client import FeedClient
from exposure_watch.shell.notification_client import NotificationClient
from exposure_watch.shell.firestore_client import (
    CheckpointStore,
    DismissedStore,
    FirestoreClient,
    IntersectionStore,
)
from exposure_watch.shell.history_client import HistoryStore, ProximityLogClient
from exposure_watch.shell.config_loader import load_config, Config

__all__ = [
    "FeedClient",
    "NotificationClient",
    "CheckpointStore",
    "DismissedStore",
    "FirestoreClient",
    "IntersectionStore",
    "HistoryStore",
    "ProximityLogClient",
    "load_config",
    "Config",
]
