"""Functional Core - Pure functions with no side effects.

This module contains all business logic as pure functions:
- Feed, history and encounter parsing
- Time/space overlap tests
- Geohash bucketing and geo matching
- Check throttling
- Merge/dedup decisions
- Notification formatting

All functions here are deterministic and have no I/O.
"""

from exposure_watch.core.models import (
    ClusterSample,
    GeoMatch,
    IntersectionRecord,
    LocationSample,
    ProximityEncounter,
    SickReport,
    parse_encounters,
    parse_sick_feed,
)
from exposure_watch.core.geometry import is_space_overlapping, is_time_overlapping
from exposure_watch.core.geo_matcher import find_intersections
from exposure_watch.core.throttle import ThrottleResult, check_throttle
from exposure_watch.core.merge import EvidenceState, MergeDecision, decide_geo, decide_proximity

__all__ = [
    # Models
    "ClusterSample",
    "GeoMatch",
    "IntersectionRecord",
    "LocationSample",
    "ProximityEncounter",
    "SickReport",
    "parse_encounters",
    "parse_sick_feed",
    # Geometry
    "is_space_overlapping",
    "is_time_overlapping",
    # Matching
    "find_intersections",
    # Throttle
    "ThrottleResult",
    "check_throttle",
    # Merge
    "EvidenceState",
    "MergeDecision",
    "decide_geo",
    "decide_proximity",
]
