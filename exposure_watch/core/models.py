"""Exposure data models and parsing - Pure functions.

This module turns the raw sick-report feed, location history rows and
proximity log rows into typed, immutable objects.
All functions are pure with no side effects.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from exposure_watch.core.errors import MalformedEncounterError


# One hour in milliseconds, the width of a proximity bucket
HOUR_MS = 3_600_000

# Prefix used for record IDs of proximity-created exposures
PROXIMITY_RECORD_PREFIX = "proximity-"


@dataclass(frozen=True)
class LocationSample:
    """A single point observation from the user's location history.

    Attributes:
        latitude: Sample latitude
        longitude: Sample longitude
        start_time: Start of the dwell (epoch ms)
        end_time: End of the dwell (epoch ms)
        geohash: Precomputed geohash of the position
    """
    latitude: float
    longitude: float
    start_time: int
    end_time: int
    geohash: str = ""

    @property
    def radius(self) -> float:
        """Raw samples have no dwell area."""
        return 0.0


@dataclass(frozen=True)
class ClusterSample:
    """An aggregated dwell area from the clustered location history.

    Attributes:
        latitude: Cluster centre latitude
        longitude: Cluster centre longitude
        start_time: Start of the dwell (epoch ms)
        end_time: End of the dwell (epoch ms)
        geohash: Precomputed geohash of the centre
        radius: Dwell area radius in meters
    """
    latitude: float
    longitude: float
    start_time: int
    end_time: int
    geohash: str = ""
    radius: float = 0.0


@dataclass(frozen=True)
class SickReport:
    """One element of the published sick-report feed.

    Read-only inside the engine: the overlap window found by the matcher
    is carried on GeoMatch instead of being written back here.

    Attributes:
        source_id: Unique feed key
        from_time_utc: Start of the exposure window (epoch ms)
        to_time_utc: End of the exposure window (epoch ms)
        latitude: Report latitude
        longitude: Report longitude
        radius: Exposure radius in meters (None uses the configured default)
        geohash_filter: Geohash prefix for bucketed matching (optional)
    """
    source_id: str
    from_time_utc: int
    to_time_utc: int
    latitude: float
    longitude: float
    radius: float | None = None
    geohash_filter: str | None = None


@dataclass(frozen=True)
class GeoMatch:
    """A sick report annotated with the window it overlaps the user's history.

    Attributes:
        report: The untouched feed report
        sample: The location sample that matched
        from_time_utc: Start of the overlap window (epoch ms)
        to_time_utc: End of the overlap window (epoch ms)
    """
    report: SickReport
    sample: LocationSample | ClusterSample
    from_time_utc: int
    to_time_utc: int

    @property
    def source_id(self) -> str:
        return self.report.source_id


@dataclass(frozen=True)
class ProximityEncounter:
    """A Bluetooth contact interval, normalised to epoch milliseconds."""
    start_contact_timestamp: int
    end_contact_timestamp: int


@dataclass(frozen=True)
class IntersectionRecord:
    """The canonical persisted record of a detected exposure.

    Attributes:
        record_id: Stable key (source_id for geo-created, proximity-<ts> otherwise)
        source_id: Feed key when geo evidence is attached
        from_time_utc: Start of the exposure window (epoch ms)
        to_time_utc: End of the exposure window (epoch ms)
        proximity_timestamp: Contact start (epoch ms) when proximity evidence is attached
        was_there: Whether the user is considered present at the exposure
    """
    record_id: str
    source_id: str | None
    from_time_utc: int
    to_time_utc: int
    proximity_timestamp: int | None = None
    was_there: bool = True

    @property
    def is_proximity_only(self) -> bool:
        return self.source_id is None and self.proximity_timestamp is not None

    @property
    def is_geo_only(self) -> bool:
        return self.source_id is not None and self.proximity_timestamp is None


def hour_bucket(timestamp_ms: int) -> tuple[int, int]:
    """Return the UTC hour [start, end) containing a timestamp.

    Pure function.
    """
    start = timestamp_ms - timestamp_ms % HOUR_MS
    return start, start + HOUR_MS


def proximity_record_id(timestamp_ms: int) -> str:
    """Build the record ID for a proximity-created exposure."""
    return f"{PROXIMITY_RECORD_PREFIX}{timestamp_ms}"


def parse_sick_report(
    feature: dict[str, Any],
    lat_index: int = 1,
    lon_index: int = 0,
) -> SickReport | None:
    """Parse a single feed feature into a SickReport.

    Pure function: takes raw dict, returns typed SickReport or None if invalid.

    Args:
        feature: Feature dict with "properties" and "geometry"
        lat_index: Index of latitude in geometry.coordinates
        lon_index: Index of longitude in geometry.coordinates

    Returns:
        SickReport or None if parsing fails
    """
    try:
        props = feature.get("properties") or {}
        coords = (feature.get("geometry") or {}).get("coordinates") or []

        source_id = props.get("Key_Field", props.get("OBJECTID"))
        if source_id is None:
            return None

        radius = props.get("radius")
        geohash_filter = props.get("geohashFilter") or None

        return SickReport(
            source_id=str(source_id),
            from_time_utc=int(props["fromTime_utc"]),
            to_time_utc=int(props["toTime_utc"]),
            latitude=float(coords[lat_index]),
            longitude=float(coords[lon_index]),
            radius=float(radius) if radius else None,
            geohash_filter=str(geohash_filter) if geohash_filter else None,
        )
    except (KeyError, IndexError, TypeError, ValueError):
        return None


def parse_sick_feed(
    feed: dict[str, Any],
    lat_index: int = 1,
    lon_index: int = 0,
) -> list[SickReport]:
    """Parse a sick-report feed envelope into a list of reports.

    Pure function: invalid features are dropped, feed order is preserved
    (the first report decides whether bucketed matching is used).

    Args:
        feed: Feed envelope with a "features" list
        lat_index: Index of latitude in geometry.coordinates
        lon_index: Index of longitude in geometry.coordinates

    Returns:
        List of valid SickReport objects
    """
    reports = []
    for feature in feed.get("features", []):
        report = parse_sick_report(feature, lat_index, lon_index)
        if report is not None:
            reports.append(report)
    return reports


def _row_value(row: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in row and row[key] is not None:
            return row[key]
    raise KeyError(keys[0])


def parse_location_sample(row: dict[str, Any]) -> LocationSample | None:
    """Parse a location history row. Accepts short (lat/long) and long keys."""
    try:
        return LocationSample(
            latitude=float(_row_value(row, "lat", "latitude")),
            longitude=float(_row_value(row, "long", "longitude")),
            start_time=int(_row_value(row, "startTime", "start_time")),
            end_time=int(_row_value(row, "endTime", "end_time")),
            geohash=str(row.get("geoHash", row.get("geohash", "")) or ""),
        )
    except (KeyError, TypeError, ValueError):
        return None


def parse_cluster_sample(row: dict[str, Any]) -> ClusterSample | None:
    """Parse a clustered location history row."""
    try:
        return ClusterSample(
            latitude=float(_row_value(row, "lat", "latitude")),
            longitude=float(_row_value(row, "long", "longitude")),
            start_time=int(_row_value(row, "startTime", "start_time")),
            end_time=int(_row_value(row, "endTime", "end_time")),
            geohash=str(row.get("geoHash", row.get("geohash", "")) or ""),
            radius=float(row.get("radius") or 0.0),
        )
    except (KeyError, TypeError, ValueError):
        return None


def _seconds_to_ms(value: Any, field_name: str, raw: object) -> int:
    # Fractional seconds are truncated; loggers may store floats
    try:
        seconds = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError) as e:
        raise MalformedEncounterError(
            f"Invalid {field_name}: {value!r}",
            raw=raw,
        ) from e

    if not seconds.is_finite():
        raise MalformedEncounterError(
            f"Invalid {field_name}: {value!r}",
            raw=raw,
        )

    return int(seconds) * 1000


def parse_encounter(raw: dict[str, Any]) -> ProximityEncounter:
    """Normalise a raw proximity-log entry from seconds to milliseconds.

    Pure function.

    Args:
        raw: Entry with startContactTimestamp/endContactTimestamp in seconds

    Returns:
        ProximityEncounter in epoch milliseconds

    Raises:
        MalformedEncounterError: If either timestamp is missing, not numeric or not finite
    """
    if not isinstance(raw, dict):
        raise MalformedEncounterError(f"Encounter is not a mapping: {raw!r}", raw=raw)

    if "startContactTimestamp" not in raw or "endContactTimestamp" not in raw:
        raise MalformedEncounterError("Encounter missing contact timestamps", raw=raw)

    return ProximityEncounter(
        start_contact_timestamp=_seconds_to_ms(
            raw["startContactTimestamp"], "startContactTimestamp", raw
        ),
        end_contact_timestamp=_seconds_to_ms(
            raw["endContactTimestamp"], "endContactTimestamp", raw
        ),
    )


def parse_encounters(
    raw_encounters: list[dict[str, Any]],
) -> tuple[list[ProximityEncounter], list[MalformedEncounterError]]:
    """Normalise a batch of proximity-log entries.

    Pure function: a malformed entry is collected, not raised, so the rest
    of the batch still gets processed.

    Returns:
        Tuple of (valid encounters, errors for rejected entries)
    """
    encounters: list[ProximityEncounter] = []
    rejected: list[MalformedEncounterError] = []

    for raw in raw_encounters:
        try:
            encounters.append(parse_encounter(raw))
        except MalformedEncounterError as e:
            rejected.append(e)

    return encounters, rejected
