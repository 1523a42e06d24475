"""Geohash bucketing of location history - Pure functions.

Buckets the user's samples by truncated geohash prefix so each sick report
only has to be tested against samples in its own cell and the 8 cells
around it. All functions are pure with no side effects.
"""

import pygeohash as pgh

from exposure_watch.core.models import ClusterSample, LocationSample, SickReport


Sample = LocationSample | ClusterSample

GeohashIndex = dict[str, list[Sample]]

# Location exports (e.g. Google Timeline) sometimes quote the geohash
STRAY_QUOTES = "'\""


def clean_geohash(geohash: str) -> str:
    """Remove stray quote characters from an imported geohash."""
    return geohash.translate({ord(c): None for c in STRAY_QUOTES})


def geohash_prefix(geohash: str, length: int) -> str:
    """Clean a geohash and truncate it to the bucket length."""
    return clean_geohash(geohash)[:length]


def build_geohash_index(samples: list[Sample], prefix_length: int) -> GeohashIndex:
    """Group samples by their truncated geohash.

    Pure function. Sample order inside each bucket follows the input order.

    Args:
        samples: Location or cluster samples
        prefix_length: Length of the bucket prefix

    Returns:
        Mapping of geohash prefix to the samples sharing it
    """
    index: GeohashIndex = {}
    for sample in samples:
        prefix = geohash_prefix(sample.geohash, prefix_length)
        index.setdefault(prefix, []).append(sample)
    return index


def _wrap_longitude(longitude: float) -> float:
    return (longitude + 180.0) % 360.0 - 180.0


def geohash_neighbors(prefix: str) -> list[str]:
    """Return the up to 8 cells surrounding a geohash cell.

    Pure function. Cells beyond the poles are dropped; longitude wraps
    across the antimeridian.
    """
    latitude, longitude, lat_err, lon_err = pgh.decode_exactly(prefix)
    lat_step = lat_err * 2
    lon_step = lon_err * 2

    neighbors: list[str] = []
    for d_lat in (1, 0, -1):
        for d_lon in (-1, 0, 1):
            if d_lat == 0 and d_lon == 0:
                continue
            lat = latitude + d_lat * lat_step
            if not -90.0 < lat < 90.0:
                continue
            lon = _wrap_longitude(longitude + d_lon * lon_step)
            cell = pgh.encode(lat, lon, precision=len(prefix))
            if cell != prefix and cell not in neighbors:
                neighbors.append(cell)
    return neighbors


def report_prefix(report: SickReport, prefix_length: int) -> str:
    """The bucket a report belongs to.

    Uses the feed's own filter when present, otherwise encodes the report
    position at the feed's prefix length.
    """
    if report.geohash_filter:
        return geohash_prefix(report.geohash_filter, prefix_length)
    return pgh.encode(report.latitude, report.longitude, precision=prefix_length)


def candidate_buckets(report: SickReport, prefix_length: int) -> list[str]:
    """A report's own cell followed by its neighbors."""
    prefix = report_prefix(report, prefix_length)
    return [prefix, *geohash_neighbors(prefix)]


def candidate_samples(
    index: GeohashIndex,
    report: SickReport,
    prefix_length: int,
) -> list[Sample]:
    """All indexed samples in the report's 9-cell neighbourhood.

    Pure function.
    """
    candidates: list[Sample] = []
    for bucket in candidate_buckets(report, prefix_length):
        candidates.extend(index.get(bucket, []))
    return candidates
