"""Geometric and temporal overlap tests - Pure functions.

This module decides whether a location sample and a sick report overlap
in time and in space. All functions are pure with no side effects.
"""

from haversine import Unit, haversine

from exposure_watch.core.config import MatchingConfig
from exposure_watch.core.models import ClusterSample, LocationSample, SickReport


Sample = LocationSample | ClusterSample


def window_overlap_ms(
    a_from: int,
    a_to: int,
    b_from: int,
    b_to: int,
) -> int:
    """Length of the intersection of two time windows.

    Pure function. Disjoint or touching windows give zero or a negative value.
    """
    return min(a_to, b_to) - max(a_from, b_from)


def overlap_window(sample: Sample, report: SickReport) -> tuple[int, int]:
    """Return the (from, to) bounds shared by a sample and a report.

    Pure function.
    """
    return (
        max(sample.start_time, report.from_time_utc),
        min(sample.end_time, report.to_time_utc),
    )


def is_time_overlapping(
    sample: Sample,
    report: SickReport,
    config: MatchingConfig,
) -> bool:
    """Check if a sample and a report overlap for longer than the threshold.

    Pure function. The threshold depends on whether cluster mode is active.

    Args:
        sample: Location or cluster sample
        report: Sick report
        config: Matching configuration

    Returns:
        True if the overlap exceeds the configured minimum duration
    """
    overlap = window_overlap_ms(
        sample.start_time,
        sample.end_time,
        report.from_time_utc,
        report.to_time_utc,
    )
    return overlap > 0 and overlap > config.min_overlap_ms


def buffer_radius(
    sample: Sample,
    report: SickReport,
    config: MatchingConfig,
) -> float:
    """Radius within which a sample counts as exposed to a report.

    Pure function. Cluster radii only count in cluster mode.
    """
    radius = report.radius or config.meter_radius
    if config.intersect_with_clusters:
        radius += sample.radius
    return radius


def is_space_overlapping(
    sample: Sample,
    report: SickReport,
    config: MatchingConfig,
) -> bool:
    """Check if a sample lies within a report's buffered radius.

    Pure function.

    Args:
        sample: Location or cluster sample
        report: Sick report
        config: Matching configuration (default radius, unit, cluster mode)

    Returns:
        True if the great-circle distance is within the buffer radius
    """
    distance = haversine(
        (sample.latitude, sample.longitude),
        (report.latitude, report.longitude),
        unit=Unit(config.buffer_units),
    )
    return distance <= buffer_radius(sample, report, config)


def is_overlapping(
    sample: Sample,
    report: SickReport,
    config: MatchingConfig,
) -> bool:
    """Time and space overlap. Time is checked first and short-circuits."""
    return (
        is_time_overlapping(sample, report, config)
        and is_space_overlapping(sample, report, config)
    )
