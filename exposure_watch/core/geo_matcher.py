"""Geo intersection of location history with the sick-report feed - Pure functions.

Two strategies produce the same match set:
- full scan: every report against every sample
- geohash buckets: every report against samples in its 9-cell neighbourhood

Bucketed matching is used when the feed's first report declares a
geohash filter. All functions are pure with no side effects.
"""

from collections.abc import Callable

from exposure_watch.core.config import MatchingConfig
from exposure_watch.core.geohash_index import (
    build_geohash_index,
    candidate_samples,
    clean_geohash,
)
from exposure_watch.core.geometry import is_overlapping, overlap_window
from exposure_watch.core.models import ClusterSample, GeoMatch, LocationSample, SickReport


Sample = LocationSample | ClusterSample


def most_recent_first(samples: list[Sample]) -> list[Sample]:
    """Reverse store order so the newest samples are visited first."""
    return list(reversed(samples))


def make_match(sample: Sample, report: SickReport) -> GeoMatch:
    """Annotate a report with the window it shares with a sample.

    Pure function - the report itself is left untouched.
    """
    from_time, to_time = overlap_window(sample, report)
    return GeoMatch(
        report=report,
        sample=sample,
        from_time_utc=from_time,
        to_time_utc=to_time,
    )


def _keep_most_recent(
    matches: dict[str, GeoMatch],
    candidate: GeoMatch,
) -> None:
    current = matches.get(candidate.source_id)
    if current is None or candidate.sample.start_time > current.sample.start_time:
        matches[candidate.source_id] = candidate


def sort_matches(matches: list[GeoMatch]) -> list[GeoMatch]:
    """Newest overlap window first; source ID breaks ties.

    Pure function. Downstream merging and notification rely on this order.
    """
    by_source = sorted(matches, key=lambda m: m.source_id)
    return sorted(by_source, key=lambda m: m.from_time_utc, reverse=True)


def match_reports(
    samples: list[Sample],
    reports: list[SickReport],
    config: MatchingConfig,
    candidates_for: Callable[[SickReport], list[Sample]] | None = None,
) -> list[GeoMatch]:
    """Match reports against samples, one match per source ID.

    Pure function. When several samples match the same report, the match
    from the most recent sample wins.

    Args:
        samples: Samples in most-recent-first order
        reports: Sick reports
        config: Matching configuration
        candidates_for: Optional callable returning the samples to test for a
            report (defaults to all samples)

    Returns:
        Matches sorted newest window first
    """
    matches: dict[str, GeoMatch] = {}

    for report in reports:
        pool = candidates_for(report) if candidates_for else samples
        for sample in pool:
            if is_overlapping(sample, report, config):
                _keep_most_recent(matches, make_match(sample, report))

    return sort_matches(list(matches.values()))


def find_intersections_full_scan(
    samples: list[Sample],
    reports: list[SickReport],
    config: MatchingConfig,
) -> list[GeoMatch]:
    """Test every report against every sample.

    Pure function.

    Args:
        samples: Samples in store order
        reports: Sick reports
        config: Matching configuration

    Returns:
        Deduplicated matches, newest window first (empty if no history)
    """
    if not samples:
        return []

    return match_reports(most_recent_first(samples), reports, config)


def find_intersections_by_geohash(
    samples: list[Sample],
    reports: list[SickReport],
    config: MatchingConfig,
    prefix_length: int,
) -> list[GeoMatch]:
    """Test each report only against samples in its geohash neighbourhood.

    Pure function.

    Args:
        samples: Samples in store order
        reports: Sick reports
        config: Matching configuration
        prefix_length: Bucket prefix length (the feed's filter length)

    Returns:
        Deduplicated matches, newest window first (empty if no history)
    """
    if not samples:
        return []

    index = build_geohash_index(most_recent_first(samples), prefix_length)

    return match_reports(
        samples,
        reports,
        config,
        candidates_for=lambda report: candidate_samples(index, report, prefix_length),
    )


def find_intersections(
    samples: list[Sample],
    reports: list[SickReport],
    config: MatchingConfig,
) -> list[GeoMatch]:
    """Pick the matching strategy from the feed and run it.

    Pure function.

    Args:
        samples: Location or cluster samples in store order
        reports: Sick reports in feed order
        config: Matching configuration

    Returns:
        Matches sorted newest window first
    """
    if not reports:
        return []

    geohash_filter = reports[0].geohash_filter
    if geohash_filter:
        return find_intersections_by_geohash(
            samples, reports, config, prefix_length=len(clean_geohash(geohash_filter))
        )

    return find_intersections_full_scan(samples, reports, config)
