"""Tests for geo intersection of location history with the sick-report feed."""

import pygeohash as pgh
import pytest

from exposure_watch.core.config import MatchingConfig
from exposure_watch.core.geo_matcher import (
    find_intersections,
    find_intersections_by_geohash,
    find_intersections_full_scan,
    make_match,
    most_recent_first,
    sort_matches,
)
from exposure_watch.core.models import GeoMatch, LocationSample, SickReport


def sample_at(lat, lon, start, end, precision=12):
    return LocationSample(
        latitude=lat,
        longitude=lon,
        start_time=start,
        end_time=end,
        geohash=pgh.encode(lat, lon, precision=precision),
    )


def report(source_id, start, end, lat=32.0, lon=34.0, radius=50.0, geohash_filter=None):
    return SickReport(
        source_id=source_id,
        from_time_utc=start,
        to_time_utc=end,
        latitude=lat,
        longitude=lon,
        radius=radius,
        geohash_filter=geohash_filter,
    )


@pytest.fixture
def config():
    return MatchingConfig(intersect_milliseconds=0)


class TestMakeMatch:
    """Tests for make_match function."""

    def test_annotates_overlap_window(self):
        """Sample [1000, 5000] vs report [2000, 6000] overlaps on [2000, 5000]."""
        sample = sample_at(32.0, 34.0, 1000, 5000)
        sick = report("r1", 2000, 6000)

        match = make_match(sample, sick)

        assert (match.from_time_utc, match.to_time_utc) == (2000, 5000)
        assert match.source_id == "r1"

    def test_report_is_not_mutated(self):
        sick = report("r1", 2000, 6000)

        make_match(sample_at(32.0, 34.0, 1000, 5000), sick)

        assert (sick.from_time_utc, sick.to_time_utc) == (2000, 6000)


class TestFullScan:
    """Tests for find_intersections_full_scan function."""

    def test_single_match(self, config):
        samples = [sample_at(32.0, 34.0, 1000, 5000)]

        matches = find_intersections_full_scan(samples, [report("r1", 2000, 6000)], config)

        assert len(matches) == 1
        assert (matches[0].from_time_utc, matches[0].to_time_utc) == (2000, 5000)

    def test_empty_history_returns_empty(self, config):
        assert find_intersections_full_scan([], [report("r1", 0, 10)], config) == []

    def test_empty_feed_returns_empty(self, config):
        assert find_intersections_full_scan([sample_at(32.0, 34.0, 0, 10)], [], config) == []

    def test_one_match_per_source_most_recent_sample_wins(self, config):
        """Several samples overlap one report: the newest sample's window is kept."""
        old = sample_at(32.0, 34.0, 1000, 3000)
        new = sample_at(32.0, 34.0, 4000, 5000)

        matches = find_intersections_full_scan([old, new], [report("r1", 2000, 6000)], config)

        assert len(matches) == 1
        assert matches[0].sample == new
        assert (matches[0].from_time_utc, matches[0].to_time_utc) == (4000, 5000)

    def test_sorted_newest_window_first(self, config):
        samples = [sample_at(32.0, 34.0, 0, 100_000)]
        reports = [
            report("b", 1000, 2000),
            report("c", 5000, 6000),
            report("a", 1000, 3000),
        ]

        matches = find_intersections_full_scan(samples, reports, config)

        assert [m.source_id for m in matches] == ["c", "a", "b"]

    def test_non_overlapping_reports_are_ignored(self, config):
        samples = [sample_at(32.0, 34.0, 1000, 2000)]
        reports = [report("later", 3000, 4000), report("far", 1000, 2000, lat=33.0)]

        assert find_intersections_full_scan(samples, reports, config) == []


class TestSortMatches:
    """Tests for sort_matches function."""

    def test_ties_broken_by_source_id(self):
        sample = sample_at(32.0, 34.0, 0, 10)
        matches = [
            GeoMatch(report("z", 0, 10), sample, 0, 10),
            GeoMatch(report("a", 0, 10), sample, 0, 10),
        ]

        assert [m.source_id for m in sort_matches(matches)] == ["a", "z"]


class TestGeohashMatching:
    """Tests for bucketed matching and its equivalence with the full scan."""

    @pytest.fixture
    def edge_samples(self):
        """Samples straddling the edges of the report's precision-6 cell."""
        cell = pgh.encode(32.07, 34.78, precision=6)
        lat, lon, lat_err, lon_err = pgh.decode_exactly(cell)
        offsets = [
            (0.0, 0.0),
            (1.02, 0.0),
            (-1.02, 0.0),
            (0.0, 1.02),
            (0.0, -1.02),
            (0.98, 0.98),
            (-1.5, 0.0),
        ]
        samples = []
        for i, (d_lat, d_lon) in enumerate(offsets):
            samples.append(sample_at(
                lat + d_lat * lat_err,
                lon + d_lon * lon_err,
                start=1000 * i,
                end=1000 * i + 5000,
            ))
        samples.append(sample_at(33.0, 35.0, 0, 100_000))
        return cell, (lat, lon), samples

    def test_same_matches_as_full_scan(self, config, edge_samples):
        cell, (lat, lon), samples = edge_samples
        reports = [
            report("center", 0, 20_000, lat=lat, lon=lon, radius=500, geohash_filter=cell),
            report("no-filter", 2000, 9000, lat=lat, lon=lon, radius=300),
            report("elsewhere", 0, 20_000, lat=33.0, lon=35.0, radius=10),
            report("late", 50_000, 60_000, lat=lat, lon=lon, radius=500),
        ]

        full = find_intersections_full_scan(samples, reports, config)
        bucketed = find_intersections_by_geohash(samples, reports, config, prefix_length=6)

        assert bucketed == full
        assert {m.source_id for m in full} == {"center", "no-filter", "elsewhere"}

    def test_dispatch_uses_first_report_filter(self, config, edge_samples):
        cell, (lat, lon), samples = edge_samples
        reports = [report("center", 0, 20_000, lat=lat, lon=lon, radius=500, geohash_filter=cell)]

        assert find_intersections(samples, reports, config) == \
            find_intersections_by_geohash(samples, reports, config, prefix_length=6)

    def test_quoted_filter_matches_plain_filter(self, config, edge_samples):
        """Quotes around the feed's filter do not widen the prefix."""
        cell, (lat, lon), samples = edge_samples
        plain = [report("center", 0, 20_000, lat=lat, lon=lon, radius=500, geohash_filter=cell)]
        quoted = [report("center", 0, 20_000, lat=lat, lon=lon, radius=500,
                         geohash_filter=f"'{cell}'")]

        def windows(matches):
            return [(m.source_id, m.sample, m.from_time_utc, m.to_time_utc) for m in matches]

        matches = find_intersections(samples, quoted, config)

        assert matches
        assert windows(matches) == windows(find_intersections(samples, plain, config))

    def test_dispatch_full_scan_without_filter(self, config):
        samples = [sample_at(32.0, 34.0, 1000, 5000, precision=1)]
        reports = [report("r1", 2000, 6000)]

        matches = find_intersections(samples, reports, config)

        assert [m.source_id for m in matches] == ["r1"]

    def test_empty_history_returns_empty(self, config):
        reports = [report("r1", 0, 10, geohash_filter="sv8wrq")]

        assert find_intersections([], reports, config) == []
        assert find_intersections_by_geohash([], reports, config, prefix_length=6) == []


def test_most_recent_first_reverses_store_order():
    a = sample_at(0, 0, 0, 1)
    b = sample_at(0, 0, 2, 3)

    assert most_recent_first([a, b]) == [b, a]
