"""Tests for the sick-report feed client.

Uses the `responses` library to mock HTTP requests.
"""

import json

import pytest
import requests
import responses

from exposure_watch.core.errors import FeedVerificationError
from exposure_watch.shell.feed_client import (
    SIGNATURE_HEADER,
    FeedClient,
    compute_signature,
    verify_signature,
)


FEED_URL = "https://feed.example.com/sick.json"
SIGNING_KEY = "test-signing-key"

FEED = {
    "type": "FeatureCollection",
    "features": [
        {
            "properties": {"Key_Field": "s1", "fromTime_utc": 1000, "toTime_utc": 2000},
            "geometry": {"coordinates": [34.78, 32.07]},
        }
    ],
}


def signed_body(data, key=SIGNING_KEY):
    body = json.dumps(data).encode("utf-8")
    return body, compute_signature(body, key)


class TestVerifySignature:
    """Tests for verify_signature function."""

    def test_valid_signature(self):
        body, signature = signed_body(FEED)

        assert verify_signature(body, signature, SIGNING_KEY) is True

    def test_signature_case_and_whitespace_tolerated(self):
        body, signature = signed_body(FEED)

        assert verify_signature(body, f" {signature.upper()} ", SIGNING_KEY) is True

    def test_wrong_key(self):
        body, signature = signed_body(FEED, key="other-key")

        assert verify_signature(body, signature, SIGNING_KEY) is False

    def test_missing_signature_or_key(self):
        body, signature = signed_body(FEED)

        assert verify_signature(body, None, SIGNING_KEY) is False
        assert verify_signature(body, signature, "") is False


class TestFetchAndVerify:
    """Tests for FeedClient.fetch_and_verify()."""

    @responses.activate
    def test_returns_verified_feed(self):
        """A correctly signed feed is parsed and returned."""
        body, signature = signed_body(FEED)
        responses.add(
            responses.GET,
            FEED_URL,
            body=body,
            headers={SIGNATURE_HEADER: signature},
            content_type="application/json",
        )

        data = FeedClient(SIGNING_KEY).fetch_and_verify(FEED_URL)

        assert data == FEED

    @responses.activate
    def test_tampered_body_is_rejected(self):
        """Nothing from the feed is returned when the signature fails."""
        _, signature = signed_body(FEED)
        tampered = dict(FEED, features=[])
        responses.add(
            responses.GET,
            FEED_URL,
            body=json.dumps(tampered),
            headers={SIGNATURE_HEADER: signature},
        )

        with pytest.raises(FeedVerificationError, match="signature"):
            FeedClient(SIGNING_KEY).fetch_and_verify(FEED_URL)

    @responses.activate
    def test_missing_signature_header(self):
        responses.add(responses.GET, FEED_URL, json=FEED)

        with pytest.raises(FeedVerificationError):
            FeedClient(SIGNING_KEY).fetch_and_verify(FEED_URL)

    @responses.activate
    def test_http_error(self):
        responses.add(responses.GET, FEED_URL, status=503)

        with pytest.raises(FeedVerificationError, match="download"):
            FeedClient(SIGNING_KEY).fetch_and_verify(FEED_URL)

    @responses.activate
    def test_connection_error(self):
        responses.add(
            responses.GET,
            FEED_URL,
            body=requests.ConnectionError("Connection refused"),
        )

        with pytest.raises(FeedVerificationError):
            FeedClient(SIGNING_KEY).fetch_and_verify(FEED_URL)

    @responses.activate
    def test_signed_but_not_json(self):
        body = b"not json"
        responses.add(
            responses.GET,
            FEED_URL,
            body=body,
            headers={SIGNATURE_HEADER: compute_signature(body, SIGNING_KEY)},
        )

        with pytest.raises(FeedVerificationError, match="JSON"):
            FeedClient(SIGNING_KEY).fetch_and_verify(FEED_URL)

    @responses.activate
    def test_signed_json_array_rejected(self):
        body, signature = signed_body([1, 2, 3])
        responses.add(
            responses.GET,
            FEED_URL,
            body=body,
            headers={SIGNATURE_HEADER: signature},
        )

        with pytest.raises(FeedVerificationError, match="object"):
            FeedClient(SIGNING_KEY).fetch_and_verify(FEED_URL)
