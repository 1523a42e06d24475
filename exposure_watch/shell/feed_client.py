"""Sick-report Feed Client - Imperative Shell.

This module downloads the published sick-report feed and verifies its
signature before anything in it is trusted.
All I/O is contained here; parsing and matching are in the core module.
"""

import hashlib
import hmac
import logging
from typing import Any

import requests

from exposure_watch.core.errors import FeedVerificationError


logger = logging.getLogger(__name__)


# Header carrying the hex HMAC-SHA256 of the raw response body
SIGNATURE_HEADER = "X-Feed-Signature"

# Default timeout for feed requests (seconds)
DEFAULT_TIMEOUT = 30


def compute_signature(body: bytes, signing_key: str) -> str:
    """Hex HMAC-SHA256 of a feed body."""
    return hmac.new(signing_key.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, signing_key: str) -> bool:
    """Constant-time comparison of a feed signature."""
    if not signature or not signing_key:
        return False
    expected = compute_signature(body, signing_key)
    return hmac.compare_digest(expected, signature.strip().lower())


class FeedClient:
    """Client for fetching the signed sick-report feed.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(
        self,
        signing_key: str,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize feed client.

        Args:
            signing_key: Shared key the publisher signs the feed with
            timeout: Request timeout in seconds
        """
        self.signing_key = signing_key
        self.timeout = timeout

    def fetch_and_verify(self, url: str) -> dict[str, Any]:
        """Download the feed and verify its signature.

        This method performs HTTP I/O. No part of the feed is returned
        unless the whole body verifies.

        Args:
            url: Feed URL

        Returns:
            Feed envelope (dict with a "features" list)

        Raises:
            FeedVerificationError: If the download fails, the signature does
                not validate, or the body is not a JSON object
        """
        logger.info("Fetching sick-report feed from %s", url)

        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FeedVerificationError(f"Failed to download feed: {e}") from e

        if not verify_signature(
            response.content,
            response.headers.get(SIGNATURE_HEADER),
            self.signing_key,
        ):
            raise FeedVerificationError("Feed signature did not validate")

        try:
            data = response.json()
        except ValueError as e:
            raise FeedVerificationError(f"Feed body is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise FeedVerificationError("Feed body is not a JSON object")

        logger.info(
            "Fetched %d sick reports from feed",
            len(data.get("features", [])),
        )

        return data
