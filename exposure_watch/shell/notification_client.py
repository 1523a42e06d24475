"""Notification Webhook Client - Imperative Shell.

This module delivers exposure notifications to the device push gateway
over an HTTP webhook. All I/O is contained here; notification content is
built in the core module.
"""

import logging
from dataclasses import dataclass

import requests


logger = logging.getLogger(__name__)


# Default timeout for webhook requests (seconds)
DEFAULT_TIMEOUT = 10


@dataclass
class NotificationResponse:
    """Response from the notification webhook.

    Attributes:
        success: Whether the notification was accepted
        status_code: HTTP status code
        error: Error message if failed
    """
    success: bool
    status_code: int
    error: str | None = None


class NotificationClient:
    """Client for raising a local notification via webhook.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(self, webhook_url: str, timeout: int = DEFAULT_TIMEOUT) -> None:
        """Initialize notification client.

        Args:
            webhook_url: Push gateway endpoint
            timeout: Request timeout in seconds
        """
        self.webhook_url = webhook_url
        self.timeout = timeout

    def notify(
        self,
        title: str,
        body: str,
        duration: int,
        unit: str,
    ) -> NotificationResponse:
        """Raise a notification.

        This method performs HTTP I/O and never raises.

        Args:
            title: Notification title
            body: Notification body
            duration: How long the notification stays up
            unit: Unit of duration (e.g. 'ms')

        Returns:
            NotificationResponse indicating success or failure
        """
        if not self.webhook_url:
            logger.warning("Notification webhook not configured")
            return NotificationResponse(
                success=False,
                status_code=0,
                error="Notification webhook not configured",
            )

        logger.info("Raising exposure notification")

        try:
            response = requests.post(
                self.webhook_url,
                json={
                    "title": title,
                    "body": body,
                    "duration": duration,
                    "unit": unit,
                },
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )

            if 200 <= response.status_code < 300:
                logger.info("Notification accepted")
                return NotificationResponse(
                    success=True,
                    status_code=response.status_code,
                )
            else:
                error_text = response.text
                logger.warning(
                    "Notification webhook returned %d - %s",
                    response.status_code,
                    error_text,
                )
                return NotificationResponse(
                    success=False,
                    status_code=response.status_code,
                    error=error_text,
                )

        except requests.Timeout:
            logger.error("Notification webhook request timed out")
            return NotificationResponse(
                success=False,
                status_code=0,
                error="Request timed out",
            )
        except requests.RequestException as e:
            logger.error("Notification webhook request failed: %s", str(e))
            return NotificationResponse(
                success=False,
                status_code=0,
                error=str(e),
            )
