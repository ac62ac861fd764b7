"""
Webhook reminder delivery.

Sends reminder notifications to a configured endpoint (push relay, chat
bot, home-automation hub) with HMAC signature verification and retry logic.
"""

import asyncio
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

import httpx

from household_calendar.config import Settings

logger = logging.getLogger(__name__)

# Delivery configuration
WEBHOOK_TIMEOUT = 10.0  # seconds
MAX_RETRIES = 3
RETRY_DELAYS = (1, 5, 30)  # seconds between retries


def generate_signature(payload: str, secret: str) -> str:
    """
    Generate HMAC-SHA256 signature for webhook payload.

    Args:
        payload: JSON string payload
        secret: Webhook secret

    Returns:
        Hex-encoded signature
    """
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class WebhookNotifier:
    """
    PlatformNotifier that posts reminders to a webhook.

    Permission is granted whenever a URL is configured.
    """

    def __init__(
        self,
        url: str,
        secret: str = "",
        timeout: float = WEBHOOK_TIMEOUT,
        retry_delays: Sequence[float] = RETRY_DELAYS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the notifier.

        Args:
            url: Endpoint receiving reminder payloads
            secret: Shared secret for signatures (unsigned if empty)
            timeout: Per-request timeout in seconds
            retry_delays: Waits between attempts; attempts = len + 1, capped at MAX_RETRIES
            client: HTTP client to reuse (a short-lived one is created per delivery if None)
        """
        self._url = url
        self._secret = secret
        self._timeout = timeout
        self._retry_delays = tuple(retry_delays)
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["WebhookNotifier"]:
        """Build a notifier if a webhook URL is configured."""
        if not settings.uses_webhook_notifications:
            return None
        return cls(settings.reminder_webhook_url, settings.reminder_webhook_secret)

    async def request_permission(self) -> bool:
        """Webhook delivery needs no user grant."""
        return self.has_permission()

    def has_permission(self) -> bool:
        """Check that there is somewhere to deliver to."""
        return bool(self._url)

    def _build_request(
        self,
        title: str,
        body: str,
        tag: Optional[str],
        require_interaction: bool,
    ) -> tuple[str, dict[str, str]]:
        payload = {
            "title": title,
            "body": body,
            "tag": tag,
            "require_interaction": require_interaction,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        payload_json = json.dumps(payload, default=str)

        headers = {
            "Content-Type": "application/json",
            "X-Reminder-Timestamp": payload["timestamp"],
        }
        if self._secret:
            headers["X-Reminder-Signature"] = generate_signature(payload_json, self._secret)

        return payload_json, headers

    async def _post(self, content: str, headers: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self._url, content=content, headers=headers)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self._url, content=content, headers=headers)

    async def show(
        self,
        title: str,
        body: str,
        tag: Optional[str] = None,
        require_interaction: bool = True,
    ) -> bool:
        """
        Deliver a reminder to the webhook.

        Returns:
            True if delivery succeeded, False otherwise
        """
        if not self.has_permission():
            logger.debug("Webhook notifications not configured; skipping")
            return False

        payload_json, headers = self._build_request(title, body, tag, require_interaction)
        attempts = min(MAX_RETRIES, len(self._retry_delays) + 1)

        last_error = None
        for attempt in range(attempts):
            try:
                response = await self._post(payload_json, headers)

                if 200 <= response.status_code < 300:
                    logger.info(
                        f"Reminder '{title}' delivered to webhook "
                        f"(status {response.status_code})"
                    )
                    return True

                last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                logger.warning(
                    f"Reminder webhook delivery failed (attempt {attempt + 1}): {last_error}"
                )

            except httpx.TimeoutException:
                last_error = "Request timed out"
                logger.warning(f"Reminder webhook timed out (attempt {attempt + 1})")
            except httpx.RequestError as e:
                last_error = str(e)
                logger.warning(
                    f"Reminder webhook request error (attempt {attempt + 1}): {e}"
                )

            if attempt < attempts - 1:
                await asyncio.sleep(self._retry_delays[attempt])

        logger.error(
            f"Reminder webhook delivery failed after {attempts} attempts: {last_error}"
        )
        return False
