"""Hellcheck — HTTP Webhook Notifiers.

Slack incoming webhooks and HipChat v2 room notifications. Both POST a
JSON body with httpx and treat any transport error or non-2xx response
as a failed delivery.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import httpx

from hellcheck.config import HipchatNotifierConfig, SlackNotifierConfig
from hellcheck.models import Notification
from hellcheck.notifier.base import DEFAULT_TIMEOUT_SECONDS, DeliveryError, Notifier
from hellcheck.notifier.formatters import build_hipchat_payload, build_slack_payload
from hellcheck.utils.logger import get_logger

logger = get_logger(__name__)


class WebhookNotifier(Notifier):
    """Shared POST-JSON plumbing for webhook style backends.

    The httpx.AsyncClient is created lazily and owned by the notifier
    unless one was injected.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        params: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """POST a JSON payload and require a 2xx answer.

        Raises:
            DeliveryError: On transport failure or a non-2xx status.
        """
        client = self._get_client()
        try:
            resp = await client.post(url, json=payload, params=params)
        except httpx.HTTPError as e:
            raise DeliveryError(f"{type(e).__name__}: {e}") from e

        if not resp.is_success:
            raise DeliveryError(
                f"HTTP {resp.status_code} from {resp.request.url.host}: {resp.text[:200]}"
            )
        return resp

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class SlackNotifier(WebhookNotifier):
    """Posts a colored attachment to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self.webhook_url = webhook_url

    @classmethod
    def from_config(cls, config: SlackNotifierConfig) -> "SlackNotifier":
        return cls(webhook_url=config.webhook_url)

    async def notify(self, notification: Notification) -> None:
        await self._post_json(self.webhook_url, build_slack_payload(notification))
        logger.debug("Slack webhook accepted notification for %s", notification.checker_id)

    def __repr__(self) -> str:
        return "SlackNotifier()"


class HipchatNotifier(WebhookNotifier):
    """Sends a room notification through the HipChat v2 REST API."""

    def __init__(
        self,
        base_url: str,
        token: str,
        room_id: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self.base_url = base_url.rstrip("/")
        self.room_id = room_id
        self._token = token

    @classmethod
    def from_config(cls, config: HipchatNotifierConfig) -> "HipchatNotifier":
        return cls(base_url=config.base_url, token=config.token, room_id=config.room_id)

    @property
    def endpoint(self) -> str:
        """Room notification URL, without the auth_token query parameter."""
        return f"{self.base_url}/v2/room/{quote(self.room_id, safe='')}/notification"

    async def notify(self, notification: Notification) -> None:
        await self._post_json(
            self.endpoint,
            build_hipchat_payload(notification),
            params={"auth_token": self._token},
        )
        logger.debug("HipChat room %s notified for %s", self.room_id, notification.checker_id)

    def __repr__(self) -> str:
        return f"HipchatNotifier(base_url={self.base_url!r}, room_id={self.room_id!r})"
