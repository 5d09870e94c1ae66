"""Microsoft Teams incoming webhook notifier."""

from typing import Any

import httpx
import structlog

from jira_automation.providers.base import NotificationProvider

log = structlog.get_logger(__name__)


class TeamsWebhookNotifier(NotificationProvider):
    """Posts MessageCard payloads to a Teams incoming webhook.

    The response body is ignored; only the status code matters.
    """

    def __init__(self, webhook_url: str, timeout: float = 15.0):
        self.webhook_url = webhook_url
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TeamsWebhookNotifier":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def send(self, payload: dict[str, Any]) -> int:
        response = await self._client.post(self.webhook_url, json=payload)
        response.raise_for_status()
        log.info("teams_notification_sent", status=response.status_code)
        return response.status_code
