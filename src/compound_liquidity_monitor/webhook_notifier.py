from __future__ import annotations

import logging

import httpx

from .errors import DeliveryFailure
from .formatting import build_alert_payload
from .types import AlertDecision

logger = logging.getLogger(__name__)


class WebhookDispatcher:
    """Single-attempt JSON POST of a liquidity alert."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def dispatch(self, decision: AlertDecision) -> None:
        payload = build_alert_payload(decision)
        logger.info("Sending alert to webhook: %s", self.webhook_url)

        try:
            response = await self._client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as exc:
            raise DeliveryFailure(self.webhook_url, f"transport error: {exc!r}") from exc

        if not response.is_success:
            raise DeliveryFailure(
                self.webhook_url,
                f"non-success status {response.status_code}",
                status_code=response.status_code,
            )
        logger.info("Alert sent successfully (status %d)", response.status_code)
