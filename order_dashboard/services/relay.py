import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from order_dashboard.core.errors import RelayError

logger = logging.getLogger(__name__)


@dataclass
class RelayResponse:
    status_code: int
    body: Any


class WebhookRelay:
    """Forwards a JSON payload to a fixed downstream URL. No retries."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def forward(self, payload: Any) -> RelayResponse:
        logger.info(f"Forwarding request to webhook URL: {self.url}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Webhook request failed: {e}", exc_info=True)
            raise RelayError(f"Webhook request failed: {e}") from e

        logger.info(f"Received response from webhook with status: {response.status_code}")
        if not response.is_success:
            logger.error(f"Webhook server returned an error. Status: {response.status_code}, Body: {response.text}")
            raise RelayError(f"Webhook failed with status: {response.status_code}. Body: {response.text}")

        try:
            body = response.json()
        except json.JSONDecodeError:
            body = {"message": response.text}
        return RelayResponse(status_code=response.status_code, body=body)
