from __future__ import annotations

import json
import logging
from typing import Optional

import httpx

from ..errors import SubmissionError
from ..models import NormalizedOrder

logger = logging.getLogger(__name__)


class OrderSubmitter:
    """Posts normalized orders to the downstream DME API as JSON."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not endpoint:
            raise ValueError("Endpoint cannot be empty")
        self.endpoint = endpoint
        self._http_client = client or httpx.AsyncClient(timeout=timeout)

    async def submit(self, order: NormalizedOrder) -> None:
        payload = order.to_payload()
        logger.debug("Submitting to %s: %s", self.endpoint, json.dumps(payload))

        try:
            response = await self._http_client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise SubmissionError(f"Error submitting to API: {e}") from e

        if not response.is_success:
            raise SubmissionError(
                f"API request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        logger.info("Successfully submitted %s order to API", order.device)

    async def aclose(self) -> None:
        await self._http_client.aclose()
