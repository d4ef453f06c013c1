"""
Fast2SMS Delivery
=================
SMS OTP delivery through the Fast2SMS bulk API (OTP route).
"""

import httpx
from typing import Optional
import structlog

from ..errors import DeliveryError
from ..identifiers import Channel, mask_identifier
from .base import DeliveryProvider

logger = structlog.get_logger(__name__)

DEFAULT_URL = "https://www.fast2sms.com/dev/bulkV2"


def _json_body(response: httpx.Response) -> dict:
    """Provider replies are JSON objects; anything else reads as empty."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class Fast2SMSDelivery(DeliveryProvider):
    """
    Fast2SMS adapter.

    Sends a GET to the bulkV2 endpoint with ``route=otp``; the provider
    renders its own OTP template around ``variables_values``.
    """

    name = "fast2sms"
    channel = Channel.SMS

    def __init__(
        self,
        api_key: str,
        url: str = DEFAULT_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__()
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def initialize(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        await super().initialize()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        await super().close()

    async def send_code(self, identifier: str, code: str) -> None:
        if self._client is None:
            raise DeliveryError("Fast2SMS provider not initialized", provider=self.name)

        params = {
            "authorization": self.api_key,
            "route": "otp",
            "variables_values": code,
            "numbers": identifier,
        }
        try:
            response = await self._client.get(self.url, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Fast2SMS request failed", error=str(e), to=mask_identifier(identifier))
            raise DeliveryError(provider=self.name, details=str(e)) from e

        data = _json_body(response)

        if response.status_code != 200 or data.get("return") is False:
            logger.error(
                "Fast2SMS rejected OTP",
                status_code=response.status_code,
                provider_message=data.get("message"),
                to=mask_identifier(identifier),
            )
            raise DeliveryError(provider=self.name, details=data or response.text)

        logger.info("OTP sent", provider=self.name, request_id=data.get("request_id"), to=mask_identifier(identifier))
