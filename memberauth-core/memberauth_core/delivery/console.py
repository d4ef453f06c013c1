"""
Console Delivery
================
Development provider that writes codes to the log instead of sending them.
"""

import structlog

from ..identifiers import Channel
from .base import DeliveryProvider

logger = structlog.get_logger(__name__)


class ConsoleDelivery(DeliveryProvider):
    """Logs the code. Never register this in production."""

    name = "console"

    def __init__(self, channel: Channel):
        super().__init__()
        self.channel = channel
        self.name = f"console-{channel.value}"

    async def send_code(self, identifier: str, code: str) -> None:
        logger.warning(
            "[DEV MODE] OTP generated",
            channel=self.channel.value,
            identifier=identifier,
            otp=code,
        )
