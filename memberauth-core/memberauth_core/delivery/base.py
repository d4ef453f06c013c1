"""
Delivery Provider Base
======================
Base class and registry for the providers that carry one-time codes to
members over SMS or email.
"""

from abc import ABC, abstractmethod
from typing import Dict, List

import structlog

from ..errors import DeliveryError
from ..identifiers import Channel

logger = structlog.get_logger(__name__)


class DeliveryProvider(ABC):
    """
    Abstract base class for OTP delivery.

    Implementations send the plaintext code to the identifier and raise
    DeliveryError when the provider does not accept it.
    """

    name: str = "base"
    channel: Channel = Channel.SMS

    def __init__(self):
        self._is_initialized = False

    async def initialize(self) -> None:
        """Initialize the provider (e.g., create HTTP clients)."""
        self._is_initialized = True
        logger.info("Delivery provider initialized", provider=self.name)

    async def close(self) -> None:
        """Clean up resources (e.g., close HTTP clients)."""
        self._is_initialized = False
        logger.info("Delivery provider closed", provider=self.name)

    @abstractmethod
    async def send_code(self, identifier: str, code: str) -> None:
        """
        Send a one-time code.

        Args:
            identifier: Normalized mobile number or email
            code: Plain 6-digit code

        Raises:
            DeliveryError: If the provider rejected or never received the message
        """

    async def health_check(self) -> bool:
        return self._is_initialized


class DeliveryRegistry:
    """Maps each channel to the provider that serves it."""

    def __init__(self):
        self._providers: Dict[Channel, DeliveryProvider] = {}

    def register(self, provider: DeliveryProvider) -> None:
        self._providers[provider.channel] = provider
        logger.info("Delivery provider registered", provider=provider.name, channel=provider.channel.value)

    def get(self, channel: Channel) -> DeliveryProvider:
        provider = self._providers.get(channel)
        if provider is None:
            raise DeliveryError(f"No delivery provider for {channel.value}", provider="none")
        return provider

    def list(self) -> List[str]:
        return [p.name for p in self._providers.values()]

    async def initialize_all(self) -> None:
        for provider in self._providers.values():
            await provider.initialize()

    async def close_all(self) -> None:
        for provider in self._providers.values():
            await provider.close()
