"""
OTP Delivery Providers
======================
SMS and email transports for one-time codes.
"""

from ..config import AuthConfig
from ..errors import ConfigurationError
from ..identifiers import Channel
from .base import DeliveryProvider, DeliveryRegistry
from .console import ConsoleDelivery
from .fast2sms import Fast2SMSDelivery
from .smtp import SmtpEmailDelivery


def build_registry(config: AuthConfig) -> DeliveryRegistry:
    """
    Register one provider per channel.

    Real providers are used whenever credentials are configured; otherwise
    codes go to the log, which is refused in production.
    """
    if config.is_production and not (config.fast2sms_api_key and config.smtp.enabled):
        raise ConfigurationError("FAST2SMS_API_KEY and SMTP_* must be set in production")

    registry = DeliveryRegistry()

    if config.fast2sms_api_key:
        registry.register(Fast2SMSDelivery(
            api_key=config.fast2sms_api_key,
            url=config.fast2sms_url,
            timeout=config.delivery_timeout,
        ))
    else:
        registry.register(ConsoleDelivery(Channel.SMS))

    if config.smtp.enabled:
        registry.register(SmtpEmailDelivery(config.smtp, expiry_minutes=config.otp_expiry_seconds // 60))
    else:
        registry.register(ConsoleDelivery(Channel.EMAIL))

    return registry


__all__ = [
    "DeliveryProvider",
    "DeliveryRegistry",
    "ConsoleDelivery",
    "Fast2SMSDelivery",
    "SmtpEmailDelivery",
    "build_registry",
]
