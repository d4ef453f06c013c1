"""
Identifier Utilities
====================
Validation and normalization of the mobile numbers and email addresses that
key challenges and members.
"""

import re
from enum import Enum
from typing import Optional

from .errors import ValidationError

MOBILE_PATTERN = re.compile(r"^[0-9]{10}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s.]+(\.[^@\s.]+)+$")

# Separators people type into phone fields
_PHONE_SEPARATORS = re.compile(r"[\s\-().]")


class Channel(str, Enum):
    """OTP delivery channels."""
    SMS = "sms"
    EMAIL = "email"

    @property
    def field_name(self) -> str:
        """Request/member attribute holding the identifier for this channel."""
        return "mobile" if self is Channel.SMS else "email"


def parse_channel(method: Optional[str]) -> Channel:
    """
    Parse a delivery method string.

    Raises:
        ValidationError: If the method is missing or unknown
    """
    try:
        return Channel((method or "").strip().lower())
    except ValueError:
        raise ValidationError("method must be 'sms' or 'email'")


def normalize_mobile(mobile: Optional[str]) -> str:
    """
    Normalize a 10-digit mobile number.

    Args:
        mobile: Raw number, separators allowed

    Returns:
        The bare 10 digits

    Raises:
        ValidationError: If empty or not exactly 10 digits
    """
    if not mobile or not mobile.strip():
        raise ValidationError("Mobile is required")
    digits = _PHONE_SEPARATORS.sub("", mobile.strip())
    if not MOBILE_PATTERN.match(digits):
        raise ValidationError("Mobile must be a 10-digit number")
    return digits


def normalize_email(email: Optional[str]) -> str:
    """
    Normalize an email address (trimmed, lowercased).

    Raises:
        ValidationError: If empty or not shaped like local@domain.tld
    """
    if not email or not email.strip():
        raise ValidationError("Email is required")
    value = email.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValidationError("Email address is invalid")
    return value


def normalize_identifier(identifier: Optional[str], channel: Channel) -> str:
    """Normalize an identifier according to the rules of its channel."""
    if channel is Channel.SMS:
        return normalize_mobile(identifier)
    return normalize_email(identifier)


def mask_identifier(identifier: str) -> str:
    """Mask an identifier for log output."""
    if "@" in identifier:
        local, _, domain = identifier.partition("@")
        return f"{local[:2]}***@{domain}"
    if len(identifier) > 4:
        return f"{'*' * (len(identifier) - 4)}{identifier[-4:]}"
    return "****"
