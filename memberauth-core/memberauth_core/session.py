"""
Session Tokens
==============
Signed, time-bound credentials minted after a successful OTP verification.

Format: ``base64url(payload_json).hex(hmac_sha256(secret, base64 part))``.
Tokens are never refreshed; expiry is the only way they stop working.
"""

import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Optional, Callable

import structlog

from .errors import Unauthenticated
from .models import Member

logger = structlog.get_logger(__name__)

TOKEN_VERSION = "1"


@dataclass(frozen=True)
class SessionClaims:
    """Identity asserted by a valid token."""
    member_id: str
    mobile: Optional[str]
    email: Optional[str]
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class IssuedSession:
    token: str
    expires_at: int
    max_age: int  # seconds, for the cookie


class SessionIssuer:
    """Mints and verifies session tokens with an injected signing secret."""

    def __init__(self, secret: str, ttl_seconds: int = 3600, clock: Optional[Callable[[], float]] = None):
        if not secret:
            raise ValueError("Session signing secret is required")
        self.secret = secret
        self.ttl_seconds = ttl_seconds
        self.clock = clock or time.time

    def _sign(self, payload_b64: str) -> str:
        return hmac.new(
            self.secret.encode(),
            payload_b64.encode(),
            hashlib.sha256,
        ).hexdigest()

    def issue(self, member: Member) -> IssuedSession:
        """
        Generate a session token for a verified member.

        Args:
            member: The member that just verified an identifier

        Returns:
            IssuedSession with the token and its expiry
        """
        now = int(self.clock())
        payload = {
            "sub": member.id,
            "mobile": member.mobile,
            "email": member.email,
            "iat": now,
            "exp": now + self.ttl_seconds,
            "ver": TOKEN_VERSION,
        }
        payload_json = json.dumps(payload, separators=(",", ":"))
        payload_b64 = base64.urlsafe_b64encode(payload_json.encode()).decode()
        token = f"{payload_b64}.{self._sign(payload_b64)}"

        logger.info("Session issued", member_id=member.id, expires_in=self.ttl_seconds)
        return IssuedSession(token=token, expires_at=payload["exp"], max_age=self.ttl_seconds)

    def decode(self, token: Optional[str]) -> SessionClaims:
        """
        Verify a session token.

        Raises:
            Unauthenticated: If the token is missing, malformed, forged or expired
        """
        if not token:
            raise Unauthenticated("Not authorized, no token")

        # Signatures are hex and payloads base64url, so anything else is forged
        if not token.isascii():
            raise Unauthenticated("Not authorized, token failed")

        parts = token.split(".")
        if len(parts) != 2:
            raise Unauthenticated("Not authorized, token failed")
        payload_b64, signature = parts

        if not hmac.compare_digest(signature, self._sign(payload_b64)):
            logger.warning("Session signature mismatch")
            raise Unauthenticated("Not authorized, token failed")

        try:
            payload = json.loads(base64.urlsafe_b64decode(payload_b64.encode()).decode())
            claims = SessionClaims(
                member_id=str(payload["sub"]),
                mobile=payload.get("mobile"),
                email=payload.get("email"),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError):
            raise Unauthenticated("Not authorized, token failed")

        if payload.get("ver") != TOKEN_VERSION:
            raise Unauthenticated("Not authorized, token failed")
        if self.clock() >= claims.expires_at:
            raise Unauthenticated("Not authorized, token expired")
        return claims
