"""
OTP Service
===========
Issuance and verification of one-time codes.

States per identifier: NO_CHALLENGE -> ISSUED -> VERIFIED | EXPIRED | EXHAUSTED.
Issuing while ISSUED replaces the challenge and discards its attempt history.
"""

from datetime import datetime, timezone, timedelta
from typing import Callable, Optional

import structlog

from ..config import AuthConfig
from ..delivery import DeliveryRegistry
from ..errors import (
    AttemptsExhausted,
    ChallengeExpired,
    ChallengeNotFound,
    DeliveryError,
    InvalidCode,
    ValidationError,
)
from ..identifiers import Channel, normalize_identifier, mask_identifier
from ..models import Member
from ..stores import ChallengeStore, MemberStore
from .hashing import generate_code, digest_code
from .models import Challenge, ChallengeState, AttemptResult, IssueResult

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OTPService:
    """Issues challenges and verifies submitted codes against them."""

    def __init__(
        self,
        config: AuthConfig,
        challenges: ChallengeStore,
        members: MemberStore,
        delivery: DeliveryRegistry,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config
        self.challenges = challenges
        self.members = members
        self.delivery = delivery
        self.clock = clock or _utcnow

    @property
    def max_attempts(self) -> int:
        return self.config.otp_max_attempts

    def _digest(self, identifier: str, code: str) -> str:
        return digest_code(self.config.otp_secret, identifier, code)

    async def issue(self, identifier: Optional[str], channel: Channel) -> IssueResult:
        """
        Create (or replace) the challenge for an identifier and send the code.

        Args:
            identifier: Raw mobile number or email
            channel: Delivery channel the identifier belongs to

        Returns:
            IssueResult with the normalized identifier and expiry

        Raises:
            ValidationError: If the identifier is missing or malformed
            DeliveryError: If the provider failed. On any failure while sending
                the challenge is withdrawn before the error propagates
        """
        identifier = normalize_identifier(identifier, channel)
        code = generate_code()
        now = self.clock()

        challenge = Challenge(
            identifier=identifier,
            channel=channel,
            code_digest=self._digest(identifier, code),
            expires_at=now + timedelta(seconds=self.config.otp_expiry_seconds),
            attempt_count=0,
        )
        await self.challenges.upsert(challenge)

        try:
            await self.delivery.get(channel).send_code(identifier, code)
        except BaseException as e:
            # Includes cancellation: a code that never went out must not stay live
            withdrawn = await self.challenges.discard(identifier, challenge.code_digest)
            logger.warning(
                "OTP delivery failed",
                identifier=mask_identifier(identifier),
                channel=channel.value,
                provider=e.provider if isinstance(e, DeliveryError) else None,
                error=type(e).__name__,
                withdrawn=withdrawn,
            )
            raise

        logger.info(
            "OTP issued",
            identifier=mask_identifier(identifier),
            channel=channel.value,
            expires_in=self.config.otp_expiry_seconds,
        )
        return IssueResult(
            identifier=identifier,
            channel=channel,
            expires_at=challenge.expires_at,
            code=code if self.config.expose_dev_codes else None,
        )

    async def verify(self, identifier: Optional[str], channel: Channel, submitted_code: Optional[str]) -> Member:
        """
        Verify a submitted code.

        On success the challenge is cleared and the member owning the
        identifier is created if needed and marked verified. A second call
        with the same code fails with ChallengeNotFound.

        Raises:
            ValidationError: Missing/malformed identifier or empty code
            ChallengeNotFound: No challenge for the identifier
            ChallengeExpired: Challenge past its expiry
            AttemptsExhausted: Attempt budget used up; re-issue required
            InvalidCode: Code mismatch (attempt recorded)
        """
        identifier = normalize_identifier(identifier, channel)
        code = (submitted_code or "").strip()
        if not code:
            raise ValidationError("Identifier and OTP required")

        outcome = await self.challenges.attempt(
            identifier,
            self._digest(identifier, code),
            self.clock(),
            self.max_attempts,
        )
        masked = mask_identifier(identifier)

        if outcome.result is AttemptResult.NOT_FOUND:
            raise ChallengeNotFound()
        if outcome.result is AttemptResult.EXPIRED:
            logger.warning("OTP expired", identifier=masked)
            raise ChallengeExpired()
        if outcome.result is AttemptResult.EXHAUSTED:
            logger.warning("OTP attempts exhausted", identifier=masked)
            raise AttemptsExhausted()
        if outcome.result is AttemptResult.MISMATCH:
            remaining = max(self.max_attempts - outcome.attempt_count, 0)
            logger.warning("Invalid OTP attempt", identifier=masked, remaining=remaining)
            raise InvalidCode(attempts_remaining=remaining)

        member = await self.members.get_or_create(channel, identifier)
        if not member.is_verified:
            member = await self.members.set_verified(member.id, True)
        logger.info("OTP verified successfully", identifier=masked, member_id=member.id)
        return member

    async def state(self, identifier: str, channel: Channel) -> ChallengeState:
        """
        Report the lifecycle state for an identifier.

        A cleared challenge reads as VERIFIED when the identifier belongs to a
        verified member, otherwise as NO_CHALLENGE.
        """
        identifier = normalize_identifier(identifier, channel)
        challenge = await self.challenges.get(identifier)
        if challenge is None:
            member = await self.members.find_by_identifier(channel, identifier)
            if member is not None and member.is_verified:
                return ChallengeState.VERIFIED
            return ChallengeState.NO_CHALLENGE
        if challenge.is_expired(self.clock()):
            return ChallengeState.EXPIRED
        if challenge.is_exhausted(self.max_attempts):
            return ChallengeState.EXHAUSTED
        return ChallengeState.ISSUED
