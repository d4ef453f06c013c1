"""
Store Interfaces
================
Abstract persistence contracts for challenges, members and profiles.
"""

import hmac
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Dict, Any

from ..identifiers import Channel
from ..models import Member, Profile
from ..otp.models import Challenge, AttemptOutcome, AttemptResult


class ChallengeStore(ABC):
    """
    One logical challenge record per identifier.

    Implementations must make ``upsert`` and ``attempt`` atomic with respect
    to concurrent callers for the same identifier.
    """

    @abstractmethod
    async def upsert(self, challenge: Challenge) -> None:
        """Create or overwrite the challenge for ``challenge.identifier``."""

    @abstractmethod
    async def get(self, identifier: str) -> Optional[Challenge]:
        """Return the current challenge, or None if absent/cleared."""

    @abstractmethod
    async def attempt(
        self,
        identifier: str,
        candidate_digest: str,
        now: datetime,
        max_attempts: int,
    ) -> AttemptOutcome:
        """
        Evaluate one verification attempt atomically.

        Checks, in order: presence, expiry, attempt budget, digest match.
        A mismatch increments the attempt counter; a match clears the record.
        """

    @abstractmethod
    async def discard(self, identifier: str, code_digest: str) -> bool:
        """Remove the challenge only if it still holds ``code_digest``."""


class MemberStore(ABC):

    @abstractmethod
    async def get(self, member_id: str) -> Optional[Member]:
        ...

    @abstractmethod
    async def find_by_identifier(self, channel: Channel, identifier: str) -> Optional[Member]:
        ...

    @abstractmethod
    async def get_or_create(self, channel: Channel, identifier: str) -> Member:
        """Find the member owning ``identifier`` or create an unverified one."""

    @abstractmethod
    async def set_verified(self, member_id: str, verified: bool = True) -> Member:
        ...

    @abstractmethod
    async def update(self, member_id: str, changes: Dict[str, Any]) -> Member:
        """
        Apply ``changes`` to name/mobile/email.

        Raises:
            AccountNotFound: If the member does not exist
            Conflict: If mobile/email belongs to another member
        """


class ProfileStore(ABC):

    @abstractmethod
    async def get_or_create(self, member: Member) -> Profile:
        """Return the member's profile, inserting ``Profile.default_for`` if absent."""

    @abstractmethod
    async def update(self, member: Member, changes: Dict[str, Any]) -> Profile:
        """Upsert the profile and apply ``changes`` (preferences merged)."""


def evaluate_attempt(
    challenge: Optional[Challenge],
    candidate_digest: str,
    now: datetime,
    max_attempts: int,
) -> AttemptOutcome:
    """
    Decide the outcome of an attempt against a loaded challenge.

    Pure function shared by the store backends; callers apply the mutation
    inside their own atomic section.
    """
    if challenge is None:
        return AttemptOutcome(AttemptResult.NOT_FOUND)
    if challenge.is_expired(now):
        return AttemptOutcome(AttemptResult.EXPIRED, challenge.attempt_count, challenge)
    if challenge.is_exhausted(max_attempts):
        return AttemptOutcome(AttemptResult.EXHAUSTED, challenge.attempt_count, challenge)
    if not hmac.compare_digest(candidate_digest, challenge.code_digest):
        return AttemptOutcome(AttemptResult.MISMATCH, challenge.attempt_count + 1, challenge)
    return AttemptOutcome(AttemptResult.MATCHED, challenge.attempt_count, challenge)
