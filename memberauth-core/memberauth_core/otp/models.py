"""
OTP Models
==========
Data models and enums for challenges and verification outcomes.
"""

from datetime import datetime
from typing import Optional
from dataclasses import dataclass, replace
from enum import Enum

from ..identifiers import Channel


class ChallengeState(str, Enum):
    """Lifecycle of the challenge for one identifier."""
    NO_CHALLENGE = "no_challenge"
    ISSUED = "issued"
    VERIFIED = "verified"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


class AttemptResult(str, Enum):
    """Result of an atomic verification attempt against the store."""
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    MISMATCH = "mismatch"
    MATCHED = "matched"


@dataclass(frozen=True)
class Challenge:
    """The stored, hashed, time-boxed OTP for one identifier."""
    identifier: str
    channel: Channel
    code_digest: str
    expires_at: datetime
    attempt_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def is_exhausted(self, max_attempts: int) -> bool:
        return self.attempt_count >= max_attempts

    def is_usable(self, now: datetime, max_attempts: int) -> bool:
        return not self.is_expired(now) and not self.is_exhausted(max_attempts)

    def with_failed_attempt(self) -> "Challenge":
        return replace(self, attempt_count=self.attempt_count + 1)


@dataclass(frozen=True)
class AttemptOutcome:
    """What the store decided for one verification attempt."""
    result: AttemptResult
    attempt_count: int = 0
    challenge: Optional[Challenge] = None


@dataclass(frozen=True)
class IssueResult:
    """Returned to the caller after a successful issuance."""
    identifier: str
    channel: Channel
    expires_at: datetime
    code: Optional[str] = None  # only populated in development
