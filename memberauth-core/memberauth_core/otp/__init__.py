"""
OTP Issuance and Verification
=============================
Code generation, keyed digests and the challenge state machine.
"""

from .models import ChallengeState, AttemptResult, Challenge, AttemptOutcome, IssueResult
from .hashing import generate_code, digest_code, verify_code_digest, CODE_MIN, CODE_MAX
from .service import OTPService

__all__ = [
    # Models
    "ChallengeState",
    "AttemptResult",
    "Challenge",
    "AttemptOutcome",
    "IssueResult",
    # Hashing
    "generate_code",
    "digest_code",
    "verify_code_digest",
    "CODE_MIN",
    "CODE_MAX",
    # Service
    "OTPService",
]
