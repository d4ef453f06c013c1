"""
OTP Hashing Utilities
=====================
Code generation and keyed digests for one-time codes.
"""

import secrets
import hashlib
import hmac

CODE_MIN = 100000
CODE_MAX = 999999


def generate_code() -> str:
    """
    Generate a 6-digit numeric OTP.

    Drawn uniformly from 100000-999999 inclusive, so codes never start
    with a zero and are always six characters long.

    Returns:
        OTP string
    """
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def digest_code(secret: str, identifier: str, code: str) -> str:
    """
    Compute the keyed digest of a code bound to its identifier.

    Args:
        secret: Server-held OTP secret
        identifier: Normalized mobile number or email
        code: Plain OTP

    Returns:
        Hex HMAC-SHA256 of "identifier:code"
    """
    return hmac.new(
        secret.encode(),
        f"{identifier}:{code}".encode(),
        hashlib.sha256,
    ).hexdigest()


def verify_code_digest(secret: str, identifier: str, code: str, stored_digest: str) -> bool:
    """
    Verify a submitted code against a stored digest.

    Uses constant-time comparison to prevent timing attacks.
    """
    return hmac.compare_digest(digest_code(secret, identifier, code), stored_digest)
