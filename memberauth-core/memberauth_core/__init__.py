"""
Member Auth Core
================
Passwordless OTP authentication and member profiles.
"""

__version__ = "1.0.0"

# Errors
from memberauth_core.errors import (
    MemberAuthError,
    ConfigurationError,
    ValidationError,
    Conflict,
    ChallengeNotFound,
    ChallengeExpired,
    AttemptsExhausted,
    InvalidCode,
    DeliveryError,
    Unauthenticated,
    AccountNotFound,
    AccountUnverified,
    RateLimited,
)

# Identifiers
from memberauth_core.identifiers import (
    Channel,
    parse_channel,
    normalize_identifier,
    normalize_mobile,
    normalize_email,
)

# Configuration
from memberauth_core.config import AuthConfig, SMTPConfig

# Models
from memberauth_core.models import Member, Profile, Preferences

# OTP (must load before stores)
from memberauth_core.otp import (
    OTPService,
    Challenge,
    ChallengeState,
    IssueResult,
    generate_code,
    digest_code,
    verify_code_digest,
)

# Stores
from memberauth_core.stores import (
    ChallengeStore,
    MemberStore,
    ProfileStore,
    InMemoryChallengeStore,
    InMemoryMemberStore,
    InMemoryProfileStore,
    RedisChallengeStore,
    SQLMemberStore,
    SQLProfileStore,
)

# Sessions and access
from memberauth_core.session import SessionIssuer, SessionClaims, IssuedSession
from memberauth_core.guard import AccessGuard, AuthorizedMember
from memberauth_core.profiles import ProfileService

# Delivery
from memberauth_core.delivery import DeliveryProvider, DeliveryRegistry, build_registry

__all__ = [
    "__version__",
    # Errors
    "MemberAuthError",
    "ConfigurationError",
    "ValidationError",
    "Conflict",
    "ChallengeNotFound",
    "ChallengeExpired",
    "AttemptsExhausted",
    "InvalidCode",
    "DeliveryError",
    "Unauthenticated",
    "AccountNotFound",
    "AccountUnverified",
    "RateLimited",
    # Identifiers
    "Channel",
    "parse_channel",
    "normalize_identifier",
    "normalize_mobile",
    "normalize_email",
    # Configuration
    "AuthConfig",
    "SMTPConfig",
    # Models
    "Member",
    "Profile",
    "Preferences",
    # OTP
    "OTPService",
    "Challenge",
    "ChallengeState",
    "IssueResult",
    "generate_code",
    "digest_code",
    "verify_code_digest",
    # Stores
    "ChallengeStore",
    "MemberStore",
    "ProfileStore",
    "InMemoryChallengeStore",
    "InMemoryMemberStore",
    "InMemoryProfileStore",
    "RedisChallengeStore",
    "SQLMemberStore",
    "SQLProfileStore",
    # Sessions and access
    "SessionIssuer",
    "SessionClaims",
    "IssuedSession",
    "AccessGuard",
    "AuthorizedMember",
    "ProfileService",
    # Delivery
    "DeliveryProvider",
    "DeliveryRegistry",
    "build_registry",
]
