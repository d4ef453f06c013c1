"""
Service Configuration
=====================
Environment-driven settings for the member authentication service.

Secrets are read once here and passed explicitly into the OTP service and the
session issuer; nothing else reads them from the environment.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from .errors import ConfigurationError

DEV_OTP_SECRET = "dev-insecure-otp-secret"
DEV_SESSION_SECRET = "dev-insecure-session-secret"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


@dataclass
class SMTPConfig:
    """Outbound mail settings for email OTP delivery."""
    host: Optional[str] = None
    port: int = 587
    user: Optional[str] = None
    password: Optional[str] = None
    sender: str = "noreply@example.com"
    timeout: float = 15.0

    @property
    def enabled(self) -> bool:
        return bool(self.host and self.user and self.password and self.port > 0)


@dataclass
class AuthConfig:
    """Configuration for OTP issuance, sessions and the HTTP surface."""
    otp_secret: str = DEV_OTP_SECRET
    session_secret: str = DEV_SESSION_SECRET
    environment: str = "development"

    otp_expiry_seconds: int = 300  # 5 minutes
    otp_max_attempts: int = 5
    session_ttl_seconds: int = 3600  # 1 hour
    session_cookie_name: str = "token"

    client_url: str = "http://localhost:5173"
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 900  # 15 minutes

    database_url: Optional[str] = None
    redis_url: Optional[str] = None

    fast2sms_api_key: Optional[str] = None
    fast2sms_url: str = "https://www.fast2sms.com/dev/bulkV2"
    delivery_timeout: float = 10.0
    smtp: SMTPConfig = field(default_factory=SMTPConfig)

    log_level: str = "INFO"
    service_name: str = "memberauth"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def expose_dev_codes(self) -> bool:
        """Echo issued codes back in API responses (development only)."""
        return not self.is_production

    def validate(self) -> "AuthConfig":
        """
        Check invariants that must hold before the service starts.

        Raises:
            ConfigurationError: On missing secrets in production or bad limits
        """
        if self.is_production:
            if not self.otp_secret or self.otp_secret == DEV_OTP_SECRET:
                raise ConfigurationError("OTP_SECRET must be set in production")
            if not self.session_secret or self.session_secret == DEV_SESSION_SECRET:
                raise ConfigurationError("SESSION_SECRET must be set in production")
        if self.otp_expiry_seconds <= 0:
            raise ConfigurationError("OTP_EXPIRY_SECONDS must be positive")
        if self.otp_max_attempts <= 0:
            raise ConfigurationError("OTP_MAX_ATTEMPTS must be positive")
        if self.session_ttl_seconds <= 0:
            raise ConfigurationError("SESSION_TTL_SECONDS must be positive")
        return self

    @classmethod
    def from_env(cls) -> "AuthConfig":
        """Build configuration from environment variables."""
        smtp = SMTPConfig(
            host=os.environ.get("SMTP_HOST") or None,
            port=_env_int("SMTP_PORT", 587),
            user=os.environ.get("SMTP_USER") or None,
            password=os.environ.get("SMTP_PASS") or None,
            sender=os.environ.get("SMTP_FROM", "noreply@example.com"),
        )
        config = cls(
            otp_secret=os.environ.get("OTP_SECRET", DEV_OTP_SECRET),
            session_secret=os.environ.get(
                "SESSION_SECRET", os.environ.get("JWT_SECRET", DEV_SESSION_SECRET)
            ),
            environment=os.environ.get("ENVIRONMENT", "development"),
            otp_expiry_seconds=_env_int("OTP_EXPIRY_SECONDS", 300),
            otp_max_attempts=_env_int("OTP_MAX_ATTEMPTS", 5),
            session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", 3600),
            session_cookie_name=os.environ.get("SESSION_COOKIE_NAME", "token"),
            client_url=os.environ.get("CLIENT_URL", "http://localhost:5173"),
            rate_limit_requests=_env_int("RATE_LIMIT_REQUESTS", 100),
            rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 900),
            database_url=os.environ.get("DATABASE_URL") or None,
            redis_url=os.environ.get("REDIS_URL") or None,
            fast2sms_api_key=os.environ.get("FAST2SMS_API_KEY") or None,
            smtp=smtp,
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            service_name=os.environ.get("SERVICE_NAME", "memberauth"),
        )
        return config.validate()
