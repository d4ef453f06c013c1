"""
SMTP Email Delivery
===================
Email OTP delivery over SMTP with STARTTLS.
"""

import asyncio
import smtplib
from email.mime.text import MIMEText

import structlog

from ..config import SMTPConfig
from ..errors import DeliveryError
from ..identifiers import Channel, mask_identifier
from .base import DeliveryProvider

logger = structlog.get_logger(__name__)

SUBJECT = "Your verification code"


class SmtpEmailDelivery(DeliveryProvider):
    """Sends codes by email. smtplib is blocking, so sends run in a worker thread."""

    name = "smtp"
    channel = Channel.EMAIL

    def __init__(self, config: SMTPConfig, expiry_minutes: int = 5):
        super().__init__()
        self.config = config
        self.expiry_minutes = expiry_minutes

    def _build_message(self, to_email: str, code: str) -> MIMEText:
        body = (
            f"Your verification code is: {code}\n\n"
            f"It expires in {self.expiry_minutes} minutes. "
            "If you did not request this, ignore this email."
        )
        msg = MIMEText(body)
        msg["Subject"] = SUBJECT
        msg["From"] = self.config.sender
        msg["To"] = to_email
        return msg

    def _send(self, to_email: str, code: str) -> None:
        msg = self._build_message(to_email, code)
        with smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout) as server:
            server.starttls()
            server.login(self.config.user, self.config.password)
            server.send_message(msg)

    async def send_code(self, identifier: str, code: str) -> None:
        try:
            await asyncio.to_thread(self._send, identifier, code)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP send failed", error=str(e), to=mask_identifier(identifier))
            raise DeliveryError(provider=self.name, details=str(e)) from e
        logger.info("OTP sent", provider=self.name, to=mask_identifier(identifier))
