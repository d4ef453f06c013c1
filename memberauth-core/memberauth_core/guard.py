"""
Access Guard
============
Authorizes requests carrying a session token.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from .errors import AccountNotFound, AccountUnverified
from .models import Member
from .session import SessionIssuer, SessionClaims
from .stores import MemberStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuthorizedMember:
    claims: SessionClaims
    member: Member

    @property
    def member_id(self) -> str:
        return self.member.id


class AccessGuard:
    """
    Validates a session token and re-checks the member behind it.

    The member is re-read on every call so deleted or unverified accounts
    lose access even while their token is still within its TTL.
    """

    def __init__(self, sessions: SessionIssuer, members: MemberStore):
        self.sessions = sessions
        self.members = members

    async def authorize(self, token: Optional[str]) -> AuthorizedMember:
        """
        Raises:
            Unauthenticated: Token missing, forged or expired
            AccountNotFound: Member deleted after the token was issued
            AccountUnverified: Member verification flag is false
        """
        claims = self.sessions.decode(token)
        member = await self.members.get(claims.member_id)
        if member is None:
            logger.warning("Token for unknown member", member_id=claims.member_id)
            raise AccountNotFound()
        if not member.is_verified:
            logger.warning("Token for unverified member", member_id=member.id)
            raise AccountUnverified()
        return AuthorizedMember(claims=claims, member=member)
