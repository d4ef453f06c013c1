"""
Member Models
=============
Members and their profiles, independent of the storage backend.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from dataclasses import dataclass, field

from .identifiers import Channel

BIO_MAX_LENGTH = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Member:
    """Persistent identity keyed by mobile number and/or email."""
    id: str
    mobile: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    is_verified: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def identifier_for(self, channel: Channel) -> Optional[str]:
        return self.mobile if channel is Channel.SMS else self.email

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "mobile": self.mobile,
            "email": self.email,
            "name": self.name,
            "isVerified": self.is_verified,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class Preferences:
    marketing_emails: bool = False
    sms_notifications: bool = True

    def to_public(self) -> Dict[str, bool]:
        return {
            "marketingEmails": self.marketing_emails,
            "smsNotifications": self.sms_notifications,
        }


@dataclass
class Profile:
    """Display attributes owned by exactly one member, created lazily."""
    member_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    preferences: Preferences = field(default_factory=Preferences)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def default_for(cls, member: Member) -> "Profile":
        """The record created on first profile access."""
        return cls(member_id=member.id, name=member.name, email=member.email)

    def to_public(self) -> Dict[str, Any]:
        return {
            "memberId": self.member_id,
            "name": self.name,
            "email": self.email,
            "bio": self.bio,
            "avatarUrl": self.avatar_url,
            "preferences": self.preferences.to_public(),
            "updatedAt": self.updated_at.isoformat(),
        }
