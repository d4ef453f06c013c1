"""
Profile Service
===============
Read and update the authenticated member's account and profile.
"""

from typing import Any, Dict, Optional, Tuple

import structlog

from .errors import ValidationError
from .identifiers import normalize_email, normalize_mobile
from .models import Member, Profile, BIO_MAX_LENGTH
from .stores import MemberStore, ProfileStore

logger = structlog.get_logger(__name__)

PREFERENCE_FIELDS = ("marketing_emails", "sms_notifications")


def _clean_text(value: Any, field: str, max_length: Optional[int] = None) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


class ProfileService:
    """Profiles are created on first access with default preferences."""

    def __init__(self, members: MemberStore, profiles: ProfileStore):
        self.members = members
        self.profiles = profiles

    async def get(self, member: Member) -> Tuple[Member, Profile]:
        profile = await self.profiles.get_or_create(member)
        return member, profile

    async def update(self, member: Member, changes: Dict[str, Any]) -> Tuple[Member, Profile]:
        """
        Apply a partial update.

        Keys: name, email, mobile (member), bio, avatar_url, preferences
        (profile). Keys with a None value are left unchanged.

        Raises:
            ValidationError: Malformed values
            Conflict: Email/mobile already used by another member
        """
        member_changes: Dict[str, Any] = {}
        profile_changes: Dict[str, Any] = {}

        name = _clean_text(changes.get("name"), "name")
        if name is not None:
            member_changes["name"] = profile_changes["name"] = name
        if changes.get("email") is not None:
            member_changes["email"] = profile_changes["email"] = normalize_email(changes["email"])
        if changes.get("mobile") is not None:
            member_changes["mobile"] = normalize_mobile(changes["mobile"])

        bio = _clean_text(changes.get("bio"), "bio", BIO_MAX_LENGTH)
        if bio is not None:
            profile_changes["bio"] = bio
        avatar_url = _clean_text(changes.get("avatar_url"), "avatar_url")
        if avatar_url is not None:
            profile_changes["avatar_url"] = avatar_url

        prefs = changes.get("preferences")
        if prefs:
            unknown = set(prefs) - set(PREFERENCE_FIELDS)
            if unknown:
                raise ValidationError(f"Unknown preferences: {', '.join(sorted(unknown))}")
            profile_changes["preferences"] = {k: bool(v) for k, v in prefs.items() if v is not None}

        if member_changes:
            member = await self.members.update(member.id, member_changes)
        profile = await self.profiles.update(member, profile_changes)

        logger.info(
            "Profile updated",
            member_id=member.id,
            fields=sorted(set(member_changes) | set(profile_changes)),
        )
        return member, profile
