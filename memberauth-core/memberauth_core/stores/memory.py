"""
In-Memory Stores
================
Process-local challenge, member and profile stores.

For development and testing only. Use the Redis challenge store and the SQL
member/profile stores when running more than one worker.
"""

import asyncio
import uuid
import weakref
from dataclasses import replace
from datetime import datetime
from typing import Dict, Optional, Any

import structlog

from ..errors import AccountNotFound, Conflict
from ..identifiers import Channel, mask_identifier
from ..models import Member, Profile, utcnow
from ..otp.models import Challenge, AttemptOutcome, AttemptResult
from .base import ChallengeStore, MemberStore, ProfileStore, evaluate_attempt

logger = structlog.get_logger(__name__)


class InMemoryChallengeStore(ChallengeStore):
    """
    Dict-backed challenge store.

    Each identifier gets its own asyncio.Lock so an attempt's
    read-check-mutate sequence never interleaves with another request.
    Locks are held weakly and disappear once no caller is using them.
    """

    def __init__(self):
        self._challenges: Dict[str, Challenge] = {}
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock(self, identifier: str) -> asyncio.Lock:
        lock = self._locks.get(identifier)
        if lock is None:
            lock = self._locks[identifier] = asyncio.Lock()
        return lock

    async def upsert(self, challenge: Challenge) -> None:
        async with self._lock(challenge.identifier):
            self._challenges[challenge.identifier] = challenge

    async def get(self, identifier: str) -> Optional[Challenge]:
        return self._challenges.get(identifier)

    async def attempt(
        self,
        identifier: str,
        candidate_digest: str,
        now: datetime,
        max_attempts: int,
    ) -> AttemptOutcome:
        async with self._lock(identifier):
            challenge = self._challenges.get(identifier)
            outcome = evaluate_attempt(challenge, candidate_digest, now, max_attempts)
            if outcome.result is AttemptResult.MISMATCH:
                self._challenges[identifier] = challenge.with_failed_attempt()
            elif outcome.result is AttemptResult.MATCHED:
                del self._challenges[identifier]
            return outcome

    async def discard(self, identifier: str, code_digest: str) -> bool:
        async with self._lock(identifier):
            challenge = self._challenges.get(identifier)
            if challenge is None or challenge.code_digest != code_digest:
                return False
            del self._challenges[identifier]
            return True


class InMemoryMemberStore(MemberStore):

    def __init__(self):
        self._members: Dict[str, Member] = {}
        self._lock = asyncio.Lock()

    def _find(self, channel: Channel, identifier: str) -> Optional[Member]:
        for member in self._members.values():
            if member.identifier_for(channel) == identifier:
                return member
        return None

    async def get(self, member_id: str) -> Optional[Member]:
        return self._members.get(member_id)

    async def find_by_identifier(self, channel: Channel, identifier: str) -> Optional[Member]:
        return self._find(channel, identifier)

    async def get_or_create(self, channel: Channel, identifier: str) -> Member:
        async with self._lock:
            member = self._find(channel, identifier)
            if member is not None:
                return member
            member = Member(id=uuid.uuid4().hex, **{channel.field_name: identifier})
            self._members[member.id] = member
            logger.info(
                "Member created",
                member_id=member.id,
                identifier=mask_identifier(identifier),
            )
            return member

    async def set_verified(self, member_id: str, verified: bool = True) -> Member:
        async with self._lock:
            member = self._members.get(member_id)
            if member is None:
                raise AccountNotFound()
            member = replace(member, is_verified=verified, updated_at=utcnow())
            self._members[member_id] = member
            return member

    async def update(self, member_id: str, changes: Dict[str, Any]) -> Member:
        async with self._lock:
            member = self._members.get(member_id)
            if member is None:
                raise AccountNotFound()
            for channel in Channel:
                value = changes.get(channel.field_name)
                if value is None:
                    continue
                owner = self._find(channel, value)
                if owner is not None and owner.id != member_id:
                    raise Conflict(f"{channel.field_name.capitalize()} already in use")
            member = replace(member, updated_at=utcnow(), **changes)
            self._members[member_id] = member
            return member

    async def delete(self, member_id: str) -> None:
        """Remove a member and nothing else (profiles are keyed separately)."""
        async with self._lock:
            self._members.pop(member_id, None)


class InMemoryProfileStore(ProfileStore):

    def __init__(self):
        self._profiles: Dict[str, Profile] = {}
        self._lock = asyncio.Lock()

    async def get_or_create(self, member: Member) -> Profile:
        async with self._lock:
            profile = self._profiles.get(member.id)
            if profile is None:
                profile = self._profiles[member.id] = Profile.default_for(member)
            return profile

    async def update(self, member: Member, changes: Dict[str, Any]) -> Profile:
        async with self._lock:
            profile = self._profiles.get(member.id) or Profile.default_for(member)
            changes = dict(changes)
            prefs = changes.pop("preferences", None)
            if prefs:
                changes["preferences"] = replace(profile.preferences, **prefs)
            profile = replace(profile, updated_at=utcnow(), **changes)
            self._profiles[member.id] = profile
            return profile
