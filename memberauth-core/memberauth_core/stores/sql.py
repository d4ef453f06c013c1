"""
SQL Member and Profile Stores
=============================
SQLAlchemy-backed persistence for members and their profiles.
"""

import uuid
from datetime import datetime
from typing import Optional, Dict, Any

import structlog
from sqlalchemy import String, Boolean, DateTime, ForeignKey, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base, Database
from ..errors import AccountNotFound, Conflict
from ..identifiers import Channel, mask_identifier
from ..models import Member, Profile, Preferences, BIO_MAX_LENGTH, utcnow
from .base import MemberStore, ProfileStore

logger = structlog.get_logger(__name__)


class MemberRow(Base):
    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    mobile: Mapped[Optional[str]] = mapped_column(String(20), unique=True, index=True, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(254), unique=True, index=True, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_model(self) -> Member:
        return Member(
            id=self.id,
            mobile=self.mobile,
            email=self.email,
            name=self.name,
            is_verified=self.is_verified,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ProfileRow(Base):
    __tablename__ = "profiles"

    member_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("members.id", ondelete="CASCADE"), primary_key=True
    )
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(String(BIO_MAX_LENGTH), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    marketing_emails: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sms_notifications: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @classmethod
    def from_model(cls, profile: Profile) -> "ProfileRow":
        return cls(
            member_id=profile.member_id,
            name=profile.name,
            email=profile.email,
            bio=profile.bio,
            avatar_url=profile.avatar_url,
            marketing_emails=profile.preferences.marketing_emails,
            sms_notifications=profile.preferences.sms_notifications,
        )

    def to_model(self) -> Profile:
        return Profile(
            member_id=self.member_id,
            name=self.name,
            email=self.email,
            bio=self.bio,
            avatar_url=self.avatar_url,
            preferences=Preferences(
                marketing_emails=self.marketing_emails,
                sms_notifications=self.sms_notifications,
            ),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def _identifier_column(channel: Channel):
    return MemberRow.mobile if channel is Channel.SMS else MemberRow.email


class SQLMemberStore(MemberStore):

    def __init__(self, database: Database):
        self.db = database

    async def get(self, member_id: str) -> Optional[Member]:
        async with self.db.session() as session:
            row = await session.get(MemberRow, member_id)
            return row.to_model() if row else None

    async def find_by_identifier(self, channel: Channel, identifier: str) -> Optional[Member]:
        async with self.db.session() as session:
            result = await session.execute(
                select(MemberRow).where(_identifier_column(channel) == identifier)
            )
            row = result.scalar_one_or_none()
            return row.to_model() if row else None

    async def get_or_create(self, channel: Channel, identifier: str) -> Member:
        member = await self.find_by_identifier(channel, identifier)
        if member is not None:
            return member
        try:
            async with self.db.session() as session:
                row = MemberRow(**{channel.field_name: identifier})
                session.add(row)
                await session.flush()
                member = row.to_model()
        except IntegrityError:
            # Lost an insert race for the same identifier
            member = await self.find_by_identifier(channel, identifier)
            if member is None:
                raise
            return member
        logger.info("Member created", member_id=member.id, identifier=mask_identifier(identifier))
        return member

    async def set_verified(self, member_id: str, verified: bool = True) -> Member:
        async with self.db.session() as session:
            row = await session.get(MemberRow, member_id)
            if row is None:
                raise AccountNotFound()
            row.is_verified = verified
            await session.flush()
            return row.to_model()

    async def update(self, member_id: str, changes: Dict[str, Any]) -> Member:
        try:
            async with self.db.session() as session:
                row = await session.get(MemberRow, member_id)
                if row is None:
                    raise AccountNotFound()
                for channel in Channel:
                    value = changes.get(channel.field_name)
                    if value is None:
                        continue
                    taken = await session.execute(
                        select(MemberRow.id).where(
                            _identifier_column(channel) == value,
                            MemberRow.id != member_id,
                        )
                    )
                    if taken.first() is not None:
                        raise Conflict(f"{channel.field_name.capitalize()} already in use")
                for attr, value in changes.items():
                    setattr(row, attr, value)
                await session.flush()
                return row.to_model()
        except IntegrityError:
            raise Conflict("Email or mobile already in use")

    async def delete(self, member_id: str) -> None:
        async with self.db.session() as session:
            row = await session.get(MemberRow, member_id)
            if row is not None:
                await session.delete(row)


class SQLProfileStore(ProfileStore):

    def __init__(self, database: Database):
        self.db = database

    async def get_or_create(self, member: Member) -> Profile:
        async with self.db.session() as session:
            row = await session.get(ProfileRow, member.id)
            if row is None:
                row = ProfileRow.from_model(Profile.default_for(member))
                session.add(row)
                await session.flush()
            return row.to_model()

    async def update(self, member: Member, changes: Dict[str, Any]) -> Profile:
        async with self.db.session() as session:
            row = await session.get(ProfileRow, member.id)
            if row is None:
                row = ProfileRow.from_model(Profile.default_for(member))
                session.add(row)
            changes = dict(changes)
            for attr, value in (changes.pop("preferences", None) or {}).items():
                setattr(row, attr, value)
            for attr, value in changes.items():
                setattr(row, attr, value)
            row.updated_at = utcnow()
            await session.flush()
            return row.to_model()
