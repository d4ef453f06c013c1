"""
API Dependencies
================
Service wiring and FastAPI dependencies shared by the routers.
"""

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request
from redis import asyncio as aioredis
import structlog

from ..config import AuthConfig
from ..database import Database
from ..delivery import DeliveryRegistry, build_registry
from ..guard import AccessGuard, AuthorizedMember
from ..otp import OTPService
from ..profiles import ProfileService
from ..session import SessionIssuer
from ..stores import (
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

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Everything a request handler needs, built once per application."""
    config: AuthConfig
    challenges: ChallengeStore
    members: MemberStore
    profiles: ProfileStore
    delivery: DeliveryRegistry
    otp: OTPService
    sessions: SessionIssuer
    guard: AccessGuard
    profile_service: ProfileService
    database: Optional[Database] = None
    redis: Optional[Any] = None

    @classmethod
    def build(
        cls,
        config: AuthConfig,
        challenges: Optional[ChallengeStore] = None,
        members: Optional[MemberStore] = None,
        profiles: Optional[ProfileStore] = None,
        delivery: Optional[DeliveryRegistry] = None,
        clock=None,
    ) -> "Services":
        """
        Wire the services from configuration.

        Explicit stores/registry win over configuration, which is how tests
        inject in-memory backends and recording providers.
        """
        database = None
        redis_client = None

        if challenges is None:
            if config.redis_url:
                redis_client = aioredis.from_url(config.redis_url)
                challenges = RedisChallengeStore(redis_client)
            else:
                challenges = InMemoryChallengeStore()

        if members is None or profiles is None:
            if config.database_url:
                database = Database(config.database_url)
                members = members or SQLMemberStore(database)
                profiles = profiles or SQLProfileStore(database)
            else:
                members = members or InMemoryMemberStore()
                profiles = profiles or InMemoryProfileStore()

        delivery = delivery or build_registry(config)
        sessions = SessionIssuer(config.session_secret, ttl_seconds=config.session_ttl_seconds)

        logger.info(
            "Services configured",
            challenge_store=type(challenges).__name__,
            member_store=type(members).__name__,
            delivery=delivery.list(),
        )
        return cls(
            config=config,
            challenges=challenges,
            members=members,
            profiles=profiles,
            delivery=delivery,
            otp=OTPService(config, challenges, members, delivery, clock=clock),
            sessions=sessions,
            guard=AccessGuard(sessions, members),
            profile_service=ProfileService(members, profiles),
            database=database,
            redis=redis_client,
        )


def get_services(request: Request) -> Services:
    return request.app.state.services


async def current_member(request: Request) -> AuthorizedMember:
    """Authorize the session cookie of the current request."""
    services = get_services(request)
    token = request.cookies.get(services.config.session_cookie_name)
    authorized = await services.guard.authorize(token)
    structlog.contextvars.bind_contextvars(member_id=authorized.member_id)
    return authorized
