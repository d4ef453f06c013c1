"""
Persistence Backends
====================
Challenge, member and profile stores.
"""

from .base import ChallengeStore, MemberStore, ProfileStore, evaluate_attempt
from .memory import InMemoryChallengeStore, InMemoryMemberStore, InMemoryProfileStore
from .redis_store import RedisChallengeStore
from .sql import SQLMemberStore, SQLProfileStore, MemberRow, ProfileRow

__all__ = [
    # Interfaces
    "ChallengeStore",
    "MemberStore",
    "ProfileStore",
    "evaluate_attempt",
    # In-memory
    "InMemoryChallengeStore",
    "InMemoryMemberStore",
    "InMemoryProfileStore",
    # Redis
    "RedisChallengeStore",
    # SQL
    "SQLMemberStore",
    "SQLProfileStore",
    "MemberRow",
    "ProfileRow",
]
