"""
Store backend tests: the challenge contract runs against the in-memory and
Redis stores, member/profile contracts against in-memory and SQLite.
"""

import asyncio
import gc
from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
import pytest_asyncio

from memberauth_core.database import Database
from memberauth_core.errors import AccountNotFound, Conflict
from memberauth_core.identifiers import Channel
from memberauth_core.otp import Challenge, digest_code
from memberauth_core.otp.models import AttemptResult
from memberauth_core.stores import (
    InMemoryChallengeStore,
    InMemoryMemberStore,
    InMemoryProfileStore,
    RedisChallengeStore,
    SQLMemberStore,
    SQLProfileStore,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
SECRET = "store-secret"
MOBILE = "9999900000"


def make_challenge(code: str = "123456", identifier: str = MOBILE, expires_in: int = 300) -> Challenge:
    return Challenge(
        identifier=identifier,
        channel=Channel.SMS,
        code_digest=digest_code(SECRET, identifier, code),
        expires_at=NOW + timedelta(seconds=expires_in),
    )


@pytest_asyncio.fixture(params=["memory", "redis"])
async def challenge_store(request):
    if request.param == "memory":
        yield InMemoryChallengeStore()
        return
    redis_client = fakeredis.FakeAsyncRedis()
    yield RedisChallengeStore(redis_client)
    await redis_client.flushall()
    await redis_client.aclose()


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path}/members.db")
    await db.create_all()
    yield db
    await db.close()


@pytest.fixture(params=["memory", "sql"])
def backend(request, database):
    if request.param == "memory":
        return InMemoryMemberStore(), InMemoryProfileStore()
    return SQLMemberStore(database), SQLProfileStore(database)


class TestChallengeStore:

    @pytest.mark.asyncio
    async def test_upsert_and_get(self, challenge_store):
        challenge = make_challenge()
        await challenge_store.upsert(challenge)

        stored = await challenge_store.get(MOBILE)

        assert stored.identifier == MOBILE
        assert stored.channel is Channel.SMS
        assert stored.code_digest == challenge.code_digest
        assert stored.expires_at == challenge.expires_at
        assert stored.attempt_count == 0

    @pytest.mark.asyncio
    async def test_get_missing(self, challenge_store):
        assert await challenge_store.get("0000000000") is None

    @pytest.mark.asyncio
    async def test_upsert_overwrites_and_resets_attempts(self, challenge_store):
        await challenge_store.upsert(make_challenge("111111"))
        await challenge_store.attempt(MOBILE, "wrong", NOW, 5)
        assert (await challenge_store.get(MOBILE)).attempt_count == 1

        replacement = make_challenge("222222")
        await challenge_store.upsert(replacement)

        stored = await challenge_store.get(MOBILE)
        assert stored.attempt_count == 0
        assert stored.code_digest == replacement.code_digest

    @pytest.mark.asyncio
    async def test_attempt_outcomes(self, challenge_store):
        challenge = make_challenge()
        await challenge_store.upsert(challenge)

        miss = await challenge_store.attempt(MOBILE, "wrong", NOW, 5)
        assert miss.result is AttemptResult.MISMATCH
        assert miss.attempt_count == 1

        hit = await challenge_store.attempt(MOBILE, challenge.code_digest, NOW, 5)
        assert hit.result is AttemptResult.MATCHED
        assert await challenge_store.get(MOBILE) is None

        gone = await challenge_store.attempt(MOBILE, challenge.code_digest, NOW, 5)
        assert gone.result is AttemptResult.NOT_FOUND

    @pytest.mark.asyncio
    async def test_expired_checked_before_exhausted(self, challenge_store):
        challenge = make_challenge()
        await challenge_store.upsert(challenge)
        for _ in range(5):
            await challenge_store.attempt(MOBILE, "wrong", NOW, 5)

        exhausted = await challenge_store.attempt(MOBILE, challenge.code_digest, NOW, 5)
        assert exhausted.result is AttemptResult.EXHAUSTED

        later = NOW + timedelta(seconds=301)
        expired = await challenge_store.attempt(MOBILE, challenge.code_digest, later, 5)
        assert expired.result is AttemptResult.EXPIRED
        assert (await challenge_store.get(MOBILE)).attempt_count == 5

    @pytest.mark.asyncio
    async def test_expiry_boundary(self, challenge_store):
        """A challenge is usable up to and including its expiry instant."""
        challenge = make_challenge()
        await challenge_store.upsert(challenge)

        outcome = await challenge_store.attempt(MOBILE, challenge.code_digest, challenge.expires_at, 5)

        assert outcome.result is AttemptResult.MATCHED

    @pytest.mark.asyncio
    async def test_discard_only_matching_digest(self, challenge_store):
        first = make_challenge("111111")
        second = make_challenge("222222")
        await challenge_store.upsert(first)
        await challenge_store.upsert(second)

        assert await challenge_store.discard(MOBILE, first.code_digest) is False
        assert await challenge_store.get(MOBILE) is not None

        assert await challenge_store.discard(MOBILE, second.code_digest) is True
        assert await challenge_store.get(MOBILE) is None
        assert await challenge_store.discard(MOBILE, second.code_digest) is False

    @pytest.mark.asyncio
    async def test_concurrent_matches_single_winner(self, challenge_store):
        challenge = make_challenge()
        await challenge_store.upsert(challenge)

        outcomes = await asyncio.gather(
            *(challenge_store.attempt(MOBILE, challenge.code_digest, NOW, 5) for _ in range(8))
        )

        results = [o.result for o in outcomes]
        assert results.count(AttemptResult.MATCHED) == 1
        assert results.count(AttemptResult.NOT_FOUND) == 7

    @pytest.mark.asyncio
    async def test_concurrent_mismatches_all_counted(self, challenge_store):
        await challenge_store.upsert(make_challenge())

        outcomes = await asyncio.gather(
            *(challenge_store.attempt(MOBILE, "wrong", NOW, 10) for _ in range(6))
        )

        assert all(o.result is AttemptResult.MISMATCH for o in outcomes)
        assert (await challenge_store.get(MOBILE)).attempt_count == 6

    @pytest.mark.asyncio
    async def test_memory_locks_released_after_use(self):
        """Should not keep a lock around for every identifier ever seen."""
        store = InMemoryChallengeStore()
        for n in range(50):
            identifier = f"99999{n:05d}"
            challenge = make_challenge(identifier=identifier)
            await store.upsert(challenge)
            await store.attempt(identifier, "wrong", NOW, 5)
            await store.discard(identifier, challenge.code_digest)

        gc.collect()

        assert len(store._locks) == 0


class TestMemberStore:

    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self, backend):
        members, _ = backend

        first = await members.get_or_create(Channel.SMS, MOBILE)
        second = await members.get_or_create(Channel.SMS, MOBILE)

        assert first.id == second.id
        assert first.mobile == MOBILE
        assert first.email is None
        assert first.is_verified is False

    @pytest.mark.asyncio
    async def test_find_and_get(self, backend):
        members, _ = backend
        created = await members.get_or_create(Channel.EMAIL, "a@b.co")

        assert (await members.find_by_identifier(Channel.EMAIL, "a@b.co")).id == created.id
        assert await members.find_by_identifier(Channel.SMS, MOBILE) is None
        assert (await members.get(created.id)).email == "a@b.co"
        assert await members.get("missing") is None

    @pytest.mark.asyncio
    async def test_set_verified(self, backend):
        members, _ = backend
        created = await members.get_or_create(Channel.SMS, MOBILE)

        verified = await members.set_verified(created.id)

        assert verified.is_verified is True
        assert (await members.get(created.id)).is_verified is True
        with pytest.raises(AccountNotFound):
            await members.set_verified("missing")

    @pytest.mark.asyncio
    async def test_update_conflict(self, backend):
        members, _ = backend
        owner = await members.get_or_create(Channel.EMAIL, "taken@b.co")
        other = await members.get_or_create(Channel.SMS, MOBILE)

        with pytest.raises(Conflict, match="Email already in use"):
            await members.update(other.id, {"email": "taken@b.co"})

        # Re-saving one's own email is not a conflict
        updated = await members.update(owner.id, {"email": "taken@b.co", "name": "Owner"})
        assert updated.name == "Owner"

    @pytest.mark.asyncio
    async def test_update_missing_member(self, backend):
        members, _ = backend
        with pytest.raises(AccountNotFound):
            await members.update("missing", {"name": "x"})

    @pytest.mark.asyncio
    async def test_delete(self, backend):
        members, _ = backend
        created = await members.get_or_create(Channel.SMS, MOBILE)

        await members.delete(created.id)

        assert await members.get(created.id) is None


class TestProfileStore:

    @pytest.mark.asyncio
    async def test_default_profile_on_first_access(self, backend):
        members, profiles = backend
        member = await members.get_or_create(Channel.EMAIL, "a@b.co")

        profile = await profiles.get_or_create(member)

        assert profile.member_id == member.id
        assert profile.email == "a@b.co"
        assert profile.bio is None
        assert profile.preferences.marketing_emails is False
        assert profile.preferences.sms_notifications is True
        assert (await profiles.get_or_create(member)).member_id == member.id

    @pytest.mark.asyncio
    async def test_update_merges_preferences(self, backend):
        members, profiles = backend
        member = await members.get_or_create(Channel.SMS, MOBILE)
        await profiles.get_or_create(member)

        await profiles.update(member, {"bio": "hello", "preferences": {"marketing_emails": True}})
        profile = await profiles.update(member, {"preferences": {"sms_notifications": False}})

        assert profile.bio == "hello"
        assert profile.preferences.marketing_emails is True
        assert profile.preferences.sms_notifications is False

    @pytest.mark.asyncio
    async def test_update_creates_missing_profile(self, backend):
        members, profiles = backend
        member = await members.get_or_create(Channel.SMS, MOBILE)

        profile = await profiles.update(member, {"avatar_url": "https://cdn.example.com/a.png"})

        assert profile.avatar_url == "https://cdn.example.com/a.png"
        assert profile.preferences.sms_notifications is True
