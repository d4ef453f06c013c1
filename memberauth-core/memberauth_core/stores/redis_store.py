"""
Redis Challenge Store
=====================
Redis-backed challenge store using optimistic WATCH/MULTI transactions.

Each identifier maps to one hash. Attempts are evaluated under WATCH and
retried if another request modified the same hash in between, so two racing
verifications can never both succeed and no increment is lost.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any

import structlog
from redis.exceptions import WatchError

from ..identifiers import Channel, mask_identifier
from ..otp.models import Challenge, AttemptOutcome, AttemptResult
from .base import ChallengeStore, evaluate_attempt

logger = structlog.get_logger(__name__)

KEY_PREFIX = "otp:challenge"


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


class RedisChallengeStore(ChallengeStore):
    """
    Challenge store on a shared Redis instance.

    No key TTL is set: expired records stay until overwritten, and expiry is
    enforced when an attempt is evaluated.
    """

    def __init__(self, redis_client, key_prefix: str = KEY_PREFIX, max_retries: int = 10):
        """
        Args:
            redis_client: Async Redis client (redis.asyncio.Redis)
            key_prefix: Namespace for challenge keys
            max_retries: Optimistic transaction retries before giving up
        """
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.max_retries = max_retries

    def get_key(self, identifier: str) -> str:
        return f"{self.key_prefix}:{identifier}"

    @staticmethod
    def _encode(challenge: Challenge) -> Dict[str, Any]:
        return {
            "identifier": challenge.identifier,
            "channel": challenge.channel.value,
            "digest": challenge.code_digest,
            "expires_at": challenge.expires_at.timestamp(),
            "attempts": challenge.attempt_count,
        }

    @staticmethod
    def _decode(raw: Dict[Any, Any]) -> Optional[Challenge]:
        if not raw:
            return None
        data = {_text(k): _text(v) for k, v in raw.items()}
        return Challenge(
            identifier=data["identifier"],
            channel=Channel(data["channel"]),
            code_digest=data["digest"],
            expires_at=datetime.fromtimestamp(float(data["expires_at"]), tz=timezone.utc),
            attempt_count=int(data["attempts"]),
        )

    async def upsert(self, challenge: Challenge) -> None:
        key = self.get_key(challenge.identifier)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.hset(key, mapping=self._encode(challenge))
            await pipe.execute()

    async def get(self, identifier: str) -> Optional[Challenge]:
        raw = await self.redis.hgetall(self.get_key(identifier))
        return self._decode(raw)

    async def attempt(
        self,
        identifier: str,
        candidate_digest: str,
        now: datetime,
        max_attempts: int,
    ) -> AttemptOutcome:
        key = self.get_key(identifier)
        async with self.redis.pipeline(transaction=True) as pipe:
            for retry in range(self.max_retries):
                try:
                    await pipe.watch(key)
                    challenge = self._decode(await pipe.hgetall(key))
                    outcome = evaluate_attempt(challenge, candidate_digest, now, max_attempts)
                    if outcome.result not in (AttemptResult.MISMATCH, AttemptResult.MATCHED):
                        await pipe.unwatch()
                        return outcome

                    pipe.multi()
                    if outcome.result is AttemptResult.MISMATCH:
                        pipe.hincrby(key, "attempts", 1)
                    else:
                        pipe.delete(key)
                    await pipe.execute()
                    return outcome
                except WatchError:
                    logger.debug(
                        "Challenge changed during attempt, retrying",
                        identifier=mask_identifier(identifier),
                        retry=retry + 1,
                    )
        raise RuntimeError(f"Challenge attempt for {mask_identifier(identifier)} kept conflicting")

    async def discard(self, identifier: str, code_digest: str) -> bool:
        key = self.get_key(identifier)
        async with self.redis.pipeline(transaction=True) as pipe:
            for _ in range(self.max_retries):
                try:
                    await pipe.watch(key)
                    stored = await pipe.hget(key, "digest")
                    if stored is None or _text(stored) != code_digest:
                        await pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.delete(key)
                    await pipe.execute()
                    return True
                except WatchError:
                    continue
        return False
