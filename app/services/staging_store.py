"""
Signup staging store.

Holds the not-yet-persisted signup payload between the form step and OTP
verification. Each signup is one JSON document in Redis under the key
`tempUserData:<signup_id>`; it is written on form submit, read by every later
step and deleted on completion or abandonment. Every write refreshes the
key's expiry, so a signup left alone for the TTL disappears on its own.

Writes that follow a provider call use `save_if_current`: the stored
generation is compared and the new record written in one WATCH/MULTI
transaction, so a concurrent abandon is never undone.
"""
import logging
from datetime import timedelta
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import WatchError

from app.domain.models import SignupSession

logger = logging.getLogger(__name__)

STAGING_KEY_PREFIX = "tempUserData"


def staging_key(signup_id: str) -> str:
    return f"{STAGING_KEY_PREFIX}:{signup_id}"


def _decode(signup_id: str, raw: Optional[str]) -> Optional[SignupSession]:
    if raw is None:
        return None
    try:
        return SignupSession.model_validate_json(raw)
    except ValueError as e:
        logger.warning(f"Discarding unreadable staging record {staging_key(signup_id)}: {e}")
        return None


class SignupStagingStore:
    """Redis-backed key/value store for SignupSession records"""

    def __init__(self, redis_client: redis.Redis, ttl: timedelta = timedelta(minutes=30)):
        """
        Args:
            redis_client: Async Redis client (decode_responses=True)
            ttl: Expiry applied on every write
        """
        self.redis = redis_client
        self.ttl_seconds = max(1, int(ttl.total_seconds()))

    async def save(self, session: SignupSession) -> SignupSession:
        await self.redis.set(
            staging_key(session.signup_id),
            session.model_dump_json(),
            ex=self.ttl_seconds
        )
        return session

    async def save_if_current(self, session: SignupSession, expected_generation: int) -> bool:
        """
        Write `session` only while the stored record still has
        `expected_generation`. Returns False, writing nothing, when the record
        is gone or was changed in the meantime.
        """
        key = staging_key(session.signup_id)

        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                current = _decode(session.signup_id, await pipe.get(key))
                if current is None or current.generation != expected_generation:
                    return False

                pipe.multi()
                pipe.set(key, session.model_dump_json(), ex=self.ttl_seconds)
                await pipe.execute()
                return True
            except WatchError:
                logger.info(f"Staging record {key} changed during write, dropping update")
                return False

    async def load(self, signup_id: str) -> Optional[SignupSession]:
        """Return the staged session, or None when missing, expired or unreadable"""
        key = staging_key(signup_id)
        raw = await self.redis.get(key)
        if raw is None:
            return None

        session = _decode(signup_id, raw)
        if session is None:
            await self.redis.delete(key)
        return session

    async def delete(self, signup_id: str) -> None:
        await self.redis.delete(staging_key(signup_id))
