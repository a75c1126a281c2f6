"""
Per-claim submission exclusivity.

At most one submission per claim may be in flight at any instant. The guard
is a registry with atomic check-and-set acquire and an explicit release;
``hold()`` wraps both so the entry is released on every exit path.
"""
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Set

import redis.asyncio as aioredis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.config import settings
from app.exceptions import AlreadyInProgressException, ExternalServiceException
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


class IdempotencyGuard(ABC):
    """Tracks in-flight submissions per claim ID."""

    @abstractmethod
    async def try_acquire(self, claim_id: str) -> bool:
        """Atomically mark ``claim_id`` as in flight. Never blocks; False if already held."""

    @abstractmethod
    async def release(self, claim_id: str) -> None:
        """Clear the in-flight mark for ``claim_id``."""

    @abstractmethod
    async def is_held(self, claim_id: str) -> bool:
        """Return True if a submission for ``claim_id`` is in flight."""

    @asynccontextmanager
    async def hold(self, claim_id: str) -> AsyncIterator[None]:
        """
        Hold the claim for the duration of the block.

        Raises:
            AlreadyInProgressException: If another submission holds the claim
        """
        if not await self.try_acquire(claim_id):
            raise AlreadyInProgressException(claim_id)
        try:
            yield
        finally:
            await self.release(claim_id)


class InMemoryIdempotencyGuard(IdempotencyGuard):
    """Process-local registry guarded by a lock. Only safe with a single worker process."""

    def __init__(self):
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    async def try_acquire(self, claim_id: str) -> bool:
        with self._lock:
            if claim_id in self._in_flight:
                return False
            self._in_flight.add(claim_id)
            return True

    async def release(self, claim_id: str) -> None:
        with self._lock:
            self._in_flight.discard(claim_id)

    async def is_held(self, claim_id: str) -> bool:
        with self._lock:
            return claim_id in self._in_flight


class RedisIdempotencyGuard(IdempotencyGuard):
    """
    System-wide registry in Redis.

    Acquire is ``SET key token NX PX ttl``; release deletes the key only if it
    still carries this holder's token, so an expired lease re-acquired by
    another worker is never released by mistake.
    """

    KEY_PREFIX = "claimrelay:submission-lock"

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        redis_client: Optional[Redis] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds or settings.IDEMPOTENCY_LOCK_TTL_SECONDS
        self._tokens: Dict[str, str] = {}
        self._tokens_lock = threading.Lock()

    def get_redis(self) -> Redis:
        """
        Get or create Redis connection.

        Returns:
            Redis client instance
        """
        if self._redis is None:
            self._redis = aioredis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        return self._redis

    def key_for(self, claim_id: str) -> str:
        return f"{self.KEY_PREFIX}:{claim_id}"

    async def try_acquire(self, claim_id: str) -> bool:
        token = uuid.uuid4().hex
        try:
            acquired = await self.get_redis().set(
                self.key_for(claim_id),
                token,
                nx=True,
                px=self.ttl_seconds * 1000,
            )
        except RedisError as e:
            # Without Redis exclusivity cannot be guaranteed, so refuse to proceed
            logger.error(
                f"Idempotency guard unavailable: {str(e)}",
                extra={"extra_fields": {"claim_id": claim_id}},
            )
            raise ExternalServiceException(
                "Submission lock service is unavailable. Please try again shortly.",
                service_name="redis",
            ) from e

        if acquired:
            with self._tokens_lock:
                self._tokens[claim_id] = token
            return True
        return False

    async def release(self, claim_id: str) -> None:
        with self._tokens_lock:
            token = self._tokens.pop(claim_id, None)
        if token is None:
            return
        try:
            await self.get_redis().eval(self.RELEASE_SCRIPT, 1, self.key_for(claim_id), token)
        except RedisError as e:
            # The lease expires on its own after ttl_seconds
            logger.error(
                f"Failed to release submission lock: {str(e)}",
                extra={"extra_fields": {"claim_id": claim_id, "ttl_seconds": self.ttl_seconds}},
            )

    async def is_held(self, claim_id: str) -> bool:
        try:
            return bool(await self.get_redis().exists(self.key_for(claim_id)))
        except RedisError as e:
            logger.warning(f"Idempotency guard lookup failed for claim {claim_id}: {str(e)}")
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def build_idempotency_guard() -> IdempotencyGuard:
    """Create the guard selected by IDEMPOTENCY_BACKEND."""
    if settings.IDEMPOTENCY_BACKEND == "memory":
        logger.info("Using in-process idempotency guard")
        return InMemoryIdempotencyGuard()
    logger.info("Using Redis idempotency guard")
    return RedisIdempotencyGuard()
