"""Per-order locks: in-process asyncio locks and a Redis-backed variant."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis import asyncio as aioredis
from redis.exceptions import LockError

from core.config import settings
from core.logging_config import get_logger
from core.settings import payment_settings


logger = get_logger(__name__)


class InMemoryOrderLock:
    """Keyed asyncio locks; entries are dropped once nobody holds or waits on them."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._refs: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, order_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(order_id, asyncio.Lock())
        self._refs[order_id] = self._refs.get(order_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._refs[order_id] -= 1
            if self._refs[order_id] == 0:
                del self._refs[order_id]
                del self._locks[order_id]

    def __len__(self) -> int:
        return len(self._locks)


class RedisOrderLock:
    """Cross-process lock on ``lock:{namespace}:order:{id}``."""

    def __init__(
        self,
        client: aioredis.Redis,
        namespace: str = "",
        *,
        timeout: float = 30,
        blocking_timeout: float = 10,
    ) -> None:
        self._client = client
        self._namespace = namespace.strip(":")
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    def _format_key(self, order_id: int) -> str:
        if not self._namespace:
            return f"lock:order:{order_id}"
        return f"lock:{self._namespace}:order:{order_id}"

    @asynccontextmanager
    async def hold(self, order_id: int) -> AsyncIterator[None]:
        lock = self._client.lock(
            self._format_key(order_id),
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning("order_lock_timeout", order_id=order_id, key=self._format_key(order_id))
            raise TimeoutError(f"Could not lock order {order_id}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; another worker may own it now
                logger.warning("order_lock_lost", order_id=order_id)


_redis_client: Optional[aioredis.Redis] = None
_lock_instance: Optional[InMemoryOrderLock | RedisOrderLock] = None
_init_lock = asyncio.Lock()


async def init_order_lock(backend: Optional[str] = None) -> InMemoryOrderLock | RedisOrderLock:
    """Build the process-wide order lock for the configured backend."""
    global _redis_client, _lock_instance

    if _lock_instance is not None:
        return _lock_instance

    async with _init_lock:
        if _lock_instance is not None:
            return _lock_instance

        cfg = payment_settings.lock
        name = backend or cfg.backend
        if name == "memory":
            _lock_instance = InMemoryOrderLock()
            return _lock_instance

        if not settings.redis.url:
            raise RuntimeError("REDIS__URL is not configured; cannot use the redis order lock")

        client = aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
        )
        _redis_client = client
        _lock_instance = RedisOrderLock(
            client,
            namespace=settings.redis.namespace,
            timeout=cfg.timeout,
            blocking_timeout=cfg.blocking_timeout,
        )
        logger.info("order_lock_initialized", backend=name)
        return _lock_instance


async def get_order_lock() -> InMemoryOrderLock | RedisOrderLock:
    if _lock_instance is None:
        return await init_order_lock()
    return _lock_instance


async def shutdown_order_lock() -> None:
    global _redis_client, _lock_instance

    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None
    _lock_instance = None
