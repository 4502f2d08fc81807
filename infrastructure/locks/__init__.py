"""Order lock adapters."""
from .order_lock import (
    InMemoryOrderLock,
    RedisOrderLock,
    init_order_lock,
    shutdown_order_lock,
    get_order_lock,
)

__all__ = [
    "InMemoryOrderLock",
    "RedisOrderLock",
    "init_order_lock",
    "shutdown_order_lock",
    "get_order_lock",
]
