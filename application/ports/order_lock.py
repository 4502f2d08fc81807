"""
Per-order mutual exclusion port.

Webhook handlers, the return redirect and the reconcile job all mutate the
same order; they serialise on this lock keyed by order id.
"""
from __future__ import annotations

from typing import AsyncContextManager, Protocol, runtime_checkable


@runtime_checkable
class OrderLock(Protocol):

    def hold(self, order_id: int) -> AsyncContextManager[None]: ...
