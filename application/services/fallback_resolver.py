"""
Best-effort order lookup for return redirects that arrive without a
merchantOrderId: the customer's most recent order in a given payment status,
created within a trailing window.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, PaymentStatus


logger = get_logger(__name__)

DEFAULT_WINDOW_MINUTES = 15


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FallbackResolver:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        window_minutes: int = DEFAULT_WINDOW_MINUTES,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._window_minutes = window_minutes
        self._clock = clock

    async def resolve(
        self,
        customer_id: int,
        store_id: int,
        payment_status: PaymentStatus,
        window_minutes: Optional[int] = None,
    ) -> Optional[Order]:
        window = self._window_minutes if window_minutes is None else window_minutes
        created_from = self._clock() - timedelta(minutes=window)
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.order_repository.find_recent(
                customer_id=customer_id,
                store_id=store_id,
                payment_status=payment_status,
                created_from=created_from,
                limit=1,
            )
        order = orders[0] if orders else None
        logger.info(
            "fallback_order_lookup",
            customer_id=customer_id,
            store_id=store_id,
            payment_status=payment_status.value,
            window_minutes=window,
            order_id=order.id if order else None,
        )
        return order

    async def find_pending(self, customer_id: int, store_id: int) -> Optional[Order]:
        return await self.resolve(customer_id, store_id, PaymentStatus.PENDING)

    async def find_paid(self, customer_id: int, store_id: int) -> Optional[Order]:
        return await self.resolve(customer_id, store_id, PaymentStatus.PAID)
