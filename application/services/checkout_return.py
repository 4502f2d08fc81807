"""
Customer return from the PhonePe hosted page.

Decides where the browser goes next; the decision is transport agnostic and
the API layer turns it into a redirect.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from application.services.fallback_resolver import FallbackResolver
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment import transaction_id


logger = get_logger(__name__)

MESSAGE_PROCESSING = "Your payment is being processed"
MESSAGE_INVALID_TRANSACTION = "Invalid transaction details"
MESSAGE_ORDER_NOT_FOUND = "Order not found"
MESSAGE_ERROR = "An error occurred processing your payment"


class ReturnTarget(str, Enum):
    STATUS_PAGE = "status_page"
    GENERIC_STATUS = "generic_status"
    HOMEPAGE = "homepage"


@dataclass(frozen=True)
class ReturnDecision:
    target: ReturnTarget
    order_id: Optional[int] = None
    message: Optional[str] = None

    @classmethod
    def status_page(cls, order_id: int) -> "ReturnDecision":
        return cls(ReturnTarget.STATUS_PAGE, order_id=order_id)

    @classmethod
    def generic(cls, message: str) -> "ReturnDecision":
        return cls(ReturnTarget.GENERIC_STATUS, message=message)


class CheckoutReturnService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork], resolver: FallbackResolver) -> None:
        self._uow_factory = uow_factory
        self._resolver = resolver

    async def resolve_return(
        self,
        merchant_order_id: Optional[str],
        customer_id: int,
        store_id: int,
        gateway_transaction_id: Optional[str] = None,
    ) -> ReturnDecision:
        try:
            return await self._resolve_return(merchant_order_id, customer_id, store_id)
        except Exception as exc:
            logger.error(
                "phonepe_return_failed",
                merchant_order_id=merchant_order_id,
                transaction_id=gateway_transaction_id,
                error=str(exc),
                exc_info=True,
            )
            return ReturnDecision.generic(MESSAGE_ERROR)

    async def _resolve_return(self, merchant_order_id: Optional[str], customer_id: int, store_id: int) -> ReturnDecision:
        if not merchant_order_id:
            order = await self._resolver.find_pending(customer_id, store_id)
            if order is not None:
                return ReturnDecision.status_page(order.id)
            return ReturnDecision.generic(MESSAGE_PROCESSING)

        order_id = transaction_id.decode(merchant_order_id)
        if order_id == transaction_id.NOT_FOUND:
            logger.warning("phonepe_return_malformed_identifier", merchant_order_id=merchant_order_id)
            return ReturnDecision.generic(MESSAGE_INVALID_TRANSACTION)

        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            return ReturnDecision.generic(MESSAGE_ORDER_NOT_FOUND)
        if not order.belongs_to(customer_id):
            logger.warning("order_ownership_violation", order_id=order_id, customer_id=customer_id)
            return ReturnDecision(ReturnTarget.HOMEPAGE)
        return ReturnDecision.status_page(order.id)

    async def resolve_generic_status(self, customer_id: int, store_id: int, message: Optional[str]) -> ReturnDecision:
        """Generic status page: jump to a recently paid order when there is one."""
        order = await self._resolver.find_paid(customer_id, store_id)
        if order is not None:
            return ReturnDecision.status_page(order.id)
        return ReturnDecision.generic(message or MESSAGE_PROCESSING)
