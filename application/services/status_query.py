"""
Read side for polling clients: what is this order's payment status now.

Ownership is checked on every read; a foreign order is reported exactly like
a missing one. Reads never take the order lock.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.payments import PaymentStatusPage, PaymentStatusView
from core.logging_config import get_logger
from core.settings import StorefrontUrls
from domain.common.exceptions import OrderNotFoundException, OwnershipViolationException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, PaymentStatus


logger = get_logger(__name__)

STATUS_PAID = "paid"
STATUS_PENDING = "pending"
STATUS_FAILED = "failed"

MESSAGE_PAID = "Payment completed successfully!"
MESSAGE_FAILED = "Payment failed"
MESSAGE_PENDING = "Payment is being processed"
MESSAGE_NOT_FOUND = "Order not found"


def classify_order(order: Order) -> str:
    """Paid -> paid; Voided payment or Cancelled order -> failed; else pending."""
    if order.is_paid:
        return STATUS_PAID
    if order.is_failed:
        return STATUS_FAILED
    return STATUS_PENDING


class StatusQueryFacade:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork], urls: StorefrontUrls) -> None:
        self._uow_factory = uow_factory
        self._urls = urls

    def checkout_completed_url(self, order_id: int) -> str:
        return self._urls.checkout_completed.format(order_id=order_id)

    async def get_owned_order(self, order_id: int, customer_id: Optional[int]) -> Order:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        if not order.belongs_to(customer_id):
            logger.warning("order_ownership_violation", order_id=order_id, customer_id=customer_id)
            raise OwnershipViolationException()
        return order

    async def find_owned_order(self, order_id: int, customer_id: Optional[int]) -> Optional[Order]:
        """None for a missing order and for someone else's order alike."""
        try:
            return await self.get_owned_order(order_id, customer_id)
        except (OrderNotFoundException, OwnershipViolationException):
            return None

    async def poll(self, order_id: int, customer_id: Optional[int]) -> PaymentStatusView:
        order = await self.find_owned_order(order_id, customer_id)
        if order is None:
            return PaymentStatusView(success=False, message=MESSAGE_NOT_FOUND)

        status = classify_order(order)
        if status == STATUS_PAID:
            return PaymentStatusView(
                success=True,
                status=STATUS_PAID,
                message=MESSAGE_PAID,
                redirect_url=self.checkout_completed_url(order.id),
            )
        if status == STATUS_FAILED:
            return PaymentStatusView(
                success=False,
                status=STATUS_FAILED,
                message=MESSAGE_FAILED,
                redirect_url=self._urls.cart,
            )
        return PaymentStatusView(success=True, status=STATUS_PENDING, message=MESSAGE_PENDING)

    @staticmethod
    def status_page(order: Order, check_status_url: str) -> PaymentStatusPage:
        return PaymentStatusPage(
            order_id=order.id,
            custom_order_number=order.custom_order_number or str(order.id),
            order_total=order.order_total,
            payment_status=order.payment_status.value,
            order_status=order.order_status.value,
            is_processing=order.payment_status == PaymentStatus.PENDING,
            check_status_url=check_status_url,
        )
