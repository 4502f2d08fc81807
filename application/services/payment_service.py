"""
Application service for the storefront's payment-processor operations.

Depends only on the PaymentGateway port, the order lock port and the unit of
work; the gateway implementation is injected from the composition root
(API/tasks), keeping dependencies one-way.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Optional, Protocol

from application.dtos.payments import GatewayError, RefundOutcome
from application.ports.order_lock import OrderLock
from application.ports.payment_gateway import PaymentGateway
from application.services.reconciler import EventPublisher
from core.logging_config import get_logger
from core.settings import PhonePeSettings
from domain.common.exceptions import (
    DomainValidationException,
    OrderNotFoundException,
    UnsupportedOperationException,
    UpstreamUnavailableException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, PaymentStatus
from domain.order.events import OrderRefunded


logger = get_logger(__name__)

_CENTS = Decimal("0.01")


class StatusReconcileScheduler(Protocol):
    def schedule_status_reconcile(self, merchant_transaction_id: str, countdown: int) -> Optional[str]: ...


def _upstream_error(error: Optional[GatewayError]) -> UpstreamUnavailableException:
    details = None
    if error is not None:
        details = {"kind": error.kind.value, "provider_code": error.provider_code}
    return UpstreamUnavailableException(details=details)


class PaymentService:
    supports_capture = False
    supports_partial_refund = True
    supports_refund = True
    supports_void = False
    supports_recurring = False

    def __init__(
        self,
        gateway: PaymentGateway,
        uow_factory: Callable[..., AbstractUnitOfWork],
        lock: OrderLock,
        config: PhonePeSettings,
        dispatcher: Optional[StatusReconcileScheduler] = None,
        publish: Optional[EventPublisher] = None,
    ) -> None:
        self.gateway = gateway
        self._uow_factory = uow_factory
        self._lock = lock
        self._config = config
        self._dispatcher = dispatcher
        self._publish = publish

    async def _load(self, order_id: int) -> Order:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        return order

    def process_payment(self, order: Order) -> PaymentStatus:
        """Redirect flow: nothing is charged here, the order stays Pending."""
        logger.info("payment_process_request", order_id=order.id, provider=self.gateway.provider)
        return PaymentStatus.PENDING

    async def post_process_payment(self, order_id: int) -> str:
        """Start a PhonePe checkout and return the hosted page URL."""
        order = await self._load(order_id)
        if not self.can_repost_payment(order):
            raise DomainValidationException(
                f"Order {order_id} is not awaiting payment", field="payment_status"
            )
        logger.info("payment_initiate_request", order_id=order.id, provider=self.gateway.provider)
        result = await self.gateway.initiate_payment(order)
        if not result.ok:
            logger.error(
                "payment_initiate_failed",
                order_id=order.id,
                error_kind=result.error.kind.value if result.error else None,
            )
            raise _upstream_error(result.error)

        redirect = result.value
        logger.info(
            "payment_initiate_response",
            order_id=order.id,
            merchant_transaction_id=redirect.merchant_transaction_id,
            state=redirect.state,
        )
        delay = self._config.status_poll_delay_seconds
        if self._dispatcher is not None and delay > 0:
            self._dispatcher.schedule_status_reconcile(redirect.merchant_transaction_id, countdown=delay)
        return redirect.redirect_url

    def can_repost_payment(self, order: Order) -> bool:
        return order.payment_status == PaymentStatus.PENDING

    def additional_handling_fee(self, subtotal: Decimal) -> Decimal:
        fee = Decimal(self._config.additional_fee)
        if self._config.additional_fee_percentage:
            fee = Decimal(subtotal) * fee / Decimal(100)
        return fee.quantize(_CENTS, rounding=ROUND_HALF_UP)

    async def refund(self, order_id: int, amount: Decimal) -> RefundOutcome:
        amount = Decimal(amount)
        async with self._lock.hold(order_id):
            async with self._uow_factory() as uow:
                repo = uow.order_repository
                order = await repo.get_for_update(order_id)
                if order is None:
                    raise OrderNotFoundException(order_id)
                order.ensure_refundable(amount)

                logger.info("payment_refund_request", order_id=order_id, amount=str(amount))
                result = await self.gateway.refund(order, amount)
                if not result.ok:
                    logger.error(
                        "payment_refund_failed",
                        order_id=order_id,
                        error_kind=result.error.kind.value if result.error else None,
                    )
                    raise _upstream_error(result.error)

                outcome = result.value
                order.mark_refunded(amount)
                seen = len(order.notes)
                order.add_note(
                    f"PhonePe refund requested. Refund ID: {outcome.merchant_transaction_id}, Amount: {amount}"
                )
                await repo.update(order)
                for note in order.notes[seen:]:
                    await repo.add_note(note)

        logger.info(
            "payment_refund_response",
            order_id=order_id,
            merchant_transaction_id=outcome.merchant_transaction_id,
            payment_status=order.payment_status.value,
        )
        if self._publish is not None:
            await self._publish(
                OrderRefunded(order_id=order_id, transaction_id=outcome.merchant_transaction_id, amount=amount)
            )
        return outcome

    async def capture(self, order_id: int) -> None:
        raise UnsupportedOperationException("Capture")

    async def void(self, order_id: int) -> None:
        raise UnsupportedOperationException("Void")

    async def process_recurring(self, order_id: int) -> None:
        raise UnsupportedOperationException("Recurring payment")
