"""
Order state reconciliation.

Applies classified PhonePe events to an order. Each handler runs under the
order's lock and inside one unit of work, so a webhook and a concurrent
status-query reconcile for the same order are applied one after the other.
Handlers are idempotent: redelivering an event may append another note but
never transitions the order twice nor emits a second OrderPaid.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from application.dtos.payments import StatusQueryOutcome
from application.dtos.webhooks import (
    CompletedPayment,
    FailedPayment,
    PaymentDetail,
    PaymentEvent,
    PendingPayment,
    UnhandledEvent,
    WebhookPayload,
)
from application.ports.order_lock import OrderLock
from core.logging_config import get_logger
from domain.common.exceptions import OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderStatus
from domain.order.events import OrderPaid, OrderPaymentEvent, OrderPaymentFailed
from shared.codes.payment_codes import (
    PHONEPE_STATE_COMPLETED,
    PHONEPE_STATE_FAILED,
    PHONEPE_STATE_PENDING,
)


logger = get_logger(__name__)

CODE_PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
CODE_PAYMENT_FAILED = "PAYMENT_FAILED"

EventPublisher = Callable[[OrderPaymentEvent], Awaitable[None]]


@dataclass
class ReconcileOutcome:
    order_id: int
    action: str
    transitioned: bool = False
    events: list[OrderPaymentEvent] = field(default_factory=list)


def _instrument_suffix(detail: PaymentDetail) -> str:
    split = next((s for s in (detail.split_instruments or []) if s.instrument is not None), None)
    if split is None or split.instrument is None:
        return ""
    instrument = split.instrument
    masked = instrument.masked_number
    kind = instrument.type or "UNKNOWN"
    return f" - {kind} ({masked})" if masked else f" - {kind}"


async def _log_event(event: OrderPaymentEvent) -> None:
    logger.info("order_payment_event", event=type(event).__name__, order_id=event.order_id, event_id=event.event_id)


class OrderStateReconciler:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        lock: OrderLock,
        publish: Optional[EventPublisher] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._lock = lock
        self._publish = publish or _log_event

    async def handle(self, order_id: int, event: PaymentEvent) -> ReconcileOutcome:
        if isinstance(event, CompletedPayment):
            return await self.handle_completed(order_id, event.payload)
        if isinstance(event, FailedPayment):
            return await self.handle_failed(order_id, event.payload)
        if isinstance(event, PendingPayment):
            return await self.handle_pending(order_id, event.payload)
        if isinstance(event, UnhandledEvent):
            logger.warning(
                "phonepe_webhook_unhandled",
                order_id=order_id,
                event=event.event,
                state=event.payload.state,
            )
            return ReconcileOutcome(order_id=order_id, action="unhandled")
        raise TypeError(f"Unknown payment event: {event!r}")

    async def handle_completed(self, order_id: int, payload: WebhookPayload) -> ReconcileOutcome:
        def apply(order: Order) -> ReconcileOutcome:
            outcome = ReconcileOutcome(order_id=order.id, action="noted")
            detail = payload.completed_detail()
            if detail is None:
                order.add_note(
                    "PhonePe payment completed without a completed payment detail. "
                    f"Order ID: {payload.order_id}, State: {payload.state}"
                )
                logger.warning("phonepe_completed_without_detail", order_id=order.id, gateway_order_id=payload.order_id)
                return outcome

            mode = detail.payment_mode or "UNKNOWN"
            order.record_authorization(detail.transaction_id, CODE_PAYMENT_SUCCESS, f"Payment completed via {mode}")
            order.add_note(
                f"PhonePe payment completed. Transaction ID: {detail.transaction_id}, Mode: {mode}"
                + _instrument_suffix(detail)
            )
            reopening = order.order_status == OrderStatus.CANCELLED
            if order.mark_paid():
                outcome.action = "paid"
                if reopening:
                    order.add_note(
                        "Order was cancelled by an earlier PhonePe failure notification "
                        "and has been reopened because the payment completed. Review before fulfilment."
                    )
                    logger.warning("order_reopened_after_payment", order_id=order.id, transaction_id=detail.transaction_id)
                outcome.transitioned = True
                outcome.events.append(OrderPaid(order_id=order.id, transaction_id=detail.transaction_id, payment_mode=mode))
            else:
                outcome.action = "already_settled"
            return outcome

        return await self._apply(order_id, apply)

    async def handle_failed(self, order_id: int, payload: WebhookPayload) -> ReconcileOutcome:
        def apply(order: Order) -> ReconcileOutcome:
            outcome = ReconcileOutcome(order_id=order.id, action="noted")
            order.record_failure(CODE_PAYMENT_FAILED, "Payment failed")
            order.add_note(f"PhonePe payment failed. Order ID: {payload.order_id}, State: {payload.state}")
            if order.cancel():
                outcome.action = "cancelled"
                outcome.transitioned = True
                outcome.events.append(OrderPaymentFailed(order_id=order.id, state=payload.state))
            return outcome

        return await self._apply(order_id, apply)

    async def handle_pending(self, order_id: int, payload: WebhookPayload) -> ReconcileOutcome:
        def apply(order: Order) -> ReconcileOutcome:
            order.add_note(f"PhonePe payment pending. Order ID: {payload.order_id}, State: {payload.state}")
            return ReconcileOutcome(order_id=order.id, action="noted")

        return await self._apply(order_id, apply)

    async def reconcile_status(self, order_id: int, status: StatusQueryOutcome) -> ReconcileOutcome:
        """Feed a status-API answer through the same handlers as the webhook."""
        details = []
        if status.state == PHONEPE_STATE_COMPLETED:
            details.append(
                PaymentDetail(
                    payment_mode=status.payment_mode,
                    transaction_id=status.transaction_id,
                    amount=status.amount,
                    state=PHONEPE_STATE_COMPLETED,
                )
            )
        payload = WebhookPayload(
            merchant_order_id=status.merchant_transaction_id,
            state=status.state,
            amount=status.amount,
            payment_details=details,
        )
        if status.state == PHONEPE_STATE_COMPLETED:
            return await self.handle_completed(order_id, payload)
        if status.state == PHONEPE_STATE_FAILED:
            return await self.handle_failed(order_id, payload)
        if status.state == PHONEPE_STATE_PENDING:
            return await self.handle_pending(order_id, payload)
        logger.warning("phonepe_status_unhandled", order_id=order_id, code=status.code)
        return ReconcileOutcome(order_id=order_id, action="unhandled")

    async def _apply(self, order_id: int, apply: Callable[[Order], ReconcileOutcome]) -> ReconcileOutcome:
        async with self._lock.hold(order_id):
            async with self._uow_factory() as uow:
                repo = uow.order_repository
                order = await repo.get_for_update(order_id)
                if order is None:
                    raise OrderNotFoundException(order_id)
                seen = len(order.notes)
                outcome = apply(order)
                await repo.update(order)
                for note in order.notes[seen:]:
                    await repo.add_note(note)
            logger.info(
                "order_reconciled",
                order_id=order_id,
                action=outcome.action,
                transitioned=outcome.transitioned,
                payment_status=order.payment_status.value,
                order_status=order.order_status.value,
            )
        for event in outcome.events:
            await self._publish(event)
        return outcome
