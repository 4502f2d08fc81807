from decimal import Decimal

import pytest

from application.dtos.payments import (
    GatewayErrorKind,
    GatewayResult,
    PaymentRedirect,
    RefundOutcome,
)
from application.services.payment_service import PaymentService
from core.settings import PhonePeSettings
from domain.common.exceptions import (
    DomainValidationException,
    OrderNotFoundException,
    UnsupportedOperationException,
    UpstreamUnavailableException,
)
from domain.order.entity import PaymentStatus
from domain.order.events import OrderRefunded


class StubGateway:
    provider = "stub"

    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.initiated = []
        self.refunds = []

    async def initiate_payment(self, order):
        self.initiated.append(order.id)
        if self.fail:
            return GatewayResult[PaymentRedirect].failure(GatewayErrorKind.UPSTREAM_UNAVAILABLE, "timeout")
        return GatewayResult[PaymentRedirect].success(
            PaymentRedirect(merchant_transaction_id=f"MT{order.id}_1", redirect_url="https://pay.example/r")
        )

    async def refund(self, order, amount):
        self.refunds.append((order.id, amount))
        if self.fail:
            return GatewayResult[RefundOutcome].failure(GatewayErrorKind.REJECTED, "declined", provider_code="X")
        return GatewayResult[RefundOutcome].success(
            RefundOutcome(
                merchant_transaction_id=f"RF{order.id}_1",
                original_transaction_id=order.authorization_transaction_id,
                amount=int(amount * 100),
            )
        )


class RecordingDispatcher:
    def __init__(self):
        self.scheduled = []

    def schedule_status_reconcile(self, merchant_transaction_id, countdown):
        self.scheduled.append((merchant_transaction_id, countdown))
        return "task-1"


def _service(uow_factory, order_lock, gateway=None, config=None, **kwargs):
    return PaymentService(gateway or StubGateway(), uow_factory, order_lock, config or PhonePeSettings(), **kwargs)


@pytest.mark.asyncio
async def test_post_process_returns_redirect_and_keeps_order_pending(uow_factory, order_lock, make_order, order_repo):
    make_order(482)

    url = await _service(uow_factory, order_lock).post_process_payment(482)

    assert url == "https://pay.example/r"
    assert order_repo.orders[482].payment_status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_post_process_failure_surfaces_upstream_error(uow_factory, order_lock, make_order, order_repo):
    make_order(482)
    service = _service(uow_factory, order_lock, gateway=StubGateway(fail=True))

    with pytest.raises(UpstreamUnavailableException):
        await service.post_process_payment(482)
    assert order_repo.orders[482].payment_status == PaymentStatus.PENDING
    assert service.can_repost_payment(order_repo.orders[482])


@pytest.mark.asyncio
async def test_post_process_schedules_status_reconcile_when_enabled(uow_factory, order_lock, make_order):
    make_order(482)
    dispatcher = RecordingDispatcher()
    service = _service(
        uow_factory, order_lock, config=PhonePeSettings(status_poll_delay_seconds=600), dispatcher=dispatcher
    )

    await service.post_process_payment(482)

    assert dispatcher.scheduled == [("MT482_1", 600)]


@pytest.mark.asyncio
async def test_post_process_rejects_paid_order(uow_factory, order_lock, make_order):
    make_order(482, payment_status="Paid")

    with pytest.raises(DomainValidationException):
        await _service(uow_factory, order_lock).post_process_payment(482)


@pytest.mark.asyncio
async def test_post_process_unknown_order(uow_factory, order_lock):
    with pytest.raises(OrderNotFoundException):
        await _service(uow_factory, order_lock).post_process_payment(999)


@pytest.mark.parametrize(
    "fee, percentage, expected",
    [
        (Decimal("0"), False, Decimal("0.00")),
        (Decimal("25"), False, Decimal("25.00")),
        (Decimal("2.5"), True, Decimal("12.49")),
    ],
)
def test_additional_handling_fee(uow_factory, order_lock, fee, percentage, expected):
    config = PhonePeSettings(additional_fee=fee, additional_fee_percentage=percentage)
    service = _service(uow_factory, order_lock, config=config)
    assert service.additional_handling_fee(Decimal("499.50")) == expected


@pytest.mark.asyncio
async def test_full_refund_marks_order_refunded(uow_factory, order_lock, make_order, order_repo):
    make_order(482, payment_status="Paid", authorization_transaction_id="T1")
    published = []

    async def publish(event):
        published.append(event)

    outcome = await _service(uow_factory, order_lock, publish=publish).refund(482, Decimal("499.50"))

    assert outcome.merchant_transaction_id == "RF482_1"
    assert order_repo.orders[482].payment_status == PaymentStatus.REFUNDED
    assert "RF482_1" in order_repo.notes[482][0].note
    assert isinstance(published[0], OrderRefunded)


@pytest.mark.asyncio
async def test_partial_refund_marks_order_partially_refunded(uow_factory, order_lock, make_order, order_repo):
    make_order(482, payment_status="Paid", authorization_transaction_id="T1")

    await _service(uow_factory, order_lock).refund(482, Decimal("100"))

    assert order_repo.orders[482].payment_status == PaymentStatus.PARTIALLY_REFUNDED


@pytest.mark.asyncio
async def test_refunds_cannot_add_up_past_order_total(uow_factory, order_lock, make_order, order_repo):
    make_order(482, payment_status="Paid", authorization_transaction_id="T1")
    gateway = StubGateway()
    service = _service(uow_factory, order_lock, gateway=gateway)

    await service.refund(482, Decimal("400"))
    with pytest.raises(DomainValidationException):
        await service.refund(482, Decimal("400"))

    assert len(gateway.refunds) == 1
    assert order_repo.orders[482].refunded_amount == Decimal("400")
    assert order_repo.orders[482].payment_status == PaymentStatus.PARTIALLY_REFUNDED


@pytest.mark.asyncio
async def test_partial_refunds_covering_total_mark_order_refunded(uow_factory, order_lock, make_order, order_repo):
    make_order(482, payment_status="Paid", authorization_transaction_id="T1")
    service = _service(uow_factory, order_lock)

    await service.refund(482, Decimal("400"))
    await service.refund(482, Decimal("99.50"))

    assert order_repo.orders[482].payment_status == PaymentStatus.REFUNDED
    assert order_repo.orders[482].refunded_amount == Decimal("499.50")
    with pytest.raises(DomainValidationException):
        await service.refund(482, Decimal("0.01"))


@pytest.mark.asyncio
async def test_failed_refund_leaves_order_untouched(uow_factory, order_lock, make_order, order_repo):
    make_order(482, payment_status="Paid", authorization_transaction_id="T1")
    service = _service(uow_factory, order_lock, gateway=StubGateway(fail=True))

    with pytest.raises(UpstreamUnavailableException):
        await service.refund(482, Decimal("10"))
    assert order_repo.orders[482].payment_status == PaymentStatus.PAID
    assert order_repo.updates == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), Decimal("500")])
async def test_refund_amount_is_validated(uow_factory, order_lock, make_order, amount):
    make_order(482, payment_status="Paid", authorization_transaction_id="T1")
    gateway = StubGateway()

    with pytest.raises(DomainValidationException):
        await _service(uow_factory, order_lock, gateway=gateway).refund(482, amount)
    assert gateway.refunds == []


@pytest.mark.asyncio
async def test_unpaid_order_cannot_be_refunded(uow_factory, order_lock, make_order):
    make_order(482)

    with pytest.raises(DomainValidationException):
        await _service(uow_factory, order_lock).refund(482, Decimal("1"))


@pytest.mark.asyncio
async def test_capture_void_and_recurring_are_unsupported(uow_factory, order_lock):
    service = _service(uow_factory, order_lock)
    for call in (service.capture, service.void, service.process_recurring):
        with pytest.raises(UnsupportedOperationException):
            await call(482)
    assert service.supports_refund and service.supports_partial_refund
    assert not (service.supports_capture or service.supports_void or service.supports_recurring)
