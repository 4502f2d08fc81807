import json

import pytest

from application.services.reconciler import OrderStateReconciler
from application.services.webhook_router import WebhookRouter
from domain.order.entity import OrderStatus, PaymentStatus
from tests.conftest import sign, verify, webhook_body


@pytest.fixture
def router(uow_factory, order_lock):
    return WebhookRouter(verify, OrderStateReconciler(uow_factory, order_lock), uow_factory)


@pytest.mark.asyncio
async def test_signed_completed_webhook_marks_order_paid(router, make_order, order_repo):
    make_order(482)
    body = webhook_body()

    outcome = await router.route(body, sign(body))

    assert outcome.status_code == 200
    assert outcome.as_body() == {"success": True, "message": "Webhook processed"}
    assert order_repo.orders[482].payment_status == PaymentStatus.PAID
    assert order_repo.orders[482].authorization_transaction_id == "T1"


@pytest.mark.asyncio
async def test_failed_webhook_cancels_order(router, make_order, order_repo):
    make_order(482)
    body = webhook_body(state="FAILED", event="pg.order.failed")

    outcome = await router.route(body, sign(body))

    assert outcome.status_code == 200
    assert order_repo.orders[482].order_status == OrderStatus.CANCELLED
    assert order_repo.orders[482].payment_status == PaymentStatus.PENDING
    assert len(order_repo.notes[482]) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("signature", [None, "", "deadbeef###1"])
async def test_bad_signature_is_rejected_before_lookup(router, make_order, order_repo, signature):
    make_order(482)

    outcome = await router.route(webhook_body(), signature)

    assert outcome.status_code == 400
    assert outcome.message == "Invalid signature"
    assert order_repo.updates == 0


@pytest.mark.asyncio
async def test_invalid_json_is_400(router):
    body = b"{not json"
    outcome = await router.route(body, sign(body))
    assert outcome.status_code == 400
    assert outcome.message == "Invalid JSON payload"


@pytest.mark.asyncio
async def test_missing_payload_is_400(router):
    body = b'{"event": "pg.order.completed"}'
    outcome = await router.route(body, sign(body))
    assert outcome.status_code == 400


@pytest.mark.asyncio
async def test_malformed_merchant_order_id_is_400(router):
    body = webhook_body(merchant_order_id="MTabc_1")
    outcome = await router.route(body, sign(body))
    assert outcome.status_code == 400
    assert outcome.message == "Invalid merchantOrderId"


@pytest.mark.asyncio
async def test_unknown_order_is_404(router):
    body = webhook_body(merchant_order_id="MT999_1")
    outcome = await router.route(body, sign(body))
    assert outcome.status_code == 404
    assert outcome.message == "Order not found"


@pytest.mark.asyncio
async def test_unhandled_event_is_acknowledged(router, make_order, order_repo):
    make_order(482)
    body = webhook_body(state="EXPIRED", event="pg.order.expired")

    outcome = await router.route(body, sign(body))

    assert outcome.status_code == 200
    assert outcome.action == "unhandled"
    assert order_repo.updates == 0


@pytest.mark.asyncio
async def test_unexpected_failure_is_500(make_order, uow_factory):
    make_order(482)

    class _Broken:
        async def handle(self, order_id, event):
            raise RuntimeError("database went away")

    router = WebhookRouter(verify, _Broken(), uow_factory)
    body = webhook_body()

    outcome = await router.route(body, sign(body))

    assert outcome.status_code == 500
    assert outcome.as_body() == {"success": False, "message": "Error processing webhook"}


@pytest.mark.asyncio
async def test_refund_webhook_requires_signature(router):
    body = b'{"event": "pg.refund.completed", "payload": {"merchantRefundId": "RF482_1", "state": "COMPLETED"}}'

    assert (await router.route_refund(body, "nope")).status_code == 400
    accepted = await router.route_refund(body, sign(body))
    assert accepted.status_code == 200
    assert accepted.message == "Refund webhook processed"


def _raw_body(state, event, payment_details):
    return json.dumps(
        {
            "event": event,
            "payload": {
                "merchantOrderId": "MT482_638123456789000000",
                "orderId": "OMO1",
                "state": state,
                "metaInfo": None,
                "paymentDetails": payment_details,
            },
        }
    ).encode()


@pytest.mark.asyncio
async def test_failed_webhook_with_null_payment_details_cancels_order(router, make_order, order_repo):
    make_order(482)
    body = _raw_body("FAILED", "pg.order.failed", None)

    outcome = await router.route(body, sign(body))

    assert outcome.status_code == 200
    assert order_repo.orders[482].order_status == OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_completed_webhook_with_null_split_instruments_marks_order_paid(router, make_order, order_repo):
    make_order(482)
    details = [{"state": "COMPLETED", "transactionId": "T1", "paymentMode": "UPI", "splitInstruments": None}]
    body = _raw_body("COMPLETED", "pg.order.completed", details)

    outcome = await router.route(body, sign(body))

    assert outcome.status_code == 200
    assert order_repo.orders[482].payment_status == PaymentStatus.PAID
    assert order_repo.notes[482][0].note.endswith("Mode: UPI")


@pytest.mark.asyncio
async def test_completed_webhook_with_null_payment_details_degrades_to_note(router, make_order, order_repo):
    make_order(482)
    body = _raw_body("COMPLETED", "pg.order.completed", None)

    outcome = await router.route(body, sign(body))

    assert outcome.status_code == 200
    assert order_repo.orders[482].payment_status == PaymentStatus.PENDING
    assert "without a completed payment detail" in order_repo.notes[482][0].note
