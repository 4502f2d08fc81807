import pytest

from application.dtos.payments import GatewayErrorKind, GatewayResult, StatusQueryOutcome
from application.services.reconciler import OrderStateReconciler
from domain.common.exceptions import UpstreamUnavailableException
from domain.order.entity import OrderStatus, PaymentStatus
from infrastructure.tasks import payment_tasks
from infrastructure.tasks.payment_tasks import reconcile_from_status, task_reconcile_status


class StatusGateway:
    provider = "stub"

    def __init__(self, result):
        self.result = result
        self.queried = []

    async def query_status(self, merchant_transaction_id):
        self.queried.append(merchant_transaction_id)
        return self.result


def _status(state, code, transaction_id=None):
    return GatewayResult[StatusQueryOutcome].success(
        StatusQueryOutcome(
            merchant_transaction_id="MT482_1",
            success=state == "COMPLETED",
            code=code,
            state=state,
            transaction_id=transaction_id,
            payment_mode="UPI" if transaction_id else None,
        )
    )


@pytest.fixture
def reconciler(uow_factory, order_lock):
    return OrderStateReconciler(uow_factory, order_lock)


@pytest.mark.asyncio
async def test_completed_status_marks_order_paid(reconciler, make_order, order_repo):
    make_order(482)
    gateway = StatusGateway(_status("COMPLETED", "PAYMENT_SUCCESS", "T1"))

    result = await reconcile_from_status("MT482_1", gateway, reconciler)

    assert result == {"status": "reconciled", "order_id": 482, "action": "paid"}
    assert order_repo.orders[482].payment_status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_failed_status_cancels_order(reconciler, make_order, order_repo):
    make_order(482)
    gateway = StatusGateway(_status("FAILED", "PAYMENT_ERROR"))

    await reconcile_from_status("MT482_1", gateway, reconciler)

    assert order_repo.orders[482].order_status == OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_malformed_identifier_skips_query(reconciler):
    gateway = StatusGateway(_status("COMPLETED", "PAYMENT_SUCCESS", "T1"))

    result = await reconcile_from_status("garbage", gateway, reconciler)

    assert result == {"status": "invalid_identifier"}
    assert gateway.queried == []


@pytest.mark.asyncio
async def test_upstream_failure_asks_for_retry(reconciler, make_order):
    make_order(482)
    gateway = StatusGateway(
        GatewayResult[StatusQueryOutcome].failure(GatewayErrorKind.UPSTREAM_UNAVAILABLE, "timeout")
    )

    with pytest.raises(UpstreamUnavailableException):
        await reconcile_from_status("MT482_1", gateway, reconciler)


@pytest.mark.asyncio
async def test_rejected_query_is_not_retried(reconciler, make_order, order_repo):
    make_order(482)
    gateway = StatusGateway(GatewayResult[StatusQueryOutcome].failure(GatewayErrorKind.REJECTED, "bad request"))

    result = await reconcile_from_status("MT482_1", gateway, reconciler)

    assert result["status"] == "query_failed"
    assert order_repo.updates == 0


def test_task_returns_reconcile_result(monkeypatch):
    async def fake_run(merchant_transaction_id):
        return {"status": "reconciled", "order_id": 482, "action": "paid"}

    monkeypatch.setattr(payment_tasks, "_run", fake_run)

    assert task_reconcile_status("MT482_1")["action"] == "paid"


def test_task_retries_on_upstream_failure(monkeypatch):
    async def fake_run(merchant_transaction_id):
        raise UpstreamUnavailableException()

    monkeypatch.setattr(payment_tasks, "_run", fake_run)

    # Called directly, Celery's retry re-raises the original error
    with pytest.raises(UpstreamUnavailableException):
        task_reconcile_status("MT482_1")


def test_task_is_registered_under_its_public_name():
    assert task_reconcile_status.name == "payments.phonepe.reconcile_status"
