"""
Celery task that reconciles an order from the PhonePe status API.

It covers a lost or late webhook: the answer is fed through the same
reconciler handlers, under the same order lock.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from celery import shared_task

from application.dtos.payments import GatewayErrorKind
from application.ports.payment_gateway import PaymentGateway
from application.services.reconciler import OrderStateReconciler
from core.logging_config import get_logger
from domain.common.exceptions import UpstreamUnavailableException
from domain.payment import transaction_id
from .utils.base_task import BaseTask


logger = get_logger(__name__)

TASK_RECONCILE_STATUS = "payments.phonepe.reconcile_status"


async def reconcile_from_status(
    merchant_transaction_id: str,
    gateway: PaymentGateway,
    reconciler: OrderStateReconciler,
) -> dict[str, Any]:
    """Query PhonePe and reconcile; raises UpstreamUnavailableException when worth retrying."""
    order_id = transaction_id.decode(merchant_transaction_id)
    if order_id == transaction_id.NOT_FOUND:
        logger.warning("phonepe_reconcile_malformed_identifier", merchant_transaction_id=merchant_transaction_id)
        return {"status": "invalid_identifier"}

    result = await gateway.query_status(merchant_transaction_id)
    if not result.ok:
        if result.error.kind == GatewayErrorKind.UPSTREAM_UNAVAILABLE:
            raise UpstreamUnavailableException(details={"merchant_transaction_id": merchant_transaction_id})
        logger.error(
            "phonepe_reconcile_query_failed",
            order_id=order_id,
            error_kind=result.error.kind.value,
            error=result.error.message,
        )
        return {"status": "query_failed", "order_id": order_id}

    outcome = await reconciler.reconcile_status(order_id, result.value)
    return {"status": "reconciled", "order_id": order_id, "action": outcome.action}


async def _run(merchant_transaction_id: str, gateway: Optional[PaymentGateway] = None) -> dict[str, Any]:
    from infrastructure.database import dispose_engine
    from infrastructure.external.payments import get_payment_gateway
    from infrastructure.locks import init_order_lock, shutdown_order_lock
    from infrastructure.unit_of_work import sqlalchemy_uow_factory

    # Each task run has its own event loop; loop-bound clients are rebuilt per run
    owns_gateway = gateway is None
    gateway = gateway or get_payment_gateway()
    lock = await init_order_lock()
    try:
        reconciler = OrderStateReconciler(sqlalchemy_uow_factory(), lock)
        return await reconcile_from_status(merchant_transaction_id, gateway, reconciler)
    finally:
        if owns_gateway:
            await gateway.aclose()
        await shutdown_order_lock()
        await dispose_engine()


@shared_task(name=TASK_RECONCILE_STATUS, bind=True, base=BaseTask, max_retries=3, default_retry_delay=30)
def task_reconcile_status(self, merchant_transaction_id: str):
    try:
        result = asyncio.run(_run(merchant_transaction_id))
    except UpstreamUnavailableException as exc:
        logger.warning(
            "phonepe_reconcile_retry",
            merchant_transaction_id=merchant_transaction_id,
            retries=self.request.retries,
        )
        raise self.retry(exc=exc)
    logger.info("phonepe_reconcile_done", merchant_transaction_id=merchant_transaction_id, **result)
    return result
