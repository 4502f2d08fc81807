"""
PhonePe payment routes.

Thin layer: webhooks are authenticated by checksum only; every other
endpoint acts for the customer in the storefront JWT.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from api.dependencies import (
    CurrentCustomer,
    get_checkout_return_service,
    get_current_admin,
    get_current_customer,
    get_payment_service,
    get_status_query_facade,
    get_webhook_router,
)
from application.dtos.payments import GenericStatusPage, RefundRequest
from application.services.checkout_return import CheckoutReturnService, ReturnDecision, ReturnTarget
from application.services.payment_service import PaymentService
from application.services.status_query import StatusQueryFacade
from application.services.webhook_router import WebhookRouter
from core.logging_config import get_logger
from core.response import success_response
from core.settings import payment_settings


router = APIRouter(prefix="/payments/phonepe", tags=["PhonePe"])
logger = get_logger(__name__)

SIGNATURE_HEADER = "authorization"


def _see_other(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


def _redirect_for(request: Request, decision: ReturnDecision) -> RedirectResponse:
    if decision.target == ReturnTarget.STATUS_PAGE:
        return _see_other(str(request.url_for("phonepe_status_page", order_id=decision.order_id)))
    if decision.target == ReturnTarget.HOMEPAGE:
        return _see_other(payment_settings.storefront.homepage)
    url = request.url_for("phonepe_generic_status").include_query_params(message=decision.message)
    return _see_other(str(url))


@router.post("/webhook", summary="PhonePe payment webhook")
async def payment_webhook(request: Request, webhook_router: WebhookRouter = Depends(get_webhook_router)):
    body = await request.body()
    outcome = await webhook_router.route(body, request.headers.get(SIGNATURE_HEADER))
    return JSONResponse(status_code=outcome.status_code, content=outcome.as_body())


@router.post("/refund-webhook", summary="PhonePe refund webhook")
async def refund_webhook(request: Request, webhook_router: WebhookRouter = Depends(get_webhook_router)):
    body = await request.body()
    outcome = await webhook_router.route_refund(body, request.headers.get(SIGNATURE_HEADER))
    return JSONResponse(status_code=outcome.status_code, content=outcome.as_body())


@router.api_route("/callback", methods=["GET", "POST"], summary="Customer return from PhonePe")
@router.get("/return", summary="Customer return from PhonePe (alias)")
async def payment_return(
    request: Request,
    merchant_order_id: Optional[str] = Query(default=None, alias="merchantOrderId"),
    gateway_transaction_id: Optional[str] = Query(default=None, alias="transactionId"),
    customer: CurrentCustomer = Depends(get_current_customer),
    service: CheckoutReturnService = Depends(get_checkout_return_service),
):
    decision = await service.resolve_return(
        merchant_order_id,
        customer.customer_id,
        customer.store_id,
        gateway_transaction_id=gateway_transaction_id,
    )
    logger.info(
        "phonepe_return_resolved",
        merchant_order_id=merchant_order_id,
        target=decision.target.value,
        order_id=decision.order_id,
    )
    return _redirect_for(request, decision)


@router.get("/orders/{order_id}/status-page", name="phonepe_status_page", summary="Payment status page")
async def status_page(
    request: Request,
    order_id: int,
    customer: CurrentCustomer = Depends(get_current_customer),
    facade: StatusQueryFacade = Depends(get_status_query_facade),
):
    order = await facade.find_owned_order(order_id, customer.customer_id)
    if order is None:
        return _see_other(payment_settings.storefront.homepage)
    if order.is_paid:
        return _see_other(facade.checkout_completed_url(order.id))
    check_url = str(request.url_for("phonepe_order_status", order_id=order.id))
    page = facade.status_page(order, check_url)
    return success_response(data=page.model_dump(mode="json"))


@router.get("/orders/{order_id}/status", name="phonepe_order_status", summary="Poll payment status")
async def poll_status(
    order_id: int,
    customer: CurrentCustomer = Depends(get_current_customer),
    facade: StatusQueryFacade = Depends(get_status_query_facade),
):
    view = await facade.poll(order_id, customer.customer_id)
    return view.model_dump(by_alias=True, exclude_none=True)


@router.get("/status", name="phonepe_generic_status", summary="Generic payment status page")
async def generic_status(
    request: Request,
    message: Optional[str] = Query(default=None),
    customer: CurrentCustomer = Depends(get_current_customer),
    service: CheckoutReturnService = Depends(get_checkout_return_service),
):
    decision = await service.resolve_generic_status(customer.customer_id, customer.store_id, message)
    if decision.target == ReturnTarget.STATUS_PAGE:
        return _redirect_for(request, decision)
    page = GenericStatusPage(
        message=decision.message,
        order_history_url=payment_settings.storefront.order_history,
    )
    return success_response(data=page.model_dump(mode="json"))


@router.post("/orders/{order_id}/pay", summary="Start PhonePe checkout")
async def post_process_payment(
    order_id: int,
    customer: CurrentCustomer = Depends(get_current_customer),
    facade: StatusQueryFacade = Depends(get_status_query_facade),
    service: PaymentService = Depends(get_payment_service),
):
    if await facade.find_owned_order(order_id, customer.customer_id) is None:
        return _see_other(payment_settings.storefront.homepage)
    redirect_url = await service.post_process_payment(order_id)
    return success_response(data={"redirect_url": redirect_url})


@router.post("/orders/{order_id}/refund", summary="Refund a PhonePe payment")
async def refund(
    order_id: int,
    payload: RefundRequest,
    admin: CurrentCustomer = Depends(get_current_admin),
    service: PaymentService = Depends(get_payment_service),
):
    logger.info("phonepe_refund_requested", order_id=order_id, admin_id=admin.customer_id)
    outcome = await service.refund(order_id, payload.amount)
    return success_response(data=outcome.model_dump(mode="json"))
