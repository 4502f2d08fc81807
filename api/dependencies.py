"""
API dependencies: customer identity and service wiring.

Services are assembled here from infrastructure adapters; tests override
these providers with in-memory fakes.
"""
from dataclasses import dataclass
from typing import Callable, Optional

import jwt
from fastapi import Cookie, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from application.ports.order_lock import OrderLock
from application.ports.payment_gateway import PaymentGateway
from application.services.checkout_return import CheckoutReturnService
from application.services.fallback_resolver import FallbackResolver
from application.services.payment_service import PaymentService
from application.services.reconciler import OrderStateReconciler
from application.services.status_query import StatusQueryFacade
from application.services.webhook_router import WebhookRouter
from core.config import settings
from core.exceptions import ForbiddenException, TokenExpiredException, UnauthorizedException
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.external.payments import get_payment_gateway
from infrastructure.locks import get_order_lock
from infrastructure.tasks import TaskDispatcher
from infrastructure.unit_of_work import sqlalchemy_uow_factory


logger = get_logger(__name__)

UowFactory = Callable[..., AbstractUnitOfWork]

# HTTP Bearer for API calls; the browser return flow falls back to the cookie
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="Storefront-issued customer JWT",
    auto_error=False,
)


@dataclass(frozen=True)
class CurrentCustomer:
    customer_id: int
    store_id: int
    is_admin: bool = False


async def get_token(
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    access_token: Optional[str] = Cookie(default=None),
) -> str:
    if bearer_token and bearer_token.credentials:
        return bearer_token.credentials
    if access_token:
        return access_token
    raise UnauthorizedException("Missing credentials")


def decode_customer_token(token: str) -> CurrentCustomer:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredException()
    except jwt.PyJWTError as e:
        logger.warning("invalid_customer_token", error=str(e))
        raise UnauthorizedException("Invalid credentials")

    try:
        return CurrentCustomer(
            customer_id=int(payload["sub"]),
            store_id=int(payload.get("store_id", 0)),
            is_admin=bool(payload.get("is_admin", False)),
        )
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedException("Invalid credentials")


async def get_current_customer(token: str = Depends(get_token)) -> CurrentCustomer:
    return decode_customer_token(token)


async def get_current_admin(customer: CurrentCustomer = Depends(get_current_customer)) -> CurrentCustomer:
    if not customer.is_admin:
        raise ForbiddenException("Administrator access required")
    return customer


def get_uow_factory() -> UowFactory:
    return sqlalchemy_uow_factory()


async def get_lock() -> OrderLock:
    return await get_order_lock()


def get_gateway(request: Request) -> PaymentGateway:
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        gateway = get_payment_gateway()
        request.app.state.payment_gateway = gateway
    return gateway


def get_reconciler(
    uow_factory: UowFactory = Depends(get_uow_factory),
    lock: OrderLock = Depends(get_lock),
) -> OrderStateReconciler:
    return OrderStateReconciler(uow_factory, lock)


def get_webhook_router(
    gateway: PaymentGateway = Depends(get_gateway),
    reconciler: OrderStateReconciler = Depends(get_reconciler),
    uow_factory: UowFactory = Depends(get_uow_factory),
) -> WebhookRouter:
    return WebhookRouter(gateway.verify_signature, reconciler, uow_factory)


def get_fallback_resolver(uow_factory: UowFactory = Depends(get_uow_factory)) -> FallbackResolver:
    return FallbackResolver(uow_factory, window_minutes=payment_settings.fallback_window_minutes)


def get_checkout_return_service(
    uow_factory: UowFactory = Depends(get_uow_factory),
    resolver: FallbackResolver = Depends(get_fallback_resolver),
) -> CheckoutReturnService:
    return CheckoutReturnService(uow_factory, resolver)


def get_status_query_facade(uow_factory: UowFactory = Depends(get_uow_factory)) -> StatusQueryFacade:
    return StatusQueryFacade(uow_factory, payment_settings.storefront)


def get_task_dispatcher() -> Optional[TaskDispatcher]:
    if payment_settings.phonepe.status_poll_delay_seconds <= 0:
        return None
    return TaskDispatcher()


def get_payment_service(
    gateway: PaymentGateway = Depends(get_gateway),
    uow_factory: UowFactory = Depends(get_uow_factory),
    lock: OrderLock = Depends(get_lock),
    dispatcher: Optional[TaskDispatcher] = Depends(get_task_dispatcher),
) -> PaymentService:
    return PaymentService(gateway, uow_factory, lock, payment_settings.phonepe, dispatcher=dispatcher)
