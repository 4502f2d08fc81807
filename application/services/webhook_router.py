"""
Inbound PhonePe webhook routing.

Order of checks for the payment webhook:
1. signature over the raw body (``authorization`` header)
2. JSON body with a payload
3. merchantOrderId decodes to an order id
4. the order exists
then the event is classified and handed to the reconciler. Every failure is
turned into a WebhookOutcome; nothing propagates to the HTTP layer.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Callable, Optional

from application.dtos.webhooks import classify, parse_envelope
from application.services.reconciler import OrderStateReconciler
from core.logging_config import get_logger
from domain.common.exceptions import (
    BusinessException,
    MalformedIdentifierException,
    OrderNotFoundException,
    SignatureInvalidException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment import transaction_id


logger = get_logger(__name__)

SignatureVerifier = Callable[[bytes, Optional[str]], bool]

_STATUS_BY_ERROR = {
    MalformedIdentifierException: 400,
    OrderNotFoundException: 404,
    SignatureInvalidException: 400,
}


@dataclass(frozen=True)
class WebhookOutcome:
    status_code: int
    message: str
    order_id: Optional[int] = None
    action: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status_code == 200

    def as_body(self) -> dict:
        return {"success": self.success, "message": self.message}


class WebhookRouter:
    def __init__(
        self,
        verify_signature: SignatureVerifier,
        reconciler: OrderStateReconciler,
        uow_factory: Callable[..., AbstractUnitOfWork],
    ) -> None:
        self._verify = verify_signature
        self._reconciler = reconciler
        self._uow_factory = uow_factory

    async def route(self, body: bytes, signature: Optional[str]) -> WebhookOutcome:
        try:
            return await self._route(body, signature)
        except BusinessException as exc:
            status = _STATUS_BY_ERROR.get(type(exc), 400)
            logger.warning("phonepe_webhook_rejected", status_code=status, error_type=exc.error_type, reason=exc.message)
            return WebhookOutcome(status_code=status, message=exc.message)
        except Exception as exc:
            logger.error("phonepe_webhook_failed", error=str(exc), exc_info=True)
            return WebhookOutcome(status_code=500, message="Error processing webhook")

    async def _route(self, body: bytes, signature: Optional[str]) -> WebhookOutcome:
        if not self._verify(body, signature):
            raise SignatureInvalidException()

        envelope = parse_envelope(body)
        merchant_order_id = envelope.payload.merchant_order_id
        order_id = transaction_id.decode(merchant_order_id)
        if order_id == transaction_id.NOT_FOUND:
            raise MalformedIdentifierException(merchant_order_id)

        async with self._uow_factory(readonly=True) as uow:
            if await uow.order_repository.get_by_id(order_id) is None:
                raise OrderNotFoundException(order_id)

        event = classify(envelope)
        logger.info(
            "phonepe_webhook_received",
            order_id=order_id,
            event=envelope.event,
            state=envelope.payload.state,
            classified=type(event).__name__,
        )
        outcome = await self._reconciler.handle(order_id, event)
        return WebhookOutcome(status_code=200, message="Webhook processed", order_id=order_id, action=outcome.action)

    async def route_refund(self, body: bytes, signature: Optional[str]) -> WebhookOutcome:
        """Refund notifications are authenticated and logged; the refund itself
        was already applied when the refund call succeeded."""
        if not self._verify(body, signature):
            logger.warning("phonepe_refund_webhook_invalid_signature")
            return WebhookOutcome(status_code=400, message="Invalid signature")
        try:
            data = json.loads(body)
        except ValueError:
            data = None
        payload = data.get("payload") if isinstance(data, dict) else None
        payload = payload if isinstance(payload, dict) else {}
        logger.info(
            "phonepe_refund_webhook_received",
            event=data.get("event") if isinstance(data, dict) else None,
            merchant_refund_id=payload.get("merchantRefundId") or payload.get("merchantTransactionId"),
            state=payload.get("state"),
        )
        return WebhookOutcome(status_code=200, message="Refund webhook processed")
