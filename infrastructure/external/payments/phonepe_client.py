"""
PhonePe PG client.

- OAuth client-credentials token for the checkout API
- ``POST /checkout/v2/pay`` payment initiation (X-VERIFY + O-Bearer token)
- ``GET /pg/v1/status/{merchantId}/{merchantTransactionId}`` status query
- ``POST /pg/v1/refund`` refunds

Public methods return GatewayResult and never raise for network, HTTP or
parsing failures.
"""
from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from application.dtos.payments import (
    AccessToken,
    GatewayErrorKind,
    GatewayResult,
    PaymentRedirect,
    RefundOutcome,
    StatusQueryOutcome,
)
from core.logging_config import get_logger
from core.settings import PhonePeSettings
from domain.order.entity import Order
from domain.payment import checksum, transaction_id
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentRecoverableError
from shared.codes.payment_codes import PHONEPE_STATE_UNKNOWN, PHONEPE_STATUS_CODE_TO_STATE


logger = get_logger(__name__)

CALLBACK_PATH = "Plugins/PhonePePayment/PaymentCallback"
REFUND_CALLBACK_PATH = "Plugins/PhonePeWebhook/RefundWebhook"


@dataclass(frozen=True)
class GatewayEndpoints:
    pg_base: str
    auth_base: str


def resolve_endpoints(cfg: PhonePeSettings) -> GatewayEndpoints:
    """Sandbox vs production base URLs; the only place use_sandbox is read."""
    if cfg.use_sandbox:
        sandbox = cfg.sandbox_base_url.rstrip("/")
        return GatewayEndpoints(pg_base=sandbox, auth_base=(cfg.sandbox_auth_url or sandbox).rstrip("/"))
    return GatewayEndpoints(
        pg_base=cfg.production_base_url.rstrip("/"),
        auth_base=cfg.production_auth_url.rstrip("/"),
    )


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _compact_json(body: dict) -> str:
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class PhonePeClient(BasePaymentClient):
    provider = "phonepe"
    status_map = PHONEPE_STATUS_CODE_TO_STATE

    def __init__(
        self,
        config: PhonePeSettings,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        nonce_source: Callable[[], object] = transaction_id.utc_ticks,
    ) -> None:
        super().__init__(timeouts=timeouts, retry=retry, transport=transport)
        self._cfg = config
        self._endpoints = resolve_endpoints(config)
        self._nonce_source = nonce_source

    @property
    def endpoints(self) -> GatewayEndpoints:
        return self._endpoints

    def _store_url(self, path: str) -> str:
        base = self._cfg.store_location
        return f"{base if base.endswith('/') else base + '/'}{path}"

    def checksum(self, payload: str | bytes) -> str:
        return checksum.compute(payload, self._cfg.salt_index)

    def verify_signature(self, payload: bytes | str, signature: str | None) -> bool:
        return checksum.verify(payload, self._cfg.salt_index, signature)

    async def acquire_access_token(self) -> GatewayResult[AccessToken]:
        if not self._cfg.client_id or not self._cfg.client_secret:
            return GatewayResult[AccessToken].failure(GatewayErrorKind.CONFIGURATION, "PhonePe client credentials are not configured")
        form = {
            "client_id": self._cfg.client_id,
            "client_version": self._cfg.client_version,
            "client_secret": self._cfg.client_secret,
            "grant_type": "client_credentials",
        }
        url = f"{self._endpoints.auth_base}/v1/oauth/token"
        try:
            data = await self._retry(lambda: self._send("POST", url, data=form))
        except (PaymentProviderError, httpx.RequestError) as exc:
            return self._failure(GatewayResult[AccessToken], "token", exc)
        token = data.get("access_token")
        if not token:
            logger.error("phonepe_token_missing", url=url)
            return GatewayResult[AccessToken].failure(GatewayErrorKind.INVALID_RESPONSE, "PhonePe token response had no access_token")
        return self._parsed(
            GatewayResult[AccessToken],
            "token",
            lambda: AccessToken(access_token=token, token_type=data.get("token_type"), expires_at=data.get("expires_at")),
        )

    async def initiate_payment(self, order: Order) -> GatewayResult[PaymentRedirect]:
        mtid = transaction_id.encode(order.id, self._nonce_source)
        request = {
            "merchantOrderId": mtid,
            "amount": to_minor_units(order.order_total),
            "expireAfter": self._cfg.expire_after_seconds,
            "paymentFlow": {
                "type": "PG_CHECKOUT",
                "message": "Create payment request URL",
                "merchantUrls": {"redirectUrl": self._store_url(CALLBACK_PATH)},
            },
            "metaInfo": {},
        }
        body = _compact_json(request)

        token = await self.acquire_access_token()
        if not token.ok:
            logger.error("phonepe_initiate_failed", order_id=order.id, stage="token", reason=token.error.message)
            return GatewayResult[PaymentRedirect](error=token.error)

        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": self.checksum(_b64(body)),
            "Authorization": f"O-Bearer {token.value.access_token}",
        }
        url = f"{self._endpoints.pg_base}/checkout/v2/pay"
        try:
            data = await self._retry(lambda: self._send("POST", url, content=body.encode("utf-8"), headers=headers))
        except (PaymentProviderError, httpx.RequestError) as exc:
            return self._failure(GatewayResult[PaymentRedirect], "initiate", exc, order_id=order.id)

        redirect_url = data.get("redirectUrl")
        if not redirect_url:
            logger.error("phonepe_initiate_failed", order_id=order.id, stage="response", state=data.get("state"))
            return GatewayResult[PaymentRedirect].failure(GatewayErrorKind.INVALID_RESPONSE, "PhonePe returned no redirect URL")
        result = self._parsed(
            GatewayResult[PaymentRedirect],
            "initiate",
            lambda: PaymentRedirect(
                merchant_transaction_id=mtid,
                redirect_url=redirect_url,
                gateway_order_id=data.get("orderId"),
                state=data.get("state"),
                expire_at=data.get("expireAt"),
            ),
            order_id=order.id,
        )
        if result.ok:
            self._log("phonepe_initiate_succeeded", order_id=order.id, merchant_transaction_id=mtid, state=result.value.state)
        return result

    async def query_status(self, merchant_transaction_id: str) -> GatewayResult[StatusQueryOutcome]:
        merchant_id = self._cfg.merchant_id
        path = f"/pg/v1/status/{merchant_id}/{merchant_transaction_id}"
        headers = {
            "Content-Type": "application/json",
            "accept": "application/json",
            "X-VERIFY": self.checksum(f"{path}{self._cfg.salt_key}"),
            "X-MERCHANT-ID": merchant_id,
        }
        url = f"{self._endpoints.pg_base}{path}"
        try:
            data = await self._retry(lambda: self._send("GET", url, headers=headers))
        except (PaymentProviderError, httpx.RequestError) as exc:
            return self._failure(
                GatewayResult[StatusQueryOutcome], "status", exc, merchant_transaction_id=merchant_transaction_id
            )

        code = data.get("code")
        detail = data.get("data") if isinstance(data.get("data"), dict) else {}
        instrument = detail.get("paymentInstrument") if isinstance(detail.get("paymentInstrument"), dict) else {}
        result = self._parsed(
            GatewayResult[StatusQueryOutcome],
            "status",
            lambda: StatusQueryOutcome(
                merchant_transaction_id=merchant_transaction_id,
                success=bool(data.get("success")),
                code=code,
                state=self._map_status(code if isinstance(code, str) else None, PHONEPE_STATE_UNKNOWN),
                transaction_id=detail.get("transactionId"),
                payment_mode=instrument.get("type"),
                amount=detail.get("amount"),
                message=data.get("message"),
            ),
            merchant_transaction_id=merchant_transaction_id,
        )
        if result.ok:
            self._log(
                "phonepe_status_queried",
                merchant_transaction_id=merchant_transaction_id,
                code=code,
                state=result.value.state,
            )
        return result

    async def refund(self, order: Order, amount: Decimal) -> GatewayResult[RefundOutcome]:
        if amount is None or Decimal(amount) <= 0:
            return GatewayResult[RefundOutcome].failure(GatewayErrorKind.CONFIGURATION, "Refund amount must be positive")
        if not order.authorization_transaction_id:
            return GatewayResult[RefundOutcome].failure(
                GatewayErrorKind.CONFIGURATION, "Order has no captured PhonePe transaction to refund"
            )
        mtid = transaction_id.encode_refund(order.id, self._nonce_source)
        minor = to_minor_units(amount)
        request = {
            "merchantId": self._cfg.merchant_id,
            "merchantTransactionId": mtid,
            "originalTransactionId": order.authorization_transaction_id,
            "amount": minor,
            "callbackUrl": self._store_url(REFUND_CALLBACK_PATH),
        }
        encoded = _b64(_compact_json(request))
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": self.checksum(encoded),
            "X-MERCHANT-ID": self._cfg.merchant_id,
        }
        url = f"{self._endpoints.pg_base}/pg/v1/refund"
        try:
            data = await self._retry(lambda: self._send("POST", url, json={"request": encoded}, headers=headers))
        except (PaymentProviderError, httpx.RequestError) as exc:
            return self._failure(GatewayResult[RefundOutcome], "refund", exc, order_id=order.id)

        if data.get("success") is False:
            code, message = _text(data.get("code")), _text(data.get("message"))
            logger.error("phonepe_refund_failed", order_id=order.id, code=code, message=message)
            return GatewayResult[RefundOutcome].failure(
                GatewayErrorKind.REJECTED,
                message or "Refund failed",
                provider_code=code,
            )
        detail = data.get("data") if isinstance(data.get("data"), dict) else {}
        result = self._parsed(
            GatewayResult[RefundOutcome],
            "refund",
            lambda: RefundOutcome(
                merchant_transaction_id=mtid,
                original_transaction_id=order.authorization_transaction_id,
                amount=minor,
                code=data.get("code"),
                state=detail.get("state"),
            ),
            order_id=order.id,
        )
        if result.ok:
            self._log("phonepe_refund_succeeded", order_id=order.id, merchant_transaction_id=mtid, amount=minor)
        return result

    def _parsed(self, result_type, operation: str, build: Callable[[], Any], **context):
        """Build the result DTO; a response of the wrong shape is an INVALID_RESPONSE."""
        try:
            return result_type.success(build())
        except ValidationError as exc:
            logger.error(
                f"phonepe_{operation}_failed",
                error_kind=GatewayErrorKind.INVALID_RESPONSE.value,
                error=str(exc),
                **context,
            )
            return result_type.failure(GatewayErrorKind.INVALID_RESPONSE, f"Unexpected PhonePe {operation} response")

    def _failure(self, result_type, operation: str, exc: Exception, **context):
        if isinstance(exc, (PaymentRecoverableError, httpx.TransportError)):
            kind = GatewayErrorKind.UPSTREAM_UNAVAILABLE
            status_code = getattr(exc, "status_code", None)
            provider_code = None
        elif isinstance(exc, httpx.RequestError):
            # undecodable body or redirect loop
            kind = GatewayErrorKind.INVALID_RESPONSE
            status_code = None
            provider_code = None
        else:
            status_code = exc.status_code
            provider_code = exc.provider_code
            kind = GatewayErrorKind.REJECTED if status_code else GatewayErrorKind.INVALID_RESPONSE
        message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        logger.error(
            f"phonepe_{operation}_failed",
            error_kind=kind.value,
            status_code=status_code,
            provider_code=provider_code,
            error=message,
            **context,
        )
        return result_type.failure(kind, message, status_code=status_code, provider_code=provider_code)
