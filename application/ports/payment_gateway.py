"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

from application.dtos.payments import (
    AccessToken,
    GatewayResult,
    PaymentRedirect,
    RefundOutcome,
    StatusQueryOutcome,
)
from domain.order.entity import Order


@runtime_checkable
class PaymentGateway(Protocol):
    """Redirect-based gateway.

    Every call returns a GatewayResult; implementations never raise for
    network, HTTP or parsing failures.
    """

    provider: str

    async def acquire_access_token(self) -> GatewayResult[AccessToken]: ...

    async def initiate_payment(self, order: Order) -> GatewayResult[PaymentRedirect]: ...

    async def query_status(self, merchant_transaction_id: str) -> GatewayResult[StatusQueryOutcome]: ...

    async def refund(self, order: Order, amount: Decimal) -> GatewayResult[RefundOutcome]: ...

    def verify_signature(self, payload: bytes | str, signature: str | None) -> bool: ...
