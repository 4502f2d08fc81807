"""
Payment DTOs (Pydantic v2) used at application boundaries.

Gateway calls never raise across the port: they return a GatewayResult that
holds either a value or a GatewayError.
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field
from pydantic.types import condecimal

T = TypeVar("T")


class GatewayErrorKind(str, Enum):
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"  # network error, timeout, 5xx
    REJECTED = "rejected"                          # 4xx or an explicit failure code
    INVALID_RESPONSE = "invalid_response"          # unparseable or incomplete body
    CONFIGURATION = "configuration"                # missing credentials / bad input


class GatewayError(BaseModel):
    kind: GatewayErrorKind
    message: str
    status_code: Optional[int] = None
    provider_code: Optional[str] = None


class GatewayResult(BaseModel, Generic[T]):
    value: Optional[T] = None
    error: Optional[GatewayError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    @classmethod
    def success(cls, value: T) -> "GatewayResult[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        kind: GatewayErrorKind,
        message: str,
        *,
        status_code: Optional[int] = None,
        provider_code: Optional[str] = None,
    ) -> "GatewayResult[T]":
        return cls(error=GatewayError(kind=kind, message=message, status_code=status_code, provider_code=provider_code))


class AccessToken(BaseModel):
    access_token: str
    token_type: Optional[str] = None
    expires_at: Optional[int] = None


class PaymentRedirect(BaseModel):
    merchant_transaction_id: str
    redirect_url: str
    gateway_order_id: Optional[str] = None
    state: Optional[str] = None
    expire_at: Optional[int] = None


class StatusQueryOutcome(BaseModel):
    merchant_transaction_id: str
    success: bool
    code: Optional[str] = None
    state: str
    transaction_id: Optional[str] = None
    payment_mode: Optional[str] = None
    amount: Optional[int] = None
    message: Optional[str] = None


class RefundOutcome(BaseModel):
    merchant_transaction_id: str
    original_transaction_id: Optional[str] = None
    amount: int
    code: Optional[str] = None
    state: Optional[str] = None


class RefundRequest(BaseModel):
    amount: condecimal(gt=0, decimal_places=2)  # type: ignore[valid-type]


class PaymentStatusView(BaseModel):
    """Body of the status polling endpoint."""

    success: bool
    status: Optional[str] = None
    message: str
    redirect_url: Optional[str] = Field(default=None, serialization_alias="redirectUrl")


class PaymentStatusPage(BaseModel):
    """Model rendered by the per-order status-check page."""

    order_id: int
    custom_order_number: str
    order_total: Decimal
    payment_status: str
    order_status: str
    is_processing: bool
    check_status_url: str


class GenericStatusPage(BaseModel):
    message: str
    show_order_history: bool = True
    order_history_url: str
