"""
PhonePe webhook payloads and their classification into typed events.

The raw body is validated into a WebhookEnvelope and then narrowed into exactly
one of CompletedPayment, FailedPayment, PendingPayment or UnhandledEvent.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, ValidationInfo
from pydantic.alias_generators import to_camel

from domain.common.exceptions import PayloadSchemaInvalidException
from shared.codes.payment_codes import (
    PHONEPE_EVENT_ORDER_COMPLETED,
    PHONEPE_STATE_COMPLETED,
    PHONEPE_STATE_FAILED,
    PHONEPE_STATE_PENDING,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Instrument(_CamelModel):
    type: Optional[str] = None
    masked_card_number: Optional[str] = None
    masked_account_number: Optional[str] = None

    @property
    def masked_number(self) -> Optional[str]:
        return self.masked_card_number or self.masked_account_number


class Rail(_CamelModel):
    type: Optional[str] = None


class SplitInstrument(_CamelModel):
    amount: Optional[int] = None
    rail: Optional[Rail] = None
    instrument: Optional[Instrument] = None


class PaymentDetail(_CamelModel):
    payment_mode: Optional[str] = None
    transaction_id: Optional[str] = None
    timestamp: Optional[int] = None
    amount: Optional[int] = None
    state: Optional[str] = None
    split_instruments: list[SplitInstrument] = Field(default_factory=list)

    @field_validator("split_instruments", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class WebhookPayload(_CamelModel):
    merchant_id: Optional[str] = None
    merchant_order_id: Optional[str] = None
    order_id: Optional[str] = None
    state: Optional[str] = None
    amount: Optional[int] = None
    expire_at: Optional[int] = None
    meta_info: dict[str, Any] = Field(default_factory=dict)
    payment_details: list[PaymentDetail] = Field(default_factory=list)

    @field_validator("payment_details", "meta_info", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return {} if info.field_name == "meta_info" else []
        return value

    def completed_detail(self) -> Optional[PaymentDetail]:
        return next((d for d in self.payment_details or [] if d.state == PHONEPE_STATE_COMPLETED), None)


class WebhookEnvelope(_CamelModel):
    type: Optional[str] = None
    event: Optional[str] = None
    payload: Optional[WebhookPayload] = None


@dataclass(frozen=True)
class CompletedPayment:
    event: Optional[str]
    payload: WebhookPayload


@dataclass(frozen=True)
class FailedPayment:
    event: Optional[str]
    payload: WebhookPayload


@dataclass(frozen=True)
class PendingPayment:
    event: Optional[str]
    payload: WebhookPayload


@dataclass(frozen=True)
class UnhandledEvent:
    event: Optional[str]
    payload: WebhookPayload


PaymentEvent = Union[CompletedPayment, FailedPayment, PendingPayment, UnhandledEvent]


def parse_envelope(body: bytes | str) -> WebhookEnvelope:
    """Validate a raw webhook body.

    Raises PayloadSchemaInvalidException for invalid JSON, a non-object body,
    a body that does not match the schema, or a missing payload.
    """
    try:
        data = json.loads(body)
    except (ValueError, TypeError):
        raise PayloadSchemaInvalidException("Invalid JSON payload")
    if not isinstance(data, dict):
        raise PayloadSchemaInvalidException("Invalid JSON payload")
    try:
        envelope = WebhookEnvelope.model_validate(data)
    except ValidationError as exc:
        raise PayloadSchemaInvalidException(
            "Invalid JSON payload",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        )
    if envelope.payload is None:
        raise PayloadSchemaInvalidException("Invalid webhook payload")
    return envelope


def classify(envelope: WebhookEnvelope) -> PaymentEvent:
    payload = envelope.payload
    if payload is None:
        raise PayloadSchemaInvalidException("Invalid webhook payload")
    state = (payload.state or "").upper()
    if envelope.event == PHONEPE_EVENT_ORDER_COMPLETED and state == PHONEPE_STATE_COMPLETED:
        return CompletedPayment(event=envelope.event, payload=payload)
    if state == PHONEPE_STATE_FAILED:
        return FailedPayment(event=envelope.event, payload=payload)
    if state == PHONEPE_STATE_PENDING:
        return PendingPayment(event=envelope.event, payload=payload)
    return UnhandledEvent(event=envelope.event, payload=payload)
