"""
Payment specific codes and PhonePe status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_INVALID = 60002
    UPSTREAM_UNAVAILABLE = 60005

    # Reconciliation errors (61xxx)
    MALFORMED_IDENTIFIER = 61000
    ORDER_NOT_FOUND = 61001
    OWNERSHIP_VIOLATION = 61002
    PAYLOAD_SCHEMA_INVALID = 61003
    UNSUPPORTED_OPERATION = 61004


# Webhook payload states and status-API result codes, both folded onto the
# three states the reconciler understands.
PHONEPE_STATE_COMPLETED = "COMPLETED"
PHONEPE_STATE_PENDING = "PENDING"
PHONEPE_STATE_FAILED = "FAILED"
PHONEPE_STATE_UNKNOWN = "UNKNOWN"

PHONEPE_EVENT_ORDER_COMPLETED = "pg.order.completed"

PHONEPE_STATUS_CODE_TO_STATE = {
    "PAYMENT_SUCCESS": PHONEPE_STATE_COMPLETED,
    "PAYMENT_PENDING": PHONEPE_STATE_PENDING,
    "PAYMENT_DECLINED": PHONEPE_STATE_FAILED,
    "PAYMENT_ERROR": PHONEPE_STATE_FAILED,
    "TIMED_OUT": PHONEPE_STATE_FAILED,
}
