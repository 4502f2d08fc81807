"""Business exceptions shared by the domain and infrastructure layers.

The core layer only maps these to HTTP responses; the domain never imports core.
"""
from __future__ import annotations

from typing import Optional

from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """Base class for all business errors."""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class MalformedIdentifierException(BusinessException):
    def __init__(self, raw: Optional[str] = None):
        super().__init__(
            code=PaymentCode.MALFORMED_IDENTIFIER,
            message="Invalid merchantOrderId",
            error_type="MalformedIdentifier",
            details={"merchant_order_id": raw} if raw else None,
            field="merchantOrderId",
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[int] = None):
        super().__init__(
            code=PaymentCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="OrderNotFound",
            details={"order_id": order_id} if order_id is not None else None,
        )


class OwnershipViolationException(BusinessException):
    """Raised when an order is requested by a customer who does not own it.

    Carries no details on purpose: callers only ever see a redirect.
    """

    def __init__(self):
        super().__init__(
            code=PaymentCode.OWNERSHIP_VIOLATION,
            message="Access denied",
            error_type="OwnershipViolation",
        )


class SignatureInvalidException(BusinessException):
    def __init__(self, message: str = "Invalid signature"):
        super().__init__(
            code=PaymentCode.SIGNATURE_INVALID,
            message=message,
            error_type="SignatureInvalid",
        )


class PayloadSchemaInvalidException(BusinessException):
    def __init__(self, message: str = "Invalid JSON payload", *, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.PAYLOAD_SCHEMA_INVALID,
            message=message,
            error_type="PayloadSchemaInvalid",
            details=details,
        )


class UpstreamUnavailableException(BusinessException):
    def __init__(self, message: str = "An error occurred processing your payment", *, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.UPSTREAM_UNAVAILABLE,
            message=message,
            error_type="UpstreamUnavailable",
            details=details,
        )


class UnsupportedOperationException(BusinessException):
    def __init__(self, operation: str):
        super().__init__(
            code=PaymentCode.UNSUPPORTED_OPERATION,
            message=f"{operation} method not supported",
            error_type="UnsupportedOperation",
            details={"operation": operation},
        )
