"""
Provider-side failures raised inside gateway adapters.

They never cross the gateway port: PhonePeClient turns them into
GatewayResult failures.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PaymentProviderError(BusinessException):
    def __init__(self, message: str, *, provider: str, provider_code: str | None = None, details: Optional[dict] = None):
        full_details = {"provider": provider, "provider_code": provider_code}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="PaymentProviderError",
            details=full_details,
        )

    @property
    def provider_code(self) -> Optional[str]:
        return (self.details or {}).get("provider_code")

    @property
    def status_code(self) -> Optional[int]:
        return (self.details or {}).get("status_code")


class PaymentRecoverableError(PaymentProviderError):
    """Transient upstream failure (5xx); safe to retry."""

    def __init__(self, message: str, *, provider: str, provider_code: str | None = None, details: Optional[dict] = None):
        super().__init__(message, provider=provider, provider_code=provider_code, details=details)
        self.code = PaymentCode.PROVIDER_RECOVERABLE
        self.error_type = "PaymentRecoverableError"
