"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Example: ``PHONEPE__MERCHANT_ID=M123``, ``TIMEOUTS__READ=5``.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class PhonePeSettings(BaseModel):
    merchant_id: str = ""
    salt_key: str = ""
    salt_index: int = 1
    use_sandbox: bool = True

    # OAuth client-credentials grant used by the checkout API
    client_id: str = ""
    client_secret: str = ""
    client_version: str = "1"

    additional_fee: Decimal = Decimal("0")
    additional_fee_percentage: bool = False

    production_base_url: str = "https://api.phonepe.com/apis/pg"
    sandbox_base_url: str = "https://api-preprod.phonepe.com/apis/pg-sandbox"
    production_auth_url: str = "https://api.phonepe.com/apis/identity-manager"
    sandbox_auth_url: Optional[str] = None  # defaults to sandbox_base_url

    expire_after_seconds: int = 1200
    store_location: str = "http://localhost:8000/"
    # Seconds after initiation to run a status-query reconcile; 0 disables it
    status_poll_delay_seconds: int = 0


class StorefrontUrls(BaseModel):
    homepage: str = "/"
    checkout_completed: str = "/checkout/completed/{order_id}"
    cart: str = "/cart"
    order_history: str = "/order/history"


class LockSettings(BaseModel):
    backend: Literal["memory", "redis"] = "memory"
    timeout: int = 30
    blocking_timeout: int = 10


class PaymentSettings(BaseSettings):
    phonepe: PhonePeSettings = Field(default_factory=PhonePeSettings)
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    storefront: StorefrontUrls = Field(default_factory=StorefrontUrls)
    lock: LockSettings = Field(default_factory=LockSettings)
    fallback_window_minutes: int = 15

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
