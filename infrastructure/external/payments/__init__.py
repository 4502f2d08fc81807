"""
Factory for the payment gateway client.
"""
from __future__ import annotations

from typing import Optional

import httpx

from core.settings import PaymentSettings, payment_settings
from application.ports.payment_gateway import PaymentGateway
from .phonepe_client import PhonePeClient


def get_payment_gateway(
    config: Optional[PaymentSettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PaymentGateway:
    cfg = config or payment_settings
    return PhonePeClient(
        cfg.phonepe,
        timeouts=cfg.timeouts.model_dump(),
        retry={"max": cfg.retry.max, "base": cfg.retry.base_backoff},
        transport=transport,
    )


__all__ = ["PhonePeClient", "get_payment_gateway"]
