"""
Order payment events.

Dataclass events record facts that downstream handlers act on exactly once
(fulfillment, notifications). The domain stays free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import uuid


@dataclass
class OrderPaymentEvent:
    order_id: int
    transaction_id: Optional[str] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class OrderPaid(OrderPaymentEvent):
    payment_mode: Optional[str] = None


@dataclass
class OrderPaymentFailed(OrderPaymentEvent):
    state: Optional[str] = None


@dataclass
class OrderRefunded(OrderPaymentEvent):
    amount: Decimal = Decimal("0")
