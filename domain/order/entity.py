"""
Order aggregate as seen by the payment integration.

The order itself is owned by the storefront; this entity only carries the
subset of fields the gateway integration reads or mutates.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    AUTHORIZED = "Authorized"
    PAID = "Paid"
    PARTIALLY_REFUNDED = "PartiallyRefunded"
    REFUNDED = "Refunded"
    VOIDED = "Voided"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETE = "Complete"
    CANCELLED = "Cancelled"


_SETTLED = frozenset({PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED})


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class OrderNote:
    order_id: int
    note: str
    display_to_customer: bool = False
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.created_at = _ensure_utc(self.created_at) or datetime.now(timezone.utc)


@dataclass
class Order:
    """
    Order aggregate root.

    Rules:
    1. payment_status only moves forward: once Paid it never returns to Pending.
    2. Cancellation by the gateway only applies to orders still Pending.
    3. Refunds only apply to Paid or partially refunded orders and never
       add up past order_total.
    """

    id: int
    customer_id: int
    store_id: int
    order_total: Decimal
    refunded_amount: Decimal = Decimal("0")
    payment_status: PaymentStatus = PaymentStatus.PENDING
    order_status: OrderStatus = OrderStatus.PENDING
    custom_order_number: Optional[str] = None
    authorization_transaction_id: Optional[str] = None
    authorization_transaction_code: Optional[str] = None
    authorization_transaction_result: Optional[str] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    notes: list[OrderNote] = field(default_factory=list)

    def __post_init__(self):
        if self.id is None or self.id <= 0:
            raise DomainValidationException(f"Order id must be positive: {self.id}", field="id")
        if not isinstance(self.order_total, Decimal):
            self.order_total = Decimal(str(self.order_total))
        if not isinstance(self.refunded_amount, Decimal):
            self.refunded_amount = Decimal(str(self.refunded_amount or 0))
        self.payment_status = PaymentStatus(self.payment_status)
        self.order_status = OrderStatus(self.order_status)
        self.created_at = _ensure_utc(self.created_at) or datetime.now(timezone.utc)
        self.paid_at = _ensure_utc(self.paid_at)
        if self.custom_order_number is None:
            self.custom_order_number = str(self.id)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def is_settled(self) -> bool:
        """Paid at some point; gateway events may no longer regress it."""
        return self.payment_status in _SETTLED

    @property
    def is_failed(self) -> bool:
        return self.payment_status == PaymentStatus.VOIDED or self.order_status == OrderStatus.CANCELLED

    def belongs_to(self, customer_id: Optional[int]) -> bool:
        return customer_id is not None and self.customer_id == customer_id

    def record_authorization(self, transaction_id: Optional[str], code: str, result: str) -> bool:
        """Store the gateway's authorization fields.

        Once the order is Paid only the transaction that paid it may touch them;
        returns whether anything was written.
        """
        if self.is_settled and transaction_id != self.authorization_transaction_id:
            return False
        self.authorization_transaction_id = transaction_id
        self.authorization_transaction_code = code
        self.authorization_transaction_result = result
        return True

    def record_failure(self, code: str, result: str) -> bool:
        """Store a failed attempt's code/result unless the order is already paid."""
        if self.is_settled:
            return False
        self.authorization_transaction_code = code
        self.authorization_transaction_result = result
        return True

    @property
    def refundable_amount(self) -> Decimal:
        return max(self.order_total - self.refunded_amount, Decimal("0"))

    def mark_paid(self) -> bool:
        """Pending -> Paid. Returns True only when the transition happened.

        The order moves on to Processing, including one the gateway cancelled
        earlier: a completed payment outranks a stale failure.
        """
        if self.payment_status != PaymentStatus.PENDING:
            return False
        self.payment_status = PaymentStatus.PAID
        self.paid_at = datetime.now(timezone.utc)
        if self.order_status in (OrderStatus.PENDING, OrderStatus.CANCELLED):
            self.order_status = OrderStatus.PROCESSING
        return True

    def cancel(self) -> bool:
        """Pending -> Cancelled on the order status; payment status is untouched."""
        if self.is_settled or self.order_status != OrderStatus.PENDING:
            return False
        self.order_status = OrderStatus.CANCELLED
        return True

    def ensure_refundable(self, amount: Decimal) -> None:
        if self.payment_status not in (PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED):
            raise DomainValidationException(
                f"Cannot refund an order in payment status {self.payment_status.value}",
                field="payment_status",
            )
        if amount <= 0 or amount > self.refundable_amount:
            raise DomainValidationException(
                f"Invalid refund amount: {amount} (refundable: {self.refundable_amount})",
                field="amount",
            )

    def mark_refunded(self, amount: Decimal) -> None:
        """Add a refund; the order is Refunded once the refunds cover the total."""
        amount = Decimal(amount)
        self.ensure_refundable(amount)
        self.refunded_amount += amount
        if self.refunded_amount >= self.order_total:
            self.payment_status = PaymentStatus.REFUNDED
        else:
            self.payment_status = PaymentStatus.PARTIALLY_REFUNDED

    def add_note(self, note: str, *, display_to_customer: bool = False) -> OrderNote:
        entry = OrderNote(order_id=self.id, note=note, display_to_customer=display_to_customer)
        self.notes.append(entry)
        return entry
