"""
Merchant transaction identifiers.

Every payment attempt is sent to PhonePe as ``MT{order_id}_{nonce}`` and every
refund as ``RF{order_id}_{nonce}``. The nonce only keeps identifiers unique on
the gateway side; it is never interpreted when decoding.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

NOT_FOUND = 0

# 100ns ticks between 0001-01-01 and the Unix epoch, so nonces keep the
# same magnitude as the identifiers PhonePe has already seen.
_EPOCH_TICKS = 621_355_968_000_000_000


class TransactionKind(str, Enum):
    PAYMENT = "MT"
    REFUND = "RF"


@dataclass(frozen=True)
class MerchantTransactionId:
    kind: TransactionKind
    order_id: int
    nonce: str

    def __str__(self) -> str:
        return f"{self.kind.value}{self.order_id}_{self.nonce}"


class MonotonicTicks:
    """Nonce source yielding strictly increasing UTC ticks, safe across threads."""

    def __init__(self, clock: Callable[[], int] = time.time_ns) -> None:
        self._clock = clock
        self._last = 0
        self._guard = threading.Lock()

    def __call__(self) -> int:
        with self._guard:
            now = _EPOCH_TICKS + self._clock() // 100
            self._last = now if now > self._last else self._last + 1
            return self._last


utc_ticks = MonotonicTicks()


def encode(
    order_id: int,
    nonce_source: Callable[[], object] = utc_ticks,
    kind: TransactionKind = TransactionKind.PAYMENT,
) -> str:
    if order_id <= 0:
        raise ValueError(f"order_id must be positive, got {order_id}")
    return str(MerchantTransactionId(kind=kind, order_id=order_id, nonce=str(nonce_source())))


def encode_refund(order_id: int, nonce_source: Callable[[], object] = utc_ticks) -> str:
    return encode(order_id, nonce_source, kind=TransactionKind.REFUND)


def parse(raw: Optional[str]) -> Optional[MerchantTransactionId]:
    """Parse an identifier; any malformed input yields None."""
    if not isinstance(raw, str) or len(raw) < 2:
        return None
    try:
        kind = TransactionKind(raw[:2])
    except ValueError:
        return None
    head, sep, nonce = raw[2:].partition("_")
    if not sep or not head.isascii() or not head.isdigit():
        return None
    order_id = int(head)
    if order_id <= 0:
        return None
    return MerchantTransactionId(kind=kind, order_id=order_id, nonce=nonce)


def decode(raw: Optional[str]) -> int:
    """Order id embedded in `raw`, or NOT_FOUND (0). Never raises."""
    parsed = parse(raw)
    return parsed.order_id if parsed else NOT_FOUND
