import pytest

from domain.payment import transaction_id
from domain.payment.transaction_id import MonotonicTicks, TransactionKind


def test_decode_known_identifier():
    assert transaction_id.decode("MT482_638123456789000000") == 482


@pytest.mark.parametrize("order_id", [1, 482, 2**31 - 1, 10**12])
def test_encode_then_decode_returns_order_id(order_id):
    raw = transaction_id.encode(order_id, lambda: 638123456789000000)
    assert raw == f"MT{order_id}_638123456789000000"
    assert transaction_id.decode(raw) == order_id


@pytest.mark.parametrize(
    "raw",
    ["", None, "XY123_1", "MT_1", "MTabc_1", "MT123", "MT0_5", "MT-4_1", "MT１２_1", "M"],
)
def test_decode_malformed_yields_not_found(raw):
    assert transaction_id.decode(raw) == transaction_id.NOT_FOUND


def test_refund_identifier_uses_refund_prefix():
    raw = transaction_id.encode_refund(482, lambda: 9)
    assert raw == "RF482_9"
    parsed = transaction_id.parse(raw)
    assert parsed.kind == TransactionKind.REFUND
    assert parsed.order_id == 482
    assert parsed.nonce == "9"


def test_encode_rejects_non_positive_order_id():
    with pytest.raises(ValueError):
        transaction_id.encode(0)


def test_monotonic_ticks_strictly_increase_on_a_frozen_clock():
    ticks = MonotonicTicks(clock=lambda: 0)
    first, second, third = ticks(), ticks(), ticks()
    assert first < second < third


def test_default_nonce_makes_identifiers_unique():
    assert transaction_id.encode(5) != transaction_id.encode(5)
