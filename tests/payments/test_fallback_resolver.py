from datetime import datetime, timedelta, timezone

import pytest

from application.services.fallback_resolver import FallbackResolver
from domain.order.entity import PaymentStatus


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def resolver(uow_factory):
    return FallbackResolver(uow_factory, window_minutes=15, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_pending_order_from_five_minutes_ago_is_found(resolver, make_order):
    make_order(482, created_at=NOW - timedelta(minutes=5))

    order = await resolver.find_pending(customer_id=7, store_id=1)

    assert order is not None
    assert order.id == 482


@pytest.mark.asyncio
async def test_most_recent_order_wins(resolver, make_order):
    make_order(10, created_at=NOW - timedelta(minutes=12))
    make_order(11, created_at=NOW - timedelta(minutes=2))
    make_order(12, created_at=NOW - timedelta(minutes=7))

    order = await resolver.find_pending(7, 1)

    assert order.id == 11


@pytest.mark.asyncio
async def test_orders_outside_window_are_ignored(resolver, make_order):
    make_order(482, created_at=NOW - timedelta(minutes=16))

    assert await resolver.find_pending(7, 1) is None


@pytest.mark.asyncio
async def test_other_customer_store_and_status_are_ignored(resolver, make_order):
    recent = NOW - timedelta(minutes=1)
    make_order(1, customer_id=8, created_at=recent)
    make_order(2, store_id=2, created_at=recent)
    make_order(3, payment_status="Paid", created_at=recent)

    assert await resolver.find_pending(7, 1) is None
    paid = await resolver.find_paid(7, 1)
    assert paid.id == 3


@pytest.mark.asyncio
async def test_no_orders_yields_none(resolver):
    assert await resolver.resolve(7, 1, PaymentStatus.PENDING) is None


@pytest.mark.asyncio
async def test_window_can_be_overridden_per_call(resolver, make_order):
    make_order(482, created_at=NOW - timedelta(minutes=40))

    assert await resolver.resolve(7, 1, PaymentStatus.PENDING) is None
    found = await resolver.resolve(7, 1, PaymentStatus.PENDING, window_minutes=60)
    assert found.id == 482
