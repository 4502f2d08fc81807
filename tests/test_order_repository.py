from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from application.services.reconciler import OrderStateReconciler
from application.dtos.webhooks import classify, parse_envelope
from domain.order.entity import Order, OrderNote, OrderStatus, PaymentStatus
from infrastructure.database import create_tables
from infrastructure.locks import InMemoryOrderLock
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork, sqlalchemy_uow_factory
from tests.conftest import webhook_body


NOW = datetime.now(timezone.utc).replace(microsecond=0)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await create_tables(engine)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


async def _seed(session_factory, *orders):
    async with SQLAlchemyUnitOfWork(session_factory) as uow:
        for order in orders:
            await uow.order_repository.add(order)


def _order(order_id, minutes_ago=0, **overrides):
    fields = {
        "id": order_id,
        "customer_id": 7,
        "store_id": 1,
        "order_total": Decimal("499.50"),
        "created_at": NOW - timedelta(minutes=minutes_ago),
    }
    fields.update(overrides)
    return Order(**fields)


@pytest.mark.asyncio
async def test_add_and_get_roundtrip(session_factory):
    await _seed(session_factory, _order(482, custom_order_number="A-482"))

    async with SQLAlchemyUnitOfWork(session_factory, readonly=True) as uow:
        order = await uow.order_repository.get_by_id(482)
        missing = await uow.order_repository.get_by_id(999)

    assert missing is None
    assert order.custom_order_number == "A-482"
    assert order.order_total == Decimal("499.50")
    assert order.payment_status == PaymentStatus.PENDING
    assert order.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_find_recent_is_newest_first_within_window(session_factory):
    await _seed(
        session_factory,
        _order(1, minutes_ago=12),
        _order(2, minutes_ago=2),
        _order(3, minutes_ago=30),
        _order(4, minutes_ago=1, customer_id=8),
        _order(5, minutes_ago=1, payment_status="Paid"),
    )

    async with SQLAlchemyUnitOfWork(session_factory, readonly=True) as uow:
        recent = await uow.order_repository.find_recent(
            customer_id=7,
            store_id=1,
            payment_status=PaymentStatus.PENDING,
            created_from=NOW - timedelta(minutes=15),
            limit=5,
        )

    assert [o.id for o in recent] == [2, 1]


@pytest.mark.asyncio
async def test_update_and_notes_are_committed(session_factory):
    await _seed(session_factory, _order(482))

    async with SQLAlchemyUnitOfWork(session_factory) as uow:
        order = await uow.order_repository.get_for_update(482)
        order.record_authorization("T1", "PAYMENT_SUCCESS", "Payment completed via UPI")
        order.mark_paid()
        await uow.order_repository.update(order)
        await uow.order_repository.add_note(OrderNote(order_id=482, note="first"))
        await uow.order_repository.add_note(OrderNote(order_id=482, note="second"))

    async with SQLAlchemyUnitOfWork(session_factory, readonly=True) as uow:
        stored = await uow.order_repository.get_by_id(482)
        notes = await uow.order_repository.list_notes(482)

    assert stored.payment_status == PaymentStatus.PAID
    assert stored.order_status == OrderStatus.PROCESSING
    assert stored.authorization_transaction_id == "T1"
    assert [n.note for n in notes] == ["first", "second"]


@pytest.mark.asyncio
async def test_refunded_amount_is_persisted(session_factory):
    await _seed(session_factory, _order(482, payment_status="Paid", authorization_transaction_id="T1"))

    async with SQLAlchemyUnitOfWork(session_factory) as uow:
        order = await uow.order_repository.get_for_update(482)
        order.mark_refunded(Decimal("100"))
        await uow.order_repository.update(order)

    async with SQLAlchemyUnitOfWork(session_factory, readonly=True) as uow:
        stored = await uow.order_repository.get_by_id(482)

    assert stored.refunded_amount == Decimal("100")
    assert stored.refundable_amount == Decimal("399.50")
    assert stored.payment_status == PaymentStatus.PARTIALLY_REFUNDED


@pytest.mark.asyncio
async def test_failed_unit_of_work_rolls_back(session_factory):
    await _seed(session_factory, _order(482))

    with pytest.raises(RuntimeError):
        async with SQLAlchemyUnitOfWork(session_factory) as uow:
            order = await uow.order_repository.get_for_update(482)
            order.cancel()
            await uow.order_repository.update(order)
            raise RuntimeError("boom")

    async with SQLAlchemyUnitOfWork(session_factory, readonly=True) as uow:
        assert (await uow.order_repository.get_by_id(482)).order_status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_completed_webhook_against_database(session_factory):
    await _seed(session_factory, _order(482))
    factory = sqlalchemy_uow_factory(session_factory)
    reconciler = OrderStateReconciler(factory, InMemoryOrderLock())
    event = classify(parse_envelope(webhook_body()))

    await reconciler.handle(482, event)
    await reconciler.handle(482, event)

    async with factory(readonly=True) as uow:
        order = await uow.order_repository.get_by_id(482)
        notes = await uow.order_repository.list_notes(482)
    assert order.payment_status == PaymentStatus.PAID
    assert order.authorization_transaction_id == "T1"
    assert len(notes) == 2
