"""Pytest bootstrap configuration.

Mandatory environment variables are set before any module that builds the
settings objects is imported; in-memory fakes for the order store live here.
"""
import copy
import json
import os
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PHONEPE__MERCHANT_ID", "MERCHANTUAT")
os.environ.setdefault("PHONEPE__SALT_KEY", "salt-key-for-tests")
os.environ.setdefault("PHONEPE__SALT_INDEX", "1")
os.environ.setdefault("PHONEPE__CLIENT_ID", "client-id")
os.environ.setdefault("PHONEPE__CLIENT_SECRET", "client-secret")
os.environ.setdefault("PHONEPE__STORE_LOCATION", "https://shop.example.com/")

from domain.common.unit_of_work import AbstractUnitOfWork  # noqa: E402
from domain.order.entity import Order, OrderNote, PaymentStatus  # noqa: E402
from domain.order.repository import OrderRepository  # noqa: E402
from domain.payment import checksum  # noqa: E402
from infrastructure.locks import InMemoryOrderLock  # noqa: E402


SALT_INDEX = 1


class InMemoryOrderRepository(OrderRepository):
    """Copies on read and write so callers only see what was persisted."""

    def __init__(self) -> None:
        self.orders: dict[int, Order] = {}
        self.notes: dict[int, List[OrderNote]] = {}
        self.updates = 0

    async def add(self, order: Order) -> Order:
        self.orders[order.id] = copy.deepcopy(order)
        return copy.deepcopy(order)

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        order = self.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def get_for_update(self, order_id: int) -> Optional[Order]:
        return await self.get_by_id(order_id)

    async def update(self, order: Order) -> Order:
        stored = copy.deepcopy(order)
        stored.notes = []
        self.orders[order.id] = stored
        self.updates += 1
        return copy.deepcopy(stored)

    async def add_note(self, note: OrderNote) -> OrderNote:
        self.notes.setdefault(note.order_id, []).append(note)
        return note

    async def list_notes(self, order_id: int) -> List[OrderNote]:
        return list(self.notes.get(order_id, []))

    async def find_recent(
        self,
        *,
        customer_id: int,
        store_id: int,
        payment_status: PaymentStatus,
        created_from: datetime,
        limit: int = 1,
    ) -> List[Order]:
        matches = [
            o for o in self.orders.values()
            if o.customer_id == customer_id
            and o.store_id == store_id
            and o.payment_status == payment_status
            and o.created_at >= created_from
        ]
        matches.sort(key=lambda o: (o.created_at, o.id), reverse=True)
        return [copy.deepcopy(o) for o in matches[:limit]]


class InMemoryUnitOfWork(AbstractUnitOfWork):

    def __init__(self, repository: InMemoryOrderRepository, *, readonly: bool = False) -> None:
        super().__init__(readonly=readonly)
        self.order_repository = repository
        self.commits = 0

    async def commit(self) -> None:
        self._committed = True
        self.commits += 1

    async def rollback(self) -> None:
        self._committed = False


@pytest.fixture
def order_repo() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def uow_factory(order_repo):
    def factory(*, readonly: bool = False) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(order_repo, readonly=readonly)

    return factory


@pytest.fixture
def order_lock() -> InMemoryOrderLock:
    return InMemoryOrderLock()


@pytest.fixture
def make_order(order_repo):
    """Seed an order straight into the fake store."""

    def _make(order_id: int = 482, **overrides) -> Order:
        fields = {
            "id": order_id,
            "customer_id": 7,
            "store_id": 1,
            "order_total": Decimal("499.50"),
        }
        fields.update(overrides)
        order = Order(**fields)
        order_repo.orders[order.id] = copy.deepcopy(order)
        return order

    return _make


def sign(body: bytes | str) -> str:
    return checksum.compute(body, SALT_INDEX)


def verify(body: bytes | str, signature: Optional[str]) -> bool:
    return checksum.verify(body, SALT_INDEX, signature)


def webhook_body(
    merchant_order_id: str = "MT482_638123456789000000",
    state: str = "COMPLETED",
    event: str = "pg.order.completed",
    details: Optional[list] = None,
) -> bytes:
    if details is None:
        details = [{"state": "COMPLETED", "transactionId": "T1", "paymentMode": "UPI"}] if state == "COMPLETED" else []
    return json.dumps(
        {
            "type": "CHECKOUT_ORDER_COMPLETED",
            "event": event,
            "payload": {
                "merchantId": "MERCHANTUAT",
                "merchantOrderId": merchant_order_id,
                "orderId": "OMO2403071446458436434329",
                "state": state,
                "amount": 49950,
                "expireAt": 1724866793837,
                "metaInfo": {},
                "paymentDetails": details,
            },
        }
    ).encode()
