"""
Order repository interface: what the payment integration needs from the order store.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .entity import Order, OrderNote, PaymentStatus


class OrderRepository(ABC):

    @abstractmethod
    async def add(self, order: Order) -> Order:
        """Insert an order; used when importing storefront orders."""

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """Load an order without locking it."""

    @abstractmethod
    async def get_for_update(self, order_id: int) -> Optional[Order]:
        """Load an order for a state change (row lock where the store supports it)."""

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """Persist status and authorization fields."""

    @abstractmethod
    async def add_note(self, note: OrderNote) -> OrderNote:
        """Append an order note."""

    @abstractmethod
    async def list_notes(self, order_id: int) -> List[OrderNote]:
        """Notes for an order, oldest first."""

    @abstractmethod
    async def find_recent(
        self,
        *,
        customer_id: int,
        store_id: int,
        payment_status: PaymentStatus,
        created_from: datetime,
        limit: int = 1,
    ) -> List[Order]:
        """Orders matching customer/store/status created at or after `created_from`, newest first."""
