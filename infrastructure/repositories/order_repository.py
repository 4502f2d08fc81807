"""SQLAlchemy-backed repository for orders and their notes."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import OrderNotFoundException
from domain.order.entity import Order, OrderNote, PaymentStatus
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel, OrderNoteModel


class SQLAlchemyOrderRepository(OrderRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        return Order(
            id=model.id,
            customer_id=model.customer_id,
            store_id=model.store_id,
            order_total=model.order_total,
            refunded_amount=model.refunded_amount,
            payment_status=model.payment_status,
            order_status=model.order_status,
            custom_order_number=model.custom_order_number,
            authorization_transaction_id=model.authorization_transaction_id,
            authorization_transaction_code=model.authorization_transaction_code,
            authorization_transaction_result=model.authorization_transaction_result,
            created_at=model.created_at,
            paid_at=model.paid_at,
        )

    @staticmethod
    def _note_to_entity(model: OrderNoteModel) -> OrderNote:
        return OrderNote(
            id=model.id,
            order_id=model.order_id,
            note=model.note,
            display_to_customer=model.display_to_customer,
            created_at=model.created_at,
        )

    async def _get_model(self, order_id: int, *, for_update: bool = False) -> Optional[OrderModel]:
        query = select(OrderModel).where(OrderModel.id == order_id)
        if for_update:
            # No-op on SQLite; row lock on PostgreSQL
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def add(self, order: Order) -> Order:
        model = OrderModel(
            id=order.id,
            customer_id=order.customer_id,
            store_id=order.store_id,
            custom_order_number=order.custom_order_number,
            order_total=order.order_total,
            refunded_amount=order.refunded_amount,
            payment_status=order.payment_status.value,
            order_status=order.order_status.value,
            authorization_transaction_id=order.authorization_transaction_id,
            authorization_transaction_code=order.authorization_transaction_code,
            authorization_transaction_result=order.authorization_transaction_result,
            created_at=order.created_at,
            paid_at=order.paid_at,
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return self._to_entity(model)

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        model = await self._get_model(order_id)
        return self._to_entity(model) if model else None

    async def get_for_update(self, order_id: int) -> Optional[Order]:
        model = await self._get_model(order_id, for_update=True)
        return self._to_entity(model) if model else None

    async def update(self, order: Order) -> Order:
        model = await self._get_model(order.id)
        if model is None:
            raise OrderNotFoundException(order.id)

        model.payment_status = order.payment_status.value
        model.order_status = order.order_status.value
        model.refunded_amount = order.refunded_amount
        model.authorization_transaction_id = order.authorization_transaction_id
        model.authorization_transaction_code = order.authorization_transaction_code
        model.authorization_transaction_result = order.authorization_transaction_result
        model.paid_at = order.paid_at

        await self.session.flush()
        await self.session.refresh(model)
        return self._to_entity(model)

    async def add_note(self, note: OrderNote) -> OrderNote:
        model = OrderNoteModel(
            order_id=note.order_id,
            note=note.note,
            display_to_customer=note.display_to_customer,
            created_at=note.created_at,
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return self._note_to_entity(model)

    async def list_notes(self, order_id: int) -> List[OrderNote]:
        result = await self.session.execute(
            select(OrderNoteModel)
            .where(OrderNoteModel.order_id == order_id)
            .order_by(OrderNoteModel.id.asc())
        )
        return [self._note_to_entity(model) for model in result.scalars().all()]

    async def find_recent(
        self,
        *,
        customer_id: int,
        store_id: int,
        payment_status: PaymentStatus,
        created_from: datetime,
        limit: int = 1,
    ) -> List[Order]:
        query = (
            select(OrderModel)
            .where(
                OrderModel.customer_id == customer_id,
                OrderModel.store_id == store_id,
                OrderModel.payment_status == payment_status.value,
                OrderModel.created_at >= created_from,
            )
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [self._to_entity(model) for model in result.scalars().all()]
