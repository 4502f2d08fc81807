"""
Order tables as the payment integration sees them.

Table mapping only; business rules live in domain.order.entity.Order.
"""
from sqlalchemy import (
    Boolean, Column, Integer, String, Numeric, DateTime, Text,
    Index, ForeignKey
)
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, nullable=False, index=True, comment="Storefront customer")
    store_id = Column(Integer, nullable=False, default=0, comment="Storefront store")
    custom_order_number = Column(String(100), nullable=True)

    order_total = Column(Numeric(precision=18, scale=4), nullable=False)
    refunded_amount = Column(Numeric(precision=18, scale=4), nullable=False, default=0)

    payment_status = Column(String(32), nullable=False, default="Pending", index=True)
    order_status = Column(String(32), nullable=False, default="Pending")

    authorization_transaction_id = Column(String(200), nullable=True, index=True)
    authorization_transaction_code = Column(String(200), nullable=True)
    authorization_transaction_result = Column(String(500), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
    paid_at = Column(DateTime(timezone=True), nullable=True)

    notes = relationship("OrderNoteModel", back_populates="order", lazy="select", order_by="OrderNoteModel.id")

    __table_args__ = (
        # Fallback lookup: customer + store + payment status, newest first
        Index("ix_orders_customer_store_status", "customer_id", "store_id", "payment_status", "created_at"),
    )

    def __repr__(self):
        return (
            f"<OrderModel(id={self.id}, customer_id={self.customer_id}, "
            f"payment_status='{self.payment_status}', order_status='{self.order_status}')>"
        )


class OrderNoteModel(Base):
    __tablename__ = "order_notes"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    note = Column(Text, nullable=False)
    display_to_customer = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    order = relationship("OrderModel", back_populates="notes")

    def __repr__(self):
        return f"<OrderNoteModel(id={self.id}, order_id={self.order_id})>"
