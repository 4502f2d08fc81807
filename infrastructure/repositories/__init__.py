from .order_repository import SQLAlchemyOrderRepository

__all__ = ["SQLAlchemyOrderRepository"]
