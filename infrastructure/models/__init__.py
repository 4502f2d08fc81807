"""Infrastructure models package exports."""
from .base import Base, metadata
from .order import OrderModel, OrderNoteModel

__all__ = [
    "Base",
    "metadata",
    "OrderModel",
    "OrderNoteModel",
]
