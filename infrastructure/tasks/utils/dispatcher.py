"""Small dispatching helpers to decouple Celery from callers."""
from __future__ import annotations

from typing import Any, Dict, Optional

from core.logging_config import get_logger
from ..config.celery import celery_app


logger = get_logger(__name__)

TASK_RECONCILE_STATUS = "payments.phonepe.reconcile_status"


class TaskDispatcher:
    """Facade the application layer uses to schedule background work."""

    def schedule_status_reconcile(self, merchant_transaction_id: str, countdown: int) -> Optional[str]:
        """Query PhonePe for this attempt after `countdown` seconds and reconcile the order."""
        result = celery_app.send_task(
            TASK_RECONCILE_STATUS,
            kwargs={"merchant_transaction_id": merchant_transaction_id},
            countdown=countdown,
        )
        logger.info(
            "status_reconcile_scheduled",
            merchant_transaction_id=merchant_transaction_id,
            countdown=countdown,
            task_id=result.id,
        )
        return result.id

    def enqueue(self, task_name: str, *, args: tuple | None = None, kwargs: Dict[str, Any] | None = None) -> None:
        """Schedule an arbitrary task by name."""
        celery_app.send_task(task_name, args=args or (), kwargs=kwargs or {})
