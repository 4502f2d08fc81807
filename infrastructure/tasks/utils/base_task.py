"""Base class for payment jobs: lifecycle events keyed by merchant transaction id."""
from __future__ import annotations

from celery import Task
from core.logging_config import get_logger

logger = get_logger(__name__)


def _transaction_of(kwargs) -> str | None:
    return (kwargs or {}).get("merchant_transaction_id")


class BaseTask(Task):
    # Task args may carry gateway identifiers only; payloads are never logged

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.error(
            "payment_task_failed",
            task_id=task_id,
            task_name=self.name,
            merchant_transaction_id=_transaction_of(kwargs),
            retries=self.request.retries,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.warning(
            "payment_task_retry",
            task_id=task_id,
            task_name=self.name,
            merchant_transaction_id=_transaction_of(kwargs),
            attempt=self.request.retries + 1,
            max_retries=self.max_retries,
            error=str(exc),
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):  # type: ignore[override]
        logger.info(
            "payment_task_done",
            task_id=task_id,
            task_name=self.name,
            merchant_transaction_id=_transaction_of(kwargs),
            status=retval.get("status") if isinstance(retval, dict) else None,
        )
        super().on_success(retval, task_id, args, kwargs)
