"""Entry point for running a Celery worker on the payments and default queues.

``celery -A infrastructure.tasks worker -Q payments,default`` does the same.
"""
from __future__ import annotations

from .config.celery import celery_app


def main() -> None:
    celery_app.worker_main(
        [
            "worker",
            "--hostname=worker@%h",
            "--queues=payments,default",
            "--loglevel=INFO",
        ]
    )


if __name__ == "__main__":
    main()
