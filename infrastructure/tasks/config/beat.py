"""Celery beat schedule.

Status reconciles are scheduled per payment with a countdown, so nothing runs
periodically yet.
"""
from __future__ import annotations

CELERY_BEAT_SCHEDULE: dict = {}
