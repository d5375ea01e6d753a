# backend/practicebook/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for Practicebook.

Periodic work is scheduled with crontab expressions in UTC.
"""

from typing import Any

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    # One new occurrence per active series per run
    "extend-active-series": {
        "task": "practicebook.tasks.series_tasks.extend_active_series",
        "schedule": crontab(hour=3, minute=0, day_of_week="mon"),
        "options": {"queue": "celery", "priority": 5},
    },
    "send-due-bills": {
        "task": "practicebook.tasks.billing_tasks.send_due_bills",
        "schedule": crontab(minute="*/10"),
        "options": {"queue": "celery", "priority": 7},
    },
    "complete-past-bookings": {
        "task": "practicebook.tasks.booking_tasks.complete_past_bookings",
        "schedule": crontab(minute="*/15"),
        "options": {"queue": "celery", "priority": 3},
    },
}

SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        "send-due-bills": {
            "task": "practicebook.tasks.billing_tasks.send_due_bills",
            "schedule": crontab(minute="*/2"),
            "options": {"queue": "celery", "priority": 7},
        },
    },
    "testing": {},
    "production": {},
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, testing)

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
