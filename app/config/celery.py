"""
Celery configuration for the escrow API.

Celery runs the background side of the payment lifecycle:
- Processing stored Stripe webhook events
- Auto-releasing escrow after the hold period
- Marking released transfers as paid out

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps; periodic schedules
live in the database (django-celery-beat) and are created by data migrations.

Usage:
    from payments.tasks import process_webhook_event

    process_webhook_event.delay(webhook_event_id)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
