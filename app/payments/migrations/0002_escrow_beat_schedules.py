"""
Register celery-beat schedules for the escrow tasks.

    auto_release_escrow      every 15 minutes
    process_payout_batch     every 30 minutes
    retry_failed_webhooks    every 10 minutes
    cleanup_stuck_webhooks   every 30 minutes
"""

from django.db import migrations

ESCROW_SCHEDULES = [
    {
        "name": "Auto-release Escrow",
        "task": "payments.tasks.auto_release_escrow",
        "every": 15,
        "description": "Releases held transactions whose escrow_release_date has passed.",
    },
    {
        "name": "Process Payout Batch",
        "task": "payments.tasks.process_payout_batch",
        "every": 30,
        "description": "Marks released transactions paid out once the transfer is confirmed.",
    },
    {
        "name": "Retry Failed Webhooks",
        "task": "payments.tasks.retry_failed_webhooks",
        "every": 10,
        "description": "Re-queues failed Stripe webhook events below the retry cap.",
    },
    {
        "name": "Cleanup Stuck Webhooks",
        "task": "payments.tasks.cleanup_stuck_webhooks",
        "every": 30,
        "description": "Fails webhook events stuck in processing so they are retried.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in ESCROW_SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in ESCROW_SCHEDULES],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
