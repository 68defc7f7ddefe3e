"""
Seed the notification types emitted by the escrow lifecycle.

payment_received: funds captured and held in escrow
escrow_released: funds transferred to the freelancer
"""

from django.db import migrations

ESCROW_TYPES = [
    {
        "key": "payment_received",
        "display_name": "Payment Received",
        "title_template": "Payment received for {contract_title}",
        "body_template": (
            "{amount_display} is now held in escrow and will be released "
            "when the work is approved."
        ),
    },
    {
        "key": "escrow_released",
        "display_name": "Escrow Released",
        "title_template": "Escrow released for {contract_title}",
        "body_template": "{amount_display} has been released to your account.",
    },
]


def seed_types(apps, schema_editor):
    NotificationType = apps.get_model("notifications", "NotificationType")
    for definition in ESCROW_TYPES:
        NotificationType.objects.get_or_create(
            key=definition["key"],
            defaults={k: v for k, v in definition.items() if k != "key"},
        )


def remove_types(apps, schema_editor):
    NotificationType = apps.get_model("notifications", "NotificationType")
    NotificationType.objects.filter(
        key__in=[definition["key"] for definition in ESCROW_TYPES],
        notifications__isnull=True,
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("notifications", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_types, remove_types),
    ]
