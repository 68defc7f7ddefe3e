"""Django app configuration for contracts."""

from django.apps import AppConfig


class ContractsConfig(AppConfig):
    """Contracts, milestones, signatures and amendments."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "contracts"
    verbose_name = "Contracts"
