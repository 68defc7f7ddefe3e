"""
URL configuration for platform settings.

Routes:
    GET/PATCH /                        - Current settings / append a version
    GET       /history/                - Settings versions
    POST      /calculate-commission/   - Fee breakdown under current settings
    GET/POST  /tiers/                  - Commission tiers
    POST      /tiers/{id}/deactivate/  - Deactivate tier

All routes are prefixed with /api/v1/settings/ in config/urls.py.
"""

from django.urls import path

from payments.views import (
    CalculateCommissionView,
    CommissionTierDeactivateView,
    CommissionTierListView,
    PlatformSettingsHistoryView,
    PlatformSettingsView,
)

app_name = "platform_settings"

urlpatterns = [
    path("", PlatformSettingsView.as_view(), name="current"),
    path("history/", PlatformSettingsHistoryView.as_view(), name="history"),
    path(
        "calculate-commission/",
        CalculateCommissionView.as_view(),
        name="calculate-commission",
    ),
    path("tiers/", CommissionTierListView.as_view(), name="tiers"),
    path(
        "tiers/<int:tier_id>/deactivate/",
        CommissionTierDeactivateView.as_view(),
        name="tier-deactivate",
    ),
]
