"""
URL configuration for the escrow API.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Registration, JWT tokens, current user
    /api/v1/transactions/          - Escrow payments
        payment-intent/            - Create PaymentIntent for a contract / milestone
        confirm/                   - Confirm payment into escrow
        {id}/                      - Transaction detail
        {id}/release/              - Release escrow to freelancer
        {id}/refund/               - Refund to client
        {id}/cancel/               - Cancel before escrow
        history/                   - Paginated transaction history
        stats/                     - Per-status aggregates
        calculate-fees/            - Fee breakdown preview
        webhooks/stripe/           - Stripe webhook endpoint (POST)
    /api/v1/settings/              - Platform settings (versioned)
        history/                   - Settings versions
        calculate-commission/      - Commission preview
        tiers/                     - Commission tiers
        tiers/{id}/deactivate/     - Deactivate tier
    /api/v1/contracts/             - Contracts, milestones, signatures, amendments
    /api/v1/notifications/         - In-app notifications

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("transactions/", include("payments.urls")),
    path("settings/", include("payments.settings_urls")),
    path("contracts/", include("contracts.urls")),
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Escrow Admin"
admin.site.site_title = "Escrow Admin Portal"
admin.site.index_title = "Contracts and payments"
