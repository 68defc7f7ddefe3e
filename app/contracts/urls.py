"""
URL configuration for the contracts API.

All routes are prefixed with /api/v1/contracts/ in config/urls.py. See
contracts.views for the route list.
"""

from rest_framework.routers import SimpleRouter

from contracts.views import ContractViewSet

router = SimpleRouter()
router.register(r"", ContractViewSet, basename="contract")

app_name = "contracts"
urlpatterns = router.urls
