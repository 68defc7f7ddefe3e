"""
Payment services.

- EscrowService: Transaction lifecycle and gateway calls
- PlatformSettingsService: Versioned fee configuration and commission tiers

Usage:
    from payments.services import EscrowService

    breakdown = EscrowService.calculate_fees(150000)
"""

from payments.services.escrow_service import EscrowService, PaymentIntentCreated
from payments.services.settings_service import PlatformSettingsService

__all__ = [
    "EscrowService",
    "PaymentIntentCreated",
    "PlatformSettingsService",
]
