"""
Payments app: the escrow core.

This app handles:
- Commission policy and integer-cent fee calculation
- Versioned platform settings and commission tiers
- The Transaction state machine and its gateway outbox
- Stripe webhooks and the escrow background tasks

Related apps:
    - contracts: Milestones are marked paid when escrow is released
    - notifications: Payment received / escrow released notifications

Usage:
    from payments.services import EscrowService

    created = EscrowService.create_payment_intent(
        contract_id, client=user, milestone_id=milestone_id
    )
    EscrowService.confirm_payment(created.transaction.stripe_payment_intent_id)
    EscrowService.release_escrow(created.transaction.id, actor=user)
"""
