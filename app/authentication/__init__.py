"""
Authentication application.

Email-based users with a marketplace role (client, freelancer, admin),
registration and JWT token endpoints.

Key components:
    - User model: Email login, role, Stripe connected account id
    - RegisterView / CurrentUserView: Account API

Usage:
    from authentication.models import User, UserRole
"""
