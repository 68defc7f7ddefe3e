"""
Helper functions with no Django model dependencies.

Functions:
    calculate_pagination: Page metadata for list endpoints
    get_client_ip: Client IP extraction from request
    hash_string: Hex digest of a string
"""

from __future__ import annotations

import hashlib
import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


def calculate_pagination(total: int, page: int, limit: int) -> dict:
    """
    Calculate pagination metadata.

    Args:
        total: Total number of items
        page: Requested page number (1-indexed)
        limit: Items per page

    Returns:
        Dict with page, limit, total, pages and the slice offset

    Example:
        calculate_pagination(total=45, page=2, limit=20)
        # {"page": 2, "limit": 20, "total": 45, "pages": 3, "offset": 20}
    """
    limit = max(1, limit)
    pages = math.ceil(total / limit) if total else 0
    page = max(1, page)

    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
        "offset": (page - 1) * limit,
    }


def hash_string(value: str, algorithm: str = "sha256") -> str:
    """Return the hex digest of ``value`` using ``algorithm``."""
    return hashlib.new(algorithm, value.encode()).hexdigest()


def get_client_ip(request: HttpRequest) -> str:
    """
    Extract client IP from request, handling proxies.

    Takes the first address from X-Forwarded-For when present.
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "")
