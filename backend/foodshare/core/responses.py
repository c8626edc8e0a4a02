"""Standardized API response helpers.

All list endpoints return a consistent envelope:
    {"items": [...], "total": <int>}

Single-item endpoints return the object directly (no wrapper).
"""

from typing import Optional


def list_response(
    items: list,
    total: Optional[int] = None,
) -> dict:
    """Wrap a list in the standard envelope.

    Args:
        items: The list of serialized items.
        total: Total count (defaults to len(items) when the full list is returned).

    Returns:
        {"items": items, "total": total}
    """
    return {
        "items": items,
        "total": total if total is not None else len(items),
    }


def error_body(exc) -> dict:
    """Render a FoodShareError as the JSON error body."""
    return {
        "detail": exc.message,
        "error_code": exc.__class__.__name__,
        "details": exc.details,
    }
