"""Standardized API response helpers.

List endpoints return a consistent envelope::

    {"items": [...], "total": <int>}
"""

from typing import Optional


def list_response(items: list, total: Optional[int] = None) -> dict:
    """Wrap a list in the standard envelope."""
    return {
        "items": items,
        "total": total if total is not None else len(items),
    }
