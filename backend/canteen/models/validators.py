"""Model-level validation utilities for data integrity.

Reusable validators used from ``@validates`` hooks so invalid values are
rejected at the ORM level regardless of which route or service writes them.
"""

from decimal import Decimal


def _as_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def non_negative(key: str, value):
    """Validate that a numeric value is >= 0."""
    if value is not None and _as_decimal(value) < 0:
        raise ValueError(f"{key} cannot be negative, got {value}")
    return value


def positive(key: str, value):
    """Validate that a numeric value is > 0."""
    if value is not None and _as_decimal(value) <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def at_least_one(key: str, value):
    """Validate that an integer quantity is >= 1."""
    if value is not None and int(value) < 1:
        raise ValueError(f"{key} must be at least 1, got {value}")
    return value
