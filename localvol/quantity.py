"""
Byte quantities: Kubernetes-style parsing, formatting and comparison.
"""

import math
from decimal import Decimal
from typing import Union

from kubernetes.utils import parse_quantity

_BINARY_SUFFIXES = (
    ("Ei", 1 << 60),
    ("Pi", 1 << 50),
    ("Ti", 1 << 40),
    ("Gi", 1 << 30),
    ("Mi", 1 << 20),
    ("Ki", 1 << 10),
)


def parse_size(value: Union[int, str, Decimal]) -> int:
    """
    Parse a size given in bytes or as a Kubernetes quantity ("10Gi", "2Mi").

    Fractional byte counts are rounded up.

    Args:
        value: Integer byte count or quantity string

    Returns:
        Size in bytes

    Raises:
        ValueError: If the value is not a valid non-negative quantity
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    try:
        quantity = parse_quantity(value)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid size {value!r}: {e}")
    if quantity < 0:
        raise ValueError(f"Size cannot be negative: {value!r}")
    return int(math.ceil(quantity))


def format_size(size: int) -> str:
    """Render a byte count as the largest exact binary quantity ("10Gi")."""
    if size == 0:
        return "0"
    for suffix, factor in _BINARY_SUFFIXES:
        if size % factor == 0:
            return f"{size // factor}{suffix}"
    return str(size)


def sizes_equal_within_delta(left: int, right: int, delta: int) -> bool:
    """Return True when two sizes differ by no more than delta."""
    return abs(left - right) <= delta
