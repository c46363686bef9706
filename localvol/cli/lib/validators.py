"""
Input validation helpers.
"""

import re

_NAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$")


def validate_name(name: str) -> None:
    """
    Validate a resource name (LocalStorageClass, volume group, volume).

    Args:
        name: Name to validate

    Raises:
        ValueError: If name is invalid
    """
    if not name:
        raise ValueError("Name cannot be empty")

    if len(name) > 253:
        raise ValueError("Name must be between 1 and 253 characters")

    if not _NAME_RE.match(name):
        raise ValueError(
            "Name must consist of lower case alphanumeric characters, '-' or '.', "
            "and must start and end with an alphanumeric character"
        )
