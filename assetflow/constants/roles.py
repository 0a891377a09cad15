"""
Role Constants for assetflow

Defines the fixed set of user roles known to the visibility engine.
"""

from enum import Enum


class UserRole(str, Enum):
    """Enumeration of role names in the system."""

    ADMIN = "ADMIN"
    CONTENT_CREATOR = "CONTENT_CREATOR"
    SEO_SPECIALIST = "SEO_SPECIALIST"


# Default role for newly created users
DEFAULT_ROLE = UserRole.CONTENT_CREATOR


def parse_role(value: "UserRole | str") -> UserRole:
    """
    Convert a raw role value into a UserRole.

    Args:
        value: A UserRole or its string name (case-insensitive)

    Returns:
        UserRole: The matching role

    Raises:
        ValueError: If the value does not name a known role
    """
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(str(value).strip().upper())
    except ValueError:
        raise ValueError(f"Invalid role: {value!r}") from None


def is_admin_role(role: "UserRole | str | None") -> bool:
    """Return True if *role* is the administrator role."""
    return role == UserRole.ADMIN
