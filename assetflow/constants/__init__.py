"""Constants package for assetflow."""

from .assets import (
    DEFAULT_VISIBILITY,
    INITIAL_STATUS,
    OWNER_DELETABLE_STATUSES,
    STATUS_TRANSITIONS,
    SUBMITTABLE_STATUSES,
    USER_SHAREABLE_VISIBILITIES,
    AssetStatus,
    AssetType,
    Capability,
    ShareTargetType,
    Visibility,
    is_valid_transition,
    parse_visibility,
)
from .roles import DEFAULT_ROLE, UserRole, is_admin_role, parse_role

__all__ = [
    # Role constants
    "UserRole",
    "DEFAULT_ROLE",
    "is_admin_role",
    "parse_role",
    # Asset constants
    "AssetStatus",
    "AssetType",
    "Capability",
    "ShareTargetType",
    "Visibility",
    "DEFAULT_VISIBILITY",
    "INITIAL_STATUS",
    "OWNER_DELETABLE_STATUSES",
    "STATUS_TRANSITIONS",
    "SUBMITTABLE_STATUSES",
    "USER_SHAREABLE_VISIBILITIES",
    "is_valid_transition",
    "parse_visibility",
]
