"""
Asset Constants for assetflow

Visibility modes, workflow statuses, share targets and capabilities.
"""

from enum import Enum


class Visibility(str, Enum):
    """Declared audience tier of an asset."""

    UPLOADER_ONLY = "UPLOADER_ONLY"
    ADMIN_ONLY = "ADMIN_ONLY"
    COMPANY = "COMPANY"
    TEAM = "TEAM"
    ROLE = "ROLE"
    SELECTED_USERS = "SELECTED_USERS"
    PUBLIC = "PUBLIC"


class AssetStatus(str, Enum):
    """Position of an asset in the review pipeline."""

    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AssetType(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    DOCUMENT = "DOCUMENT"
    LINK = "LINK"


class ShareTargetType(str, Enum):
    ROLE = "ROLE"
    USER = "USER"


class Capability(str, Enum):
    """Yes/no decisions a user can hold over an asset."""

    VIEW = "VIEW"
    EDIT = "EDIT"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    DOWNLOAD = "DOWNLOAD"
    SHARE = "SHARE"
    SUBMIT = "SUBMIT"


DEFAULT_VISIBILITY = Visibility.UPLOADER_ONLY
INITIAL_STATUS = AssetStatus.DRAFT

# Allowed workflow edges. APPROVED has no outgoing edge.
STATUS_TRANSITIONS: dict[AssetStatus, frozenset[AssetStatus]] = {
    AssetStatus.DRAFT: frozenset({AssetStatus.PENDING_REVIEW}),
    AssetStatus.PENDING_REVIEW: frozenset({AssetStatus.APPROVED, AssetStatus.REJECTED}),
    AssetStatus.REJECTED: frozenset({AssetStatus.PENDING_REVIEW}),
    AssetStatus.APPROVED: frozenset(),
}

# Statuses an uploader may submit from
SUBMITTABLE_STATUSES = frozenset({AssetStatus.DRAFT, AssetStatus.REJECTED})

# Statuses in which an uploader may still delete their own asset
OWNER_DELETABLE_STATUSES = frozenset({AssetStatus.DRAFT, AssetStatus.PENDING_REVIEW, AssetStatus.REJECTED})

# Visibility modes that accept user-targeted share grants
USER_SHAREABLE_VISIBILITIES = frozenset({Visibility.UPLOADER_ONLY, Visibility.SELECTED_USERS})


def is_valid_transition(current: AssetStatus, target: AssetStatus) -> bool:
    """Return True if the workflow allows moving from *current* to *target*."""
    return target in STATUS_TRANSITIONS.get(current, frozenset())


def parse_visibility(value: "Visibility | str") -> Visibility:
    """
    Convert a raw visibility value into a Visibility.

    Raises:
        ValueError: If the value does not name a known visibility mode
    """
    if isinstance(value, Visibility):
        return value
    try:
        return Visibility(str(value).strip().upper())
    except ValueError:
        raise ValueError(f"Invalid visibility: {value!r}") from None
