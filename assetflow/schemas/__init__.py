from .snapshots import (
    AssetSnapshot,
    ModeVisibility,
    RoleVisibility,
    ShareGrant,
    UserSnapshot,
    VisibilitySetting,
    resolve_visibility,
)

__all__ = [
    "AssetSnapshot",
    "ModeVisibility",
    "RoleVisibility",
    "ShareGrant",
    "UserSnapshot",
    "VisibilitySetting",
    "resolve_visibility",
]
