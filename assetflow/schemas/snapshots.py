"""
Identity Snapshots

Immutable views of users, assets and share grants handed to the
visibility engine. The engine never loads data itself; callers build
these from the repository (or directly, in tests).

Snapshots mirror stored rows as they are, including legacy rows such as a
ROLE asset with no allowed role. Invariants are enforced when the workflow
produces a new snapshot, not when an existing one is read.
"""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from assetflow.constants.assets import AssetStatus, ShareTargetType, Visibility, parse_visibility
from assetflow.constants.roles import UserRole, parse_role
from assetflow.exceptions import ValidationError


class UserSnapshot(BaseModel):
    """Who is asking. Role and active flag are fixed for one evaluation."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: UserRole
    company_id: str | None = None
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class ShareGrant(BaseModel):
    """Explicit grant of an asset to one role or one user."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    target_type: ShareTargetType
    target_role: UserRole | None = None
    target_user_id: str | None = None

    @model_validator(mode="after")
    def _check_target(self) -> "ShareGrant":
        if self.target_type == ShareTargetType.ROLE:
            if self.target_role is None or self.target_user_id is not None:
                raise ValueError("ROLE grants need target_role and no target_user_id")
        elif self.target_user_id is None or self.target_role is not None:
            raise ValueError("USER grants need target_user_id and no target_role")
        return self

    @classmethod
    def for_user(cls, asset_id: str, user_id: str) -> "ShareGrant":
        return cls(asset_id=asset_id, target_type=ShareTargetType.USER, target_user_id=user_id)

    @classmethod
    def for_role(cls, asset_id: str, role: UserRole | str) -> "ShareGrant":
        return cls(asset_id=asset_id, target_type=ShareTargetType.ROLE, target_role=parse_role(role))

    @property
    def target(self) -> str:
        if self.target_type == ShareTargetType.ROLE:
            return self.target_role.value
        return self.target_user_id

    @property
    def key(self) -> tuple[ShareTargetType, str]:
        """Identity of the grant within one asset."""
        return (self.target_type, self.target)


class AssetSnapshot(BaseModel):
    """State of one asset as the engine sees it."""

    model_config = ConfigDict(frozen=True)

    id: str
    uploader_id: str
    title: str = ""
    company_id: str | None = None
    visibility: Visibility = Visibility.UPLOADER_ONLY
    allowed_role: UserRole | None = None
    status: AssetStatus = AssetStatus.DRAFT
    rejection_reason: str | None = None
    approved_at: datetime | None = None
    approved_by_id: str | None = None
    rejected_at: datetime | None = None
    rejected_by_id: str | None = None
    shares: tuple[ShareGrant, ...] = ()
    version: int = 1

    def is_owned_by(self, user: UserSnapshot) -> bool:
        return user.id == self.uploader_id


# ============== Visibility settings ==============


class RoleVisibility(BaseModel):
    """ROLE visibility. The allowed role is mandatory."""

    model_config = ConfigDict(frozen=True)

    mode: Literal[Visibility.ROLE] = Visibility.ROLE
    allowed_role: UserRole


class ModeVisibility(BaseModel):
    """Any visibility mode that carries no extra data."""

    model_config = ConfigDict(frozen=True)

    mode: Literal[
        Visibility.UPLOADER_ONLY,
        Visibility.ADMIN_ONLY,
        Visibility.COMPANY,
        Visibility.TEAM,
        Visibility.SELECTED_USERS,
        Visibility.PUBLIC,
    ]

    @property
    def allowed_role(self) -> None:
        return None


VisibilitySetting = Annotated[Union[RoleVisibility, ModeVisibility], Field(discriminator="mode")]


def resolve_visibility(
    visibility: Visibility | str,
    allowed_role: UserRole | str | None = None,
) -> RoleVisibility | ModeVisibility:
    """
    Build a visibility setting from raw input.

    Args:
        visibility: Target visibility mode
        allowed_role: Role for ROLE visibility; ignored for every other mode

    Returns:
        RoleVisibility or ModeVisibility

    Raises:
        ValidationError: Unknown visibility, or ROLE without a known role
    """
    try:
        mode = parse_visibility(visibility)
    except ValueError as e:
        raise ValidationError(str(e), field="visibility") from None

    if mode != Visibility.ROLE:
        return ModeVisibility(mode=mode)

    if allowed_role is None or allowed_role == "":
        raise ValidationError("A valid allowed_role is required when visibility is ROLE", field="allowed_role")
    try:
        return RoleVisibility(allowed_role=parse_role(allowed_role))
    except ValueError as e:
        raise ValidationError(str(e), field="allowed_role") from None
