from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from assetflow.constants.assets import AssetStatus, ShareTargetType, Visibility
from assetflow.constants.roles import UserRole
from assetflow.exceptions import ValidationError
from assetflow.schemas.snapshots import AssetSnapshot, ShareGrant


class ApproveRequest(BaseModel):
    visibility: Optional[str] = Field(None, description="Visibility to publish with; unchanged when omitted.")
    allowed_role: Optional[str] = Field(None, description="Role that may view the asset when visibility is ROLE.")

    model_config = ConfigDict(
        json_schema_extra={"example": {"visibility": "ROLE", "allowed_role": "SEO_SPECIALIST"}}
    )


class RejectRequest(BaseModel):
    reason: str = Field(..., description="Why the asset was rejected. Shown to the uploader.")


class VisibilityUpdate(BaseModel):
    visibility: str = Field(..., description="New visibility mode.")
    allowed_role: Optional[str] = Field(None, description="Required when visibility is ROLE.")


class ShareTarget(BaseModel):
    target_type: ShareTargetType
    target_role: Optional[str] = None
    target_user_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_target(self) -> "ShareTarget":
        if self.target_type == ShareTargetType.ROLE and not self.target_role:
            raise ValueError("target_role is required for ROLE targets")
        if self.target_type == ShareTargetType.USER and not self.target_user_id:
            raise ValueError("target_user_id is required for USER targets")
        return self

    def to_grant(self, asset_id: str) -> ShareGrant:
        """
        Raises:
            ValidationError: If target_role does not name a known role
        """
        if self.target_type == ShareTargetType.ROLE:
            try:
                return ShareGrant.for_role(asset_id, self.target_role)
            except ValueError as e:
                raise ValidationError(str(e), field="target_role") from None
        return ShareGrant.for_user(asset_id, self.target_user_id)


class ShareRequest(BaseModel):
    targets: list[ShareTarget] = Field(default_factory=list, description="Roles or users to share with.")


class ShareGrantRead(BaseModel):
    target_type: ShareTargetType
    target_role: Optional[UserRole] = None
    target_user_id: Optional[str] = None


class AssetRead(BaseModel):
    id: str
    title: str
    uploader_id: str
    company_id: Optional[str] = None
    visibility: Visibility
    allowed_role: Optional[UserRole] = None
    status: AssetStatus
    rejection_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by_id: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by_id: Optional[str] = None
    shares: list[ShareGrantRead] = Field(default_factory=list)

    @classmethod
    def from_snapshot(cls, asset: AssetSnapshot) -> "AssetRead":
        return cls(
            **asset.model_dump(exclude={"shares"}),
            shares=[ShareGrantRead(**grant.model_dump(exclude={"asset_id"})) for grant in asset.shares],
        )


class CapabilityRead(BaseModel):
    asset_id: str
    can_view: bool
    can_edit: bool
    can_delete: bool
    can_approve: bool
    can_download: bool
    reason: Optional[str] = None
