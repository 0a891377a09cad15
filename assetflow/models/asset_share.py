"""
AssetShare Model

An explicit, asset-scoped grant to one role or one user.

A row represents: "asset X is additionally visible to role R" (target_type
ROLE) or "to user U" (target_type USER). ``target_key`` encodes the target
as ``"<TYPE>:<value>"`` so that uniqueness per (asset, target) holds even
though one of target_role / target_user_id is always NULL.
"""

import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from assetflow.constants.assets import ShareTargetType
from assetflow.constants.roles import UserRole
from assetflow.database import Base
from assetflow.utils.clock import utc_now


def make_target_key(target_type: ShareTargetType, target: str) -> str:
    return f"{ShareTargetType(target_type).value}:{target}"


class AssetShare(Base):
    """Share grant attached to an asset."""

    __tablename__ = "asset_shares"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    asset_id = Column(
        String(36),
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Subject: either a role OR a specific user (mutually exclusive)
    target_type = Column(Enum(ShareTargetType), nullable=False)
    target_role = Column(Enum(UserRole), nullable=True)
    target_user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    target_key = Column(String(100), nullable=False)

    # Audit fields
    shared_by_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    asset = relationship("Asset", back_populates="shares")

    __table_args__ = (UniqueConstraint("asset_id", "target_key", name="uq_asset_share_target"),)

    def to_grant(self):
        from assetflow.schemas.snapshots import ShareGrant

        return ShareGrant(
            asset_id=self.asset_id,
            target_type=self.target_type,
            target_role=self.target_role,
            target_user_id=self.target_user_id,
        )

    def __repr__(self) -> str:
        return f"<AssetShare(asset={self.asset_id!r}, target={self.target_key!r})>"
