import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from assetflow.constants.assets import DEFAULT_VISIBILITY, INITIAL_STATUS, AssetStatus, AssetType, Visibility
from assetflow.constants.roles import UserRole
from assetflow.database import Base
from assetflow.utils.clock import utc_now


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    asset_type = Column(Enum(AssetType), default=AssetType.IMAGE, nullable=False)
    storage_url = Column(Text, nullable=True)

    uploader_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    company_id = Column(String(36), nullable=True, index=True)

    # Visibility; allowed_role is only meaningful for Visibility.ROLE
    visibility = Column(Enum(Visibility), default=DEFAULT_VISIBILITY, nullable=False)
    allowed_role = Column(Enum(UserRole), nullable=True)

    # Review workflow
    status = Column(Enum(AssetStatus), default=INITIAL_STATUS, nullable=False)
    rejection_reason = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    uploaded_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    # Bumped by every stored transition; the optimistic-lock token
    version = Column(Integer, default=1, nullable=False)

    # Relationships
    uploader = relationship("User", back_populates="assets", foreign_keys=[uploader_id])
    shares = relationship(
        "AssetShare",
        back_populates="asset",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_asset_status", "status"),
        Index("idx_asset_visibility", "visibility"),
    )

    def to_snapshot(self):
        """Immutable view of the asset and its share grants."""
        from assetflow.schemas.snapshots import AssetSnapshot

        return AssetSnapshot(
            id=self.id,
            title=self.title,
            uploader_id=self.uploader_id,
            company_id=self.company_id,
            visibility=self.visibility,
            allowed_role=self.allowed_role,
            status=self.status,
            rejection_reason=self.rejection_reason,
            approved_at=self.approved_at,
            approved_by_id=self.approved_by_id,
            rejected_at=self.rejected_at,
            rejected_by_id=self.rejected_by_id,
            shares=tuple(share.to_grant() for share in self.shares),
            version=self.version,
        )
