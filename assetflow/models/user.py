import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, String
from sqlalchemy.orm import relationship

from assetflow.constants.roles import DEFAULT_ROLE, UserRole
from assetflow.database import Base
from assetflow.utils.clock import utc_now


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    role = Column(Enum(UserRole), default=DEFAULT_ROLE, nullable=False)
    company_id = Column(String(36), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    assets = relationship("Asset", back_populates="uploader", foreign_keys="Asset.uploader_id")

    def to_snapshot(self):
        """Immutable identity view handed to the visibility engine."""
        from assetflow.schemas.snapshots import UserSnapshot

        return UserSnapshot(
            id=self.id,
            role=self.role,
            company_id=self.company_id,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, email={self.email!r}, role={self.role})>"
