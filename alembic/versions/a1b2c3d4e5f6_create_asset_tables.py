"""create_asset_tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19

Creates users, assets and asset_shares.
"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None

USER_ROLES = ("ADMIN", "CONTENT_CREATOR", "SEO_SPECIALIST")
VISIBILITIES = ("UPLOADER_ONLY", "ADMIN_ONLY", "COMPANY", "TEAM", "ROLE", "SELECTED_USERS", "PUBLIC")
ASSET_STATUSES = ("DRAFT", "PENDING_REVIEW", "APPROVED", "REJECTED")
ASSET_TYPES = ("IMAGE", "VIDEO", "DOCUMENT", "LINK")
SHARE_TARGET_TYPES = ("ROLE", "USER")


def _user_role_ref() -> sa.Enum:
    """userrole type created with the users table, referenced again later."""
    return sa.Enum(*USER_ROLES, name="userrole").with_variant(
        postgresql.ENUM(*USER_ROLES, name="userrole", create_type=False), "postgresql"
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("role", sa.Enum(*USER_ROLES, name="userrole"), nullable=False),
        sa.Column("company_id", sa.String(length=36), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_company_id", "users", ["company_id"], unique=False)

    op.create_table(
        "assets",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("asset_type", sa.Enum(*ASSET_TYPES, name="assettype"), nullable=False),
        sa.Column("storage_url", sa.Text(), nullable=True),
        sa.Column("uploader_id", sa.String(length=36), nullable=False),
        sa.Column("company_id", sa.String(length=36), nullable=True),
        sa.Column("visibility", sa.Enum(*VISIBILITIES, name="visibility"), nullable=False),
        sa.Column("allowed_role", _user_role_ref(), nullable=True),
        sa.Column("status", sa.Enum(*ASSET_STATUSES, name="assetstatus"), nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by_id", sa.String(length=36), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by_id", sa.String(length=36), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.ForeignKeyConstraint(["uploader_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["approved_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["rejected_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assets_uploader_id", "assets", ["uploader_id"], unique=False)
    op.create_index("ix_assets_company_id", "assets", ["company_id"], unique=False)
    op.create_index("idx_asset_status", "assets", ["status"], unique=False)
    op.create_index("idx_asset_visibility", "assets", ["visibility"], unique=False)

    op.create_table(
        "asset_shares",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("asset_id", sa.String(length=36), nullable=False),
        sa.Column("target_type", sa.Enum(*SHARE_TARGET_TYPES, name="sharetargettype"), nullable=False),
        sa.Column("target_role", _user_role_ref(), nullable=True),
        sa.Column("target_user_id", sa.String(length=36), nullable=True),
        sa.Column("target_key", sa.String(length=100), nullable=False),
        sa.Column("shared_by_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["target_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["shared_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("asset_id", "target_key", name="uq_asset_share_target"),
    )
    op.create_index("ix_asset_shares_asset_id", "asset_shares", ["asset_id"], unique=False)
    op.create_index("ix_asset_shares_target_user_id", "asset_shares", ["target_user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_asset_shares_target_user_id", table_name="asset_shares")
    op.drop_index("ix_asset_shares_asset_id", table_name="asset_shares")
    op.drop_table("asset_shares")
    op.drop_index("idx_asset_visibility", table_name="assets")
    op.drop_index("idx_asset_status", table_name="assets")
    op.drop_index("ix_assets_company_id", table_name="assets")
    op.drop_index("ix_assets_uploader_id", table_name="assets")
    op.drop_table("assets")
    op.drop_index("ix_users_company_id", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for name in ("sharetargettype", "assetstatus", "visibility", "assettype", "userrole"):
        sa.Enum(name=name).drop(bind, checkfirst=True)
