"""
Snapshot factories for engine tests

The pure engine needs no database; these build users and assets directly.
"""

from assetflow.constants.assets import AssetStatus, Visibility
from assetflow.constants.roles import UserRole
from assetflow.schemas.snapshots import AssetSnapshot, ShareGrant, UserSnapshot

ASSET_ID = "asset-1"
UPLOADER_ID = "creator-1"
COMPANY_ID = "acme"


def make_user(
    user_id: str = "user-1",
    role: UserRole = UserRole.CONTENT_CREATOR,
    company_id: str | None = COMPANY_ID,
    is_active: bool = True,
) -> UserSnapshot:
    return UserSnapshot(id=user_id, role=role, company_id=company_id, is_active=is_active)


def make_uploader(**kwargs) -> UserSnapshot:
    kwargs.setdefault("user_id", UPLOADER_ID)
    return make_user(**kwargs)


def make_admin(user_id: str = "admin-1", **kwargs) -> UserSnapshot:
    return make_user(user_id=user_id, role=UserRole.ADMIN, **kwargs)


def make_asset(
    visibility: Visibility = Visibility.UPLOADER_ONLY,
    status: AssetStatus = AssetStatus.DRAFT,
    allowed_role: UserRole | None = None,
    uploader_id: str = UPLOADER_ID,
    company_id: str | None = COMPANY_ID,
    shares: tuple[ShareGrant, ...] = (),
    asset_id: str = ASSET_ID,
    **kwargs,
) -> AssetSnapshot:
    return AssetSnapshot(
        id=asset_id,
        title=kwargs.pop("title", "Launch banner"),
        uploader_id=uploader_id,
        company_id=company_id,
        visibility=visibility,
        allowed_role=allowed_role,
        status=status,
        shares=shares,
        **kwargs,
    )


def user_grant(user_id: str, asset_id: str = ASSET_ID) -> ShareGrant:
    return ShareGrant.for_user(asset_id, user_id)


def role_grant(role: UserRole, asset_id: str = ASSET_ID) -> ShareGrant:
    return ShareGrant.for_role(asset_id, role)
