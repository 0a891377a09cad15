"""
Asset Routes

API endpoints for viewing, reviewing and sharing assets. Every decision is
made by AssetReviewService; the routes only translate HTTP to calls and
raise the error a failed WorkflowResult carries.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from assetflow.auth import get_current_user
from assetflow.constants.assets import AssetStatus, ShareTargetType
from assetflow.database import get_db
from assetflow.schemas.assets import (
    ApproveRequest,
    AssetRead,
    CapabilityRead,
    RejectRequest,
    ShareRequest,
    ShareTarget,
    VisibilityUpdate,
)
from assetflow.schemas.snapshots import UserSnapshot
from assetflow.services.review_service import AssetReviewService

router = APIRouter(prefix="/assets", tags=["Assets"])


def get_review_service(db: AsyncSession = Depends(get_db)) -> AssetReviewService:
    return AssetReviewService(db)


# ============== Queries ==============


@router.get("/", response_model=list[AssetRead])
async def list_assets(
    status_filter: AssetStatus | None = Query(None, alias="status"),
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> list[AssetRead]:
    """List the assets the current user may view."""
    assets = await service.list_visible(current_user, status=status_filter)
    return [AssetRead.from_snapshot(asset) for asset in assets]


@router.get("/pending", response_model=list[AssetRead])
async def list_pending_assets(
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> list[AssetRead]:
    """
    Review queue of assets waiting for approval.

    Requires admin privileges.
    """
    assets = await service.list_pending(current_user)
    return [AssetRead.from_snapshot(asset) for asset in assets]


@router.get("/{asset_id}", response_model=AssetRead)
async def get_asset(
    asset_id: str,
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> AssetRead:
    asset = await service.get_asset_for(current_user, asset_id)
    return AssetRead.from_snapshot(asset)


@router.get("/{asset_id}/permissions", response_model=CapabilityRead)
async def get_asset_permissions(
    asset_id: str,
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> CapabilityRead:
    """What the current user may do with the asset."""
    capabilities = await service.capabilities(current_user, asset_id)
    return CapabilityRead(asset_id=asset_id, **capabilities.model_dump())


# ============== Workflow ==============


@router.post("/{asset_id}/submit", response_model=AssetRead)
async def submit_asset(
    asset_id: str,
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> AssetRead:
    result = await service.submit(current_user, asset_id)
    return AssetRead.from_snapshot(result.unwrap())


@router.post("/{asset_id}/approve", response_model=AssetRead)
async def approve_asset(
    asset_id: str,
    data: ApproveRequest | None = None,
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> AssetRead:
    """
    Approve an asset pending review.

    Requires admin privileges. Visibility may be changed in the same step;
    ROLE visibility needs an allowed_role.
    """
    data = data or ApproveRequest()
    result = await service.approve(current_user, asset_id, data.visibility, data.allowed_role)
    return AssetRead.from_snapshot(result.unwrap())


@router.post("/{asset_id}/reject", response_model=AssetRead)
async def reject_asset(
    asset_id: str,
    data: RejectRequest,
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> AssetRead:
    """
    Reject an asset pending review.

    Requires admin privileges and a non-empty reason.
    """
    result = await service.reject(current_user, asset_id, data.reason)
    return AssetRead.from_snapshot(result.unwrap())


@router.patch("/{asset_id}/visibility", response_model=AssetRead)
async def update_asset_visibility(
    asset_id: str,
    data: VisibilityUpdate,
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> AssetRead:
    result = await service.change_visibility(current_user, asset_id, data.visibility, data.allowed_role)
    return AssetRead.from_snapshot(result.unwrap())


# ============== Sharing ==============


@router.post("/{asset_id}/share", response_model=AssetRead)
async def share_asset(
    asset_id: str,
    data: ShareRequest,
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> AssetRead:
    grants = [target.to_grant(asset_id) for target in data.targets]
    result = await service.share(current_user, asset_id, grants)
    return AssetRead.from_snapshot(result.unwrap())


@router.delete("/{asset_id}/share", response_model=AssetRead)
async def revoke_asset_share(
    asset_id: str,
    target_type: ShareTargetType,
    target_role: str | None = None,
    target_user_id: str | None = None,
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> AssetRead:
    target = ShareTarget(target_type=target_type, target_role=target_role, target_user_id=target_user_id)
    result = await service.revoke(current_user, asset_id, target.to_grant(asset_id))
    return AssetRead.from_snapshot(result.unwrap())


# ============== Deletion ==============


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_asset(
    asset_id: str,
    current_user: UserSnapshot = Depends(get_current_user),
    service: AssetReviewService = Depends(get_review_service),
) -> None:
    await service.delete(current_user, asset_id)
