"""
Asset Repository

Loads users and assets as engine snapshots and persists workflow results.

Writes are optimistic: every asset row carries a version that each stored
transition bumps, and a transition is written with
``UPDATE assets ... WHERE id = :id AND status = :status AND version = :version``
using the snapshot the workflow decided on. If another request wrote the
asset in the meantime the update matches no row and the caller gets a
ConcurrentModificationError instead of a silently merged or lost update.
"""

import logging
from collections.abc import Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from assetflow.constants.assets import DEFAULT_VISIBILITY, INITIAL_STATUS, AssetStatus, AssetType
from assetflow.constants.roles import UserRole
from assetflow.exceptions import AssetNotFoundError, ConcurrentModificationError, UserNotFoundError
from assetflow.models.asset import Asset
from assetflow.models.asset_share import AssetShare, make_target_key
from assetflow.models.user import User
from assetflow.schemas.snapshots import AssetSnapshot, UserSnapshot, resolve_visibility
from assetflow.services.workflow_service import WorkflowResult
from assetflow.utils.clock import utc_now

logger = logging.getLogger(__name__)

# Snapshot fields stored as plain asset columns
_ASSET_COLUMNS = (
    "title",
    "company_id",
    "visibility",
    "allowed_role",
    "status",
    "rejection_reason",
    "approved_at",
    "approved_by_id",
    "rejected_at",
    "rejected_by_id",
)


class AssetRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ============== Loading ==============

    async def get_user(self, user_id: str) -> UserSnapshot:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalars().first()
        if not user:
            raise UserNotFoundError(user_id)
        return user.to_snapshot()

    async def missing_user_ids(self, user_ids: Iterable[str]) -> set[str]:
        """Ids from *user_ids* with no matching user row."""
        wanted = set(user_ids)
        if not wanted:
            return set()
        result = await self.db.execute(select(User.id).where(User.id.in_(wanted)))
        return wanted - set(result.scalars().all())

    async def _load(self, asset_id: str) -> Asset | None:
        result = await self.db.execute(
            select(Asset)
            .options(selectinload(Asset.shares))
            .where(Asset.id == asset_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_asset(self, asset_id: str) -> AssetSnapshot:
        asset = await self._load(asset_id)
        if not asset:
            raise AssetNotFoundError(asset_id)
        return asset.to_snapshot()

    async def list_assets(
        self,
        status: AssetStatus | None = None,
        uploader_id: str | None = None,
    ) -> list[AssetSnapshot]:
        """All assets matching the filters, newest first. No visibility filtering."""
        query = select(Asset).options(selectinload(Asset.shares))
        if status is not None:
            query = query.where(Asset.status == status)
        if uploader_id is not None:
            query = query.where(Asset.uploader_id == uploader_id)
        query = query.order_by(Asset.uploaded_at.desc(), Asset.id)

        result = await self.db.execute(query)
        return [asset.to_snapshot() for asset in result.scalars().all()]

    async def list_pending(self) -> list[AssetSnapshot]:
        return await self.list_assets(status=AssetStatus.PENDING_REVIEW)

    # ============== Writing ==============

    async def create_asset(
        self,
        uploader: UserSnapshot,
        title: str,
        asset_type: AssetType = AssetType.IMAGE,
        visibility=DEFAULT_VISIBILITY,
        allowed_role: UserRole | str | None = None,
        storage_url: str | None = None,
        description: str | None = None,
    ) -> AssetSnapshot:
        """
        Store a new DRAFT asset owned by *uploader*.

        Raises:
            ValidationError: If the visibility/allowed_role pair is invalid
        """
        setting = resolve_visibility(visibility, allowed_role)
        asset = Asset(
            title=title,
            description=description,
            asset_type=asset_type,
            storage_url=storage_url,
            uploader_id=uploader.id,
            company_id=uploader.company_id,
            visibility=setting.mode,
            allowed_role=setting.allowed_role,
            status=INITIAL_STATUS,
        )
        self.db.add(asset)
        await self.db.commit()
        logger.info(f"Asset {asset.id} created by {uploader.id}")
        return await self.get_asset(asset.id)

    async def apply_transition(self, result: WorkflowResult, actor_id: str | None = None) -> AssetSnapshot:
        """
        Persist a successful workflow result.

        The whole snapshot is written, guarded by the version it was computed
        from, so any write that landed in between makes this one stale.

        Args:
            result: Successful WorkflowResult (``previous`` and ``asset`` set)
            actor_id: User recorded as creator of new share rows

        Returns:
            AssetSnapshot: The stored asset, reloaded

        Raises:
            AssetNotFoundError: The asset no longer exists
            ConcurrentModificationError: The asset changed since ``previous`` was loaded
        """
        previous, current = result.previous, result.unwrap()
        if not result.changed:
            return current

        values = {column: getattr(current, column) for column in _ASSET_COLUMNS}
        values["updated_at"] = utc_now()
        values["version"] = previous.version + 1

        try:
            outcome = await self.db.execute(
                update(Asset)
                .where(
                    Asset.id == previous.id,
                    Asset.status == previous.status,
                    Asset.version == previous.version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if outcome.rowcount == 0:
                await self._raise_stale(previous)

            await self._sync_shares(previous, current, actor_id)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(f"Conflicting share update on asset {previous.id}")
            raise ConcurrentModificationError(previous.id, expected_status=previous.status) from None

        return await self.get_asset(previous.id)

    async def _raise_stale(self, expected: AssetSnapshot) -> None:
        """Roll back a write that matched no row and raise the matching error."""
        exists = await self.db.execute(select(Asset.id).where(Asset.id == expected.id))
        missing = exists.scalar_one_or_none() is None
        await self.db.rollback()
        if missing:
            raise AssetNotFoundError(expected.id)
        logger.warning(
            f"Lost update on asset {expected.id}: expected status {expected.status.value}, version {expected.version}"
        )
        raise ConcurrentModificationError(
            expected.id, expected_status=expected.status, expected_version=expected.version
        )

    async def _sync_shares(self, previous: AssetSnapshot, current: AssetSnapshot, actor_id: str | None) -> None:
        before = {grant.key: grant for grant in previous.shares}
        after = {grant.key: grant for grant in current.shares}

        removed = [make_target_key(*key) for key in before if key not in after]
        if removed:
            await self.db.execute(
                delete(AssetShare).where(
                    AssetShare.asset_id == previous.id,
                    AssetShare.target_key.in_(removed),
                )
            )

        for key, grant in after.items():
            if key in before:
                continue
            self.db.add(
                AssetShare(
                    asset_id=previous.id,
                    target_type=grant.target_type,
                    target_role=grant.target_role,
                    target_user_id=grant.target_user_id,
                    target_key=make_target_key(*key),
                    shared_by_id=actor_id,
                )
            )
        await self.db.flush()

    async def delete_asset(self, asset_id: str, expected: AssetSnapshot | None = None) -> None:
        """
        Delete an asset and its share grants.

        Args:
            asset_id: Asset to delete
            expected: Snapshot the delete was authorized on; when given, the
                row is only deleted if it is still in that status

        Raises:
            AssetNotFoundError: The asset does not exist
            ConcurrentModificationError: The asset left the expected status
        """
        asset = await self._load(asset_id)
        if not asset:
            raise AssetNotFoundError(asset_id)

        statement = delete(Asset).where(Asset.id == asset_id)
        if expected is not None:
            statement = statement.where(Asset.status == expected.status)
        outcome = await self.db.execute(statement.execution_options(synchronize_session=False))
        if outcome.rowcount == 0:
            await self._raise_stale(expected or asset.to_snapshot())

        await self.db.execute(delete(AssetShare).where(AssetShare.asset_id == asset_id))
        await self.db.commit()
        # Drop the stale identity from the session
        self.db.expunge(asset)
        logger.info(f"Asset {asset_id} deleted")
