"""
Asset Review Service

Glue between the pure engine and storage: loads snapshots, asks the
CapabilityChecker / ApprovalWorkflow / SharingPolicy for a decision,
persists successful results, records audit entries and publishes the
resulting events.

Event delivery happens after the commit and never undoes it.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from assetflow.audit import AuditAction, AuditRecord, AuditSink, denial_sink, emit, get_audit_sink, record_for_event
from assetflow.constants.assets import AssetStatus, Capability, ShareTargetType
from assetflow.events import EventDispatcher, event_dispatcher
from assetflow.exceptions import ConcurrentModificationError, PermissionDeniedError, ValidationError
from assetflow.schemas.snapshots import AssetSnapshot, ShareGrant, UserSnapshot
from assetflow.services.asset_repository import AssetRepository
from assetflow.services.capability_service import CapabilityChecker, CapabilitySet
from assetflow.services.sharing_service import SharingPolicy
from assetflow.services.workflow_service import ApprovalWorkflow, WorkflowResult
from assetflow.utils.clock import utc_now

logger = logging.getLogger(__name__)


class AssetReviewService:
    """Service for reviewing, publishing and sharing assets."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: EventDispatcher | None = None,
        audit_sink: AuditSink | None = None,
        checker: CapabilityChecker | None = None,
    ):
        self.db = db
        self.repository = AssetRepository(db)
        self.dispatcher = dispatcher or event_dispatcher
        self.audit_sink = audit_sink or get_audit_sink()
        self.checker = checker or CapabilityChecker(audit_sink=denial_sink() if audit_sink is None else audit_sink)
        self.workflow = ApprovalWorkflow(self.checker)
        self.sharing = SharingPolicy(self.checker)

    # ============== Queries ==============

    async def list_visible(self, user: UserSnapshot, status: AssetStatus | None = None) -> list[AssetSnapshot]:
        """Assets *user* may view, newest first."""
        assets = await self.repository.list_assets(status=status)
        return self.checker.filter_visible(user, assets)

    async def list_pending(self, user: UserSnapshot) -> list[AssetSnapshot]:
        """The review queue. Administrators only."""
        if not user.is_admin:
            raise PermissionDeniedError("Only administrators can view the review queue")
        return await self.repository.list_pending()

    async def get_asset_for(self, user: UserSnapshot, asset_id: str) -> AssetSnapshot:
        asset = await self.repository.get_asset(asset_id)
        denied = self.checker.check(Capability.VIEW, user, asset)
        if denied:
            raise denied
        return asset

    async def capabilities(self, user: UserSnapshot, asset_id: str) -> CapabilitySet:
        asset = await self.repository.get_asset(asset_id)
        return self.checker.capabilities(user, asset)

    # ============== Workflow ==============

    async def submit(self, user: UserSnapshot, asset_id: str) -> WorkflowResult:
        asset = await self.repository.get_asset(asset_id)
        return await self._commit(self.workflow.submit(asset, user), user)

    async def approve(
        self,
        user: UserSnapshot,
        asset_id: str,
        visibility=None,
        allowed_role=None,
    ) -> WorkflowResult:
        asset = await self.repository.get_asset(asset_id)
        return await self._commit(self.workflow.approve(asset, user, visibility, allowed_role), user)

    async def reject(self, user: UserSnapshot, asset_id: str, reason: str | None) -> WorkflowResult:
        asset = await self.repository.get_asset(asset_id)
        return await self._commit(self.workflow.reject(asset, user, reason), user)

    async def change_visibility(self, user: UserSnapshot, asset_id: str, visibility, allowed_role=None) -> WorkflowResult:
        asset = await self.repository.get_asset(asset_id)
        return await self._commit(self.workflow.change_visibility(asset, user, visibility, allowed_role), user)

    # ============== Sharing ==============

    async def share(self, user: UserSnapshot, asset_id: str, grants: Iterable[ShareGrant]) -> WorkflowResult:
        asset = await self.repository.get_asset(asset_id)
        grants = tuple(grants)
        result = self.sharing.share(asset, user, grants)
        if not result.changed:
            return await self._commit(result, user)

        recipients = [grant.target_user_id for grant in grants if grant.target_type == ShareTargetType.USER]
        missing = await self.repository.missing_user_ids(recipients)
        if missing:
            logger.info(f"Share of asset {asset_id} by {user.id} names unknown users {sorted(missing)}")
            return WorkflowResult.failure(
                ValidationError(
                    "One or more recipients not found",
                    field="targets",
                    details={"missing_user_ids": sorted(missing)},
                ),
                previous=asset,
            )
        return await self._commit(result, user)

    async def revoke(self, user: UserSnapshot, asset_id: str, grant: ShareGrant) -> WorkflowResult:
        asset = await self.repository.get_asset(asset_id)
        return await self._commit(self.sharing.revoke(asset, user, grant), user)

    # ============== Deletion ==============

    async def delete(self, user: UserSnapshot, asset_id: str) -> None:
        asset = await self.repository.get_asset(asset_id)
        denied = self.checker.check(Capability.DELETE, user, asset)
        if denied:
            raise denied

        # Owners may only delete in the status the check saw
        await self.repository.delete_asset(asset_id, expected=None if user.is_admin else asset)
        emit(
            self.audit_sink,
            AuditRecord(
                action=AuditAction.DELETE,
                actor_id=user.id,
                asset_id=asset_id,
                timestamp=utc_now(),
                previous_status=asset.status.value,
            ),
        )

    # ============== Helpers ==============

    async def _commit(self, result: WorkflowResult, user: UserSnapshot) -> WorkflowResult:
        """Persist *result*, then audit and publish its events."""
        if not result.ok:
            return result
        if not result.changed:
            return result

        try:
            stored = await self.repository.apply_transition(result, actor_id=user.id)
        except ConcurrentModificationError as e:
            return WorkflowResult.failure(e, previous=result.previous)

        for event in result.events:
            record = record_for_event(event)
            if record is not None:
                emit(self.audit_sink, record)

        await self.dispatcher.publish_all(result.events)
        return result.with_asset(stored)
