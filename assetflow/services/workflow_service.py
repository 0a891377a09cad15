"""
Workflow Service

State machine for the asset review pipeline:

    DRAFT ──submit──▶ PENDING_REVIEW ──approve──▶ APPROVED
                           ▲   │
                           │   └──reject──▶ REJECTED
                           └────submit─────────┘

Every operation is a pure function of its inputs: it returns a
WorkflowResult holding either the new asset snapshot plus the events to
publish, or a typed error. Inputs are never mutated. Persisting a
successful result is the repository's job (see
AssetRepository.apply_transition), which uses ``result.previous.status`` as
its optimistic-concurrency guard.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

from assetflow.constants.assets import SUBMITTABLE_STATUSES, AssetStatus, Capability, Visibility
from assetflow.constants.roles import UserRole
from assetflow.events import (
    AssetApproved,
    AssetEvent,
    AssetRejected,
    AssetStatusChanged,
    AssetSubmittedForReview,
    AssetVisibilityChanged,
)
from assetflow.exceptions import InvalidStateTransitionError, ValidationError, WorkflowError
from assetflow.schemas.snapshots import AssetSnapshot, ModeVisibility, RoleVisibility, UserSnapshot, resolve_visibility
from assetflow.services.capability_service import CapabilityChecker
from assetflow.utils.clock import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowResult:
    """Outcome of a workflow operation: a new asset or a typed error."""

    asset: AssetSnapshot | None = None
    error: WorkflowError | None = None
    previous: AssetSnapshot | None = None
    events: tuple[AssetEvent, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def changed(self) -> bool:
        return self.ok and self.asset != self.previous

    @classmethod
    def success(
        cls,
        asset: AssetSnapshot,
        previous: AssetSnapshot,
        events: tuple[AssetEvent, ...] = (),
    ) -> "WorkflowResult":
        return cls(asset=asset, previous=previous, events=events)

    @classmethod
    def failure(cls, error: WorkflowError, previous: AssetSnapshot | None = None) -> "WorkflowResult":
        return cls(error=error, previous=previous)

    def with_asset(self, asset: AssetSnapshot) -> "WorkflowResult":
        return replace(self, asset=asset)

    def unwrap(self) -> AssetSnapshot:
        """Return the new asset, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.asset


class ApprovalWorkflow:
    """Submit / approve / reject and admin visibility changes."""

    def __init__(
        self,
        checker: CapabilityChecker | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.checker = checker or CapabilityChecker()
        self._clock = clock

    # ============== Transitions ==============

    def submit(self, asset: AssetSnapshot, actor: UserSnapshot) -> WorkflowResult:
        """Send a draft or rejected asset (back) to review. Uploader only."""
        denied = self.checker.check(Capability.SUBMIT, actor, asset)
        if denied:
            return WorkflowResult.failure(denied, previous=asset)

        if asset.status not in SUBMITTABLE_STATUSES:
            return self._invalid(asset, AssetStatus.PENDING_REVIEW)

        now = self._clock()
        updated = asset.model_copy(
            update={
                "status": AssetStatus.PENDING_REVIEW,
                "rejection_reason": None,
                "rejected_at": None,
                "rejected_by_id": None,
            }
        )
        events = (
            AssetSubmittedForReview(
                asset_id=asset.id,
                actor_id=actor.id,
                occurred_at=now,
                uploader_id=asset.uploader_id,
                title=asset.title,
            ),
            self._status_changed(asset, updated, actor, now),
        )
        logger.info(f"Asset {asset.id} submitted for review by {actor.id}")
        return WorkflowResult.success(updated, asset, events)

    def approve(
        self,
        asset: AssetSnapshot,
        actor: UserSnapshot,
        new_visibility: Visibility | str | None = None,
        allowed_role: UserRole | str | None = None,
    ) -> WorkflowResult:
        """
        Approve an asset pending review, optionally changing its visibility.

        Args:
            asset: Asset in PENDING_REVIEW
            actor: Reviewing administrator
            new_visibility: Visibility to publish with; unchanged when omitted
            allowed_role: Required when the resulting visibility is ROLE

        Returns:
            WorkflowResult with the APPROVED asset, or PermissionDeniedError,
            InvalidStateTransitionError or ValidationError
        """
        failure = self._authorize_review(asset, actor, AssetStatus.APPROVED)
        if failure:
            return failure

        try:
            setting = self._target_visibility(asset, new_visibility, allowed_role)
        except ValidationError as e:
            return WorkflowResult.failure(e, previous=asset)

        now = self._clock()
        updated = asset.model_copy(
            update={
                "status": AssetStatus.APPROVED,
                "visibility": setting.mode,
                "allowed_role": setting.allowed_role,
                "approved_at": now,
                "approved_by_id": actor.id,
                "rejection_reason": None,
                "rejected_at": None,
                "rejected_by_id": None,
            }
        )
        events: list[AssetEvent] = [
            AssetApproved(
                asset_id=asset.id,
                actor_id=actor.id,
                occurred_at=now,
                uploader_id=asset.uploader_id,
                visibility=updated.visibility,
                allowed_role=updated.allowed_role,
            ),
            self._status_changed(asset, updated, actor, now),
        ]
        visibility_event = self._visibility_changed(asset, updated, actor, now, "Changed during approval")
        if visibility_event:
            events.append(visibility_event)

        logger.info(f"Asset {asset.id} approved by {actor.id} with visibility {updated.visibility.value}")
        return WorkflowResult.success(updated, asset, tuple(events))

    def reject(self, asset: AssetSnapshot, actor: UserSnapshot, reason: str | None) -> WorkflowResult:
        """Reject an asset pending review. A non-blank reason is mandatory."""
        failure = self._authorize_review(asset, actor, AssetStatus.REJECTED)
        if failure:
            return failure

        reason = (reason or "").strip()
        if not reason:
            return WorkflowResult.failure(
                ValidationError("Rejection reason is required", field="reason"),
                previous=asset,
            )

        now = self._clock()
        updated = asset.model_copy(
            update={
                "status": AssetStatus.REJECTED,
                "rejection_reason": reason,
                "rejected_at": now,
                "rejected_by_id": actor.id,
                "approved_at": None,
                "approved_by_id": None,
            }
        )
        events = (
            AssetRejected(
                asset_id=asset.id,
                actor_id=actor.id,
                occurred_at=now,
                uploader_id=asset.uploader_id,
                reason=reason,
            ),
            self._status_changed(asset, updated, actor, now),
        )
        logger.info(f"Asset {asset.id} rejected by {actor.id}")
        return WorkflowResult.success(updated, asset, events)

    def change_visibility(
        self,
        asset: AssetSnapshot,
        actor: UserSnapshot,
        visibility: Visibility | str,
        allowed_role: UserRole | str | None = None,
    ) -> WorkflowResult:
        """
        Change who may see an asset without touching its status.

        Admins may change any asset, including approved ones; uploaders only
        until approval (same rule as editing).
        """
        denied = self.checker.check(Capability.EDIT, actor, asset)
        if denied:
            return WorkflowResult.failure(denied, previous=asset)

        try:
            setting = resolve_visibility(visibility, allowed_role)
        except ValidationError as e:
            return WorkflowResult.failure(e, previous=asset)

        updated = asset.model_copy(update={"visibility": setting.mode, "allowed_role": setting.allowed_role})
        event = self._visibility_changed(asset, updated, actor, self._clock(), "Visibility updated")
        if event is None:
            return WorkflowResult.success(asset, asset)
        return WorkflowResult.success(updated, asset, (event,))

    # ============== Helpers ==============

    def _authorize_review(
        self,
        asset: AssetSnapshot,
        actor: UserSnapshot,
        target: AssetStatus,
    ) -> WorkflowResult | None:
        """Approve capability, split into who (403) and when (409)."""
        if self.checker.can_approve(actor, asset):
            return None
        if actor.role != UserRole.ADMIN:
            return WorkflowResult.failure(self.checker.deny(Capability.APPROVE, actor, asset), previous=asset)
        return self._invalid(asset, target)

    @staticmethod
    def _target_visibility(
        asset: AssetSnapshot,
        new_visibility: Visibility | str | None,
        allowed_role: UserRole | str | None,
    ) -> RoleVisibility | ModeVisibility:
        if new_visibility is not None:
            return resolve_visibility(new_visibility, allowed_role)
        # Visibility kept; a ROLE asset keeps its role unless a new one is given
        if asset.visibility == Visibility.ROLE:
            return resolve_visibility(Visibility.ROLE, allowed_role or asset.allowed_role)
        return resolve_visibility(asset.visibility, allowed_role)

    def _invalid(self, asset: AssetSnapshot, target: AssetStatus) -> WorkflowResult:
        logger.debug(f"Rejected transition {asset.status.value} -> {target.value} for asset {asset.id}")
        return WorkflowResult.failure(
            InvalidStateTransitionError(asset.status, target, asset_id=asset.id),
            previous=asset,
        )

    @staticmethod
    def _status_changed(
        before: AssetSnapshot,
        after: AssetSnapshot,
        actor: UserSnapshot,
        now: datetime,
    ) -> AssetStatusChanged:
        return AssetStatusChanged(
            asset_id=before.id,
            actor_id=actor.id,
            occurred_at=now,
            previous_status=before.status,
            new_status=after.status,
        )

    @staticmethod
    def _visibility_changed(
        before: AssetSnapshot,
        after: AssetSnapshot,
        actor: UserSnapshot,
        now: datetime,
        context: str,
    ) -> AssetVisibilityChanged | None:
        if before.visibility == after.visibility and before.allowed_role == after.allowed_role:
            return None
        return AssetVisibilityChanged(
            asset_id=before.id,
            actor_id=actor.id,
            occurred_at=now,
            previous_visibility=before.visibility,
            new_visibility=after.visibility,
            previous_allowed_role=before.allowed_role,
            new_allowed_role=after.allowed_role,
            context=context,
        )
