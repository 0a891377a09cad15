"""
Capability Service

Layers ownership, admin policy and workflow-status gating on top of the
VisibilityEvaluator to decide view/edit/delete/approve.

Order of the view decision:
  1. The uploader always sees their own asset, whatever its visibility or
     status.
  2. Admins see every asset, except another user's UPLOADER_ONLY asset that
     has not been explicitly shared with them.
  3. Everyone else needs the visibility rule to admit them AND the asset to
     be APPROVED. Visibility decides who; status decides whether it is
     published yet.

The ``can_*`` predicates and ``filter_visible`` are side-effect free.
``check`` is the audited entry point used when a caller is actually
attempting the action.
"""

import logging
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from assetflow.audit import AuditAction, AuditRecord, AuditSink, emit
from assetflow.constants.assets import OWNER_DELETABLE_STATUSES, AssetStatus, Capability, Visibility
from assetflow.constants.roles import UserRole
from assetflow.exceptions import PermissionDeniedError
from assetflow.schemas.snapshots import AssetSnapshot, UserSnapshot
from assetflow.services.share_index import ShareIndex
from assetflow.services.visibility_service import VisibilityEvaluator, visibility_evaluator
from assetflow.utils.clock import utc_now

logger = logging.getLogger(__name__)

_DENIAL_MESSAGES = {
    Capability.VIEW: "You do not have permission to view this asset",
    Capability.DOWNLOAD: "You do not have permission to download this asset",
    Capability.EDIT: "You do not have permission to edit this asset",
    Capability.DELETE: "You do not have permission to delete this asset",
    Capability.APPROVE: "Only administrators can review assets pending review",
    Capability.SHARE: "Only the uploader or an administrator can change sharing for this asset",
    Capability.SUBMIT: "Only the uploader can submit this asset for review",
}


class CapabilitySet(BaseModel):
    """Every capability of one user over one asset."""

    model_config = ConfigDict(frozen=True)

    can_view: bool
    can_edit: bool
    can_delete: bool
    can_approve: bool
    can_download: bool
    reason: str | None = None


class CapabilityChecker:
    def __init__(
        self,
        evaluator: VisibilityEvaluator | None = None,
        audit_sink: AuditSink | None = None,
    ) -> None:
        self.evaluator = evaluator or visibility_evaluator
        self.audit_sink = audit_sink

    # ── Predicates ────────────────────────────────────────────────────────────

    def can_view(self, user: UserSnapshot, asset: AssetSnapshot) -> bool:
        if user.id == asset.uploader_id:
            return True

        shares = ShareIndex.from_asset(asset)
        if user.role == UserRole.ADMIN:
            if asset.visibility == Visibility.UPLOADER_ONLY:
                return shares.has_user_grant(user.id)
            return True

        if not self.evaluator.evaluate(user, asset, shares):
            return False
        return asset.status == AssetStatus.APPROVED

    def can_download(self, user: UserSnapshot, asset: AssetSnapshot) -> bool:
        return self.can_view(user, asset)

    def can_edit(self, user: UserSnapshot, asset: AssetSnapshot) -> bool:
        """Admins always; owners until the asset is approved."""
        if user.role == UserRole.ADMIN:
            return True
        return user.id == asset.uploader_id and asset.status != AssetStatus.APPROVED

    def can_delete(self, user: UserSnapshot, asset: AssetSnapshot) -> bool:
        """Admins always; owners may also retract a submission still under review."""
        if user.role == UserRole.ADMIN:
            return True
        return user.id == asset.uploader_id and asset.status in OWNER_DELETABLE_STATUSES

    def can_approve(self, user: UserSnapshot, asset: AssetSnapshot) -> bool:
        return user.role == UserRole.ADMIN and asset.status == AssetStatus.PENDING_REVIEW

    def can_share(self, user: UserSnapshot, asset: AssetSnapshot) -> bool:
        return user.role == UserRole.ADMIN or user.id == asset.uploader_id

    def can_submit(self, user: UserSnapshot, asset: AssetSnapshot) -> bool:
        return user.id == asset.uploader_id

    # ── Bulk ──────────────────────────────────────────────────────────────────

    def filter_visible(self, user: UserSnapshot, assets: Iterable[AssetSnapshot]) -> list[AssetSnapshot]:
        """
        Assets of *assets* that *user* may view, in input order.

        Deliberately a map over ``can_view``; list and detail views must
        never disagree.
        """
        return [asset for asset in assets if self.can_view(user, asset)]

    # ── Aggregates ────────────────────────────────────────────────────────────

    def capabilities(self, user: UserSnapshot, asset: AssetSnapshot) -> CapabilitySet:
        can_view = self.can_view(user, asset)
        return CapabilitySet(
            can_view=can_view,
            can_edit=self.can_edit(user, asset),
            can_delete=self.can_delete(user, asset),
            can_approve=self.can_approve(user, asset),
            can_download=can_view,
            reason=None if can_view else _DENIAL_MESSAGES[Capability.VIEW],
        )

    def allows(self, capability: Capability, user: UserSnapshot, asset: AssetSnapshot) -> bool:
        predicate = {
            Capability.VIEW: self.can_view,
            Capability.DOWNLOAD: self.can_download,
            Capability.EDIT: self.can_edit,
            Capability.DELETE: self.can_delete,
            Capability.APPROVE: self.can_approve,
            Capability.SHARE: self.can_share,
            Capability.SUBMIT: self.can_submit,
        }[Capability(capability)]
        return predicate(user, asset)

    # ── Audited check ─────────────────────────────────────────────────────────

    def check(
        self,
        capability: Capability,
        user: UserSnapshot,
        asset: AssetSnapshot,
    ) -> PermissionDeniedError | None:
        """
        Decide *capability* for an actual access attempt.

        Returns:
            None when allowed, otherwise the PermissionDeniedError describing
            the refusal. Denials are reported to the audit sink.
        """
        if self.allows(capability, user, asset):
            return None
        return self.deny(capability, user, asset)

    def deny(
        self,
        capability: Capability,
        user: UserSnapshot,
        asset: AssetSnapshot,
        message: str | None = None,
    ) -> PermissionDeniedError:
        """Build and audit a refusal of *capability*."""
        capability = Capability(capability)
        error = PermissionDeniedError(
            message=message or _DENIAL_MESSAGES[capability],
            capability=capability.value,
            asset_id=asset.id,
        )
        logger.debug(f"Denied {capability.value} on asset {asset.id} to user {user.id}")
        emit(
            self.audit_sink,
            AuditRecord(
                action=AuditAction.ACCESS_DENIED,
                actor_id=user.id,
                asset_id=asset.id,
                timestamp=utc_now(),
                previous_status=getattr(asset.status, "value", asset.status),
                details={
                    "capability": capability.value,
                    "role": user.role.value,
                    "visibility": getattr(asset.visibility, "value", asset.visibility),
                },
            ),
        )
        return error
