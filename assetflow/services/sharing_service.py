"""
Sharing Service

Adds and removes explicit share grants on an asset.

USER grants only make sense on UPLOADER_ONLY and SELECTED_USERS assets; the
first USER grant on an UPLOADER_ONLY asset moves it to SELECTED_USERS so the
grant actually takes effect. ROLE grants are only accepted on ROLE assets,
where they widen the allowed role.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from assetflow.constants.assets import USER_SHAREABLE_VISIBILITIES, Capability, ShareTargetType, Visibility
from assetflow.events import AssetEvent, AssetShared, AssetShareRevoked, AssetVisibilityChanged
from assetflow.exceptions import ValidationError
from assetflow.schemas.snapshots import AssetSnapshot, ShareGrant, UserSnapshot
from assetflow.services.capability_service import CapabilityChecker
from assetflow.services.share_index import ShareIndex
from assetflow.services.workflow_service import WorkflowResult
from assetflow.utils.clock import utc_now

logger = logging.getLogger(__name__)


class SharingPolicy:
    def __init__(
        self,
        checker: CapabilityChecker | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.checker = checker or CapabilityChecker()
        self._clock = clock

    def share(self, asset: AssetSnapshot, actor: UserSnapshot, grants: Iterable[ShareGrant]) -> WorkflowResult:
        """
        Grant *asset* to additional users or roles.

        Args:
            asset: Asset being shared
            actor: Uploader or administrator
            grants: Grants to add; ones already present are skipped

        Returns:
            WorkflowResult with the extended asset, or PermissionDeniedError /
            ValidationError
        """
        denied = self.checker.check(Capability.SHARE, actor, asset)
        if denied:
            return WorkflowResult.failure(denied, previous=asset)

        grants = tuple(grants)
        try:
            self._validate(asset, grants)
        except ValidationError as e:
            return WorkflowResult.failure(e, previous=asset)

        index, added = ShareIndex.from_asset(asset).with_grants(grants)
        if not added:
            return WorkflowResult.success(asset, asset)

        update: dict = {"shares": index.grants}
        if asset.visibility == Visibility.UPLOADER_ONLY:
            update["visibility"] = Visibility.SELECTED_USERS
        updated = asset.model_copy(update=update)

        now = self._clock()
        events: list[AssetEvent] = [AssetShared(asset_id=asset.id, actor_id=actor.id, occurred_at=now, grants=added)]
        if updated.visibility != asset.visibility:
            events.append(
                AssetVisibilityChanged(
                    asset_id=asset.id,
                    actor_id=actor.id,
                    occurred_at=now,
                    previous_visibility=asset.visibility,
                    new_visibility=updated.visibility,
                    context="Shared with selected users",
                )
            )
        logger.info(f"Asset {asset.id} shared with {len(added)} new target(s) by {actor.id}")
        return WorkflowResult.success(updated, asset, tuple(events))

    def revoke(self, asset: AssetSnapshot, actor: UserSnapshot, grant: ShareGrant) -> WorkflowResult:
        """Remove one grant. Revoking a grant that does not exist is a no-op."""
        denied = self.checker.check(Capability.SHARE, actor, asset)
        if denied:
            return WorkflowResult.failure(denied, previous=asset)

        if grant.asset_id != asset.id:
            return WorkflowResult.failure(
                ValidationError("Share grant belongs to a different asset", field="asset_id"),
                previous=asset,
            )

        index = ShareIndex.from_asset(asset)
        if grant not in index:
            return WorkflowResult.success(asset, asset)

        updated = asset.model_copy(update={"shares": index.without(grant).grants})
        event = AssetShareRevoked(asset_id=asset.id, actor_id=actor.id, occurred_at=self._clock(), grant=grant)
        logger.info(f"Revoked {grant.target_type.value}:{grant.target} on asset {asset.id}")
        return WorkflowResult.success(updated, asset, (event,))

    @staticmethod
    def _validate(asset: AssetSnapshot, grants: tuple[ShareGrant, ...]) -> None:
        if not grants:
            raise ValidationError("At least one share target is required", field="targets")

        for grant in grants:
            if grant.asset_id != asset.id:
                raise ValidationError("Share grant belongs to a different asset", field="asset_id")

            if grant.target_type == ShareTargetType.USER:
                if grant.target_user_id == asset.uploader_id:
                    raise ValidationError("An asset cannot be shared with its uploader", field="targets")
                if asset.visibility not in USER_SHAREABLE_VISIBILITIES:
                    raise ValidationError(
                        f"Assets with {asset.visibility.value} visibility cannot be shared with individual users",
                        field="targets",
                        details={"visibility": asset.visibility.value},
                    )
            elif asset.visibility != Visibility.ROLE:
                raise ValidationError(
                    "Role grants require ROLE visibility",
                    field="targets",
                    details={"visibility": asset.visibility.value},
                )
