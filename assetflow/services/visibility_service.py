"""
Visibility Service

Computes the base view permission for one (user, asset) pair from the
asset's visibility mode and its share grants.

Rules per mode:
  - UPLOADER_ONLY:  only the uploader
  - ADMIN_ONLY:     admins and the uploader
  - COMPANY:        users of the same (non-null) company
  - TEAM:           nobody (no team entity exists yet)
  - ROLE:           users whose role equals allowed_role or has a ROLE grant
  - SELECTED_USERS: users holding a USER grant
  - PUBLIC:         every authenticated user

Ownership short-circuits, admin bypass and status gating are capability
policy and live in CapabilityChecker, not here.
"""

import logging
from collections.abc import Callable

from assetflow.constants.assets import Visibility
from assetflow.constants.roles import UserRole
from assetflow.schemas.snapshots import AssetSnapshot, UserSnapshot
from assetflow.services.share_index import ShareIndex

logger = logging.getLogger(__name__)

_Rule = Callable[[UserSnapshot, AssetSnapshot, ShareIndex], bool]


class VisibilityEvaluator:
    """Pure evaluation of visibility modes. Holds no mutable state."""

    def __init__(self) -> None:
        self._rules: dict[Visibility, _Rule] = {
            Visibility.UPLOADER_ONLY: self._uploader_only,
            Visibility.ADMIN_ONLY: self._admin_only,
            Visibility.COMPANY: self._company,
            Visibility.TEAM: self._team,
            Visibility.ROLE: self._role,
            Visibility.SELECTED_USERS: self._selected_users,
            Visibility.PUBLIC: self._public,
        }

    def evaluate(
        self,
        user: UserSnapshot,
        asset: AssetSnapshot,
        shares: ShareIndex | None = None,
    ) -> bool:
        """
        Return True if *asset*'s visibility declaration admits *user*.

        Args:
            user: The viewer
            asset: The asset being viewed
            shares: Pre-built grant index; defaults to the asset's own grants

        Returns:
            bool: Base view permission, before capability policy
        """
        rule = self._rules.get(asset.visibility)
        if rule is None:
            logger.warning(f"Unknown visibility {asset.visibility!r} on asset {asset.id}; denying")
            return False
        if shares is None:
            shares = ShareIndex.from_asset(asset)
        return rule(user, asset, shares)

    @staticmethod
    def _uploader_only(user: UserSnapshot, asset: AssetSnapshot, shares: ShareIndex) -> bool:
        return user.id == asset.uploader_id

    @staticmethod
    def _admin_only(user: UserSnapshot, asset: AssetSnapshot, shares: ShareIndex) -> bool:
        return user.role == UserRole.ADMIN or user.id == asset.uploader_id

    @staticmethod
    def _company(user: UserSnapshot, asset: AssetSnapshot, shares: ShareIndex) -> bool:
        # null never matches null
        if asset.company_id is None or user.company_id is None:
            return False
        return user.company_id == asset.company_id

    @staticmethod
    def _team(user: UserSnapshot, asset: AssetSnapshot, shares: ShareIndex) -> bool:
        # TODO: evaluate team membership once a Team entity exists
        return False

    @staticmethod
    def _role(user: UserSnapshot, asset: AssetSnapshot, shares: ShareIndex) -> bool:
        if asset.allowed_role is not None and asset.allowed_role == user.role:
            return True
        # Legacy path: ROLE-type share grants
        return shares.has_role_grant(user.role)

    @staticmethod
    def _selected_users(user: UserSnapshot, asset: AssetSnapshot, shares: ShareIndex) -> bool:
        return shares.has_user_grant(user.id)

    @staticmethod
    def _public(user: UserSnapshot, asset: AssetSnapshot, shares: ShareIndex) -> bool:
        return True


visibility_evaluator = VisibilityEvaluator()
