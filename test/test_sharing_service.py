"""
Tests for SharingPolicy share / revoke.
"""

import pytest

from assetflow.constants.assets import AssetStatus, Visibility
from assetflow.constants.roles import UserRole
from assetflow.events import AssetShared, AssetShareRevoked, AssetVisibilityChanged
from assetflow.exceptions import PermissionDeniedError, ValidationError
from assetflow.services.capability_service import CapabilityChecker
from assetflow.services.sharing_service import SharingPolicy
from utils.factories import UPLOADER_ID, make_admin, make_asset, make_uploader, make_user, role_grant, user_grant
from utils.mocks import fixed_clock


@pytest.fixture
def sharing() -> SharingPolicy:
    return SharingPolicy(clock=fixed_clock)


class TestShareWithUsers:
    def test_first_user_grant_upgrades_uploader_only(self, sharing):
        result = sharing.share(make_asset(Visibility.UPLOADER_ONLY), make_uploader(), [user_grant("user-2")])

        assert result.ok
        assert result.asset.visibility == Visibility.SELECTED_USERS
        assert result.asset.shares == (user_grant("user-2"),)
        assert [type(e) for e in result.events] == [AssetShared, AssetVisibilityChanged]

    def test_grant_on_selected_users_keeps_visibility(self, sharing):
        asset = make_asset(Visibility.SELECTED_USERS, shares=(user_grant("user-2"),))

        result = sharing.share(asset, make_uploader(), [user_grant("user-3")])

        assert result.asset.visibility == Visibility.SELECTED_USERS
        assert [g.target_user_id for g in result.asset.shares] == ["user-2", "user-3"]
        [event] = result.events
        assert event.grants == (user_grant("user-3"),)

    def test_duplicates_skipped(self, sharing):
        asset = make_asset(Visibility.SELECTED_USERS, shares=(user_grant("user-2"),))

        result = sharing.share(asset, make_uploader(), [user_grant("user-2"), user_grant("user-2")])

        assert result.ok
        assert not result.changed
        assert result.events == ()

    def test_admin_may_share(self, sharing):
        result = sharing.share(make_asset(Visibility.SELECTED_USERS), make_admin(), [user_grant("user-2")])
        assert result.ok

    def test_stranger_may_not_share(self, sharing):
        result = sharing.share(make_asset(Visibility.SELECTED_USERS), make_user("user-2"), [user_grant("user-3")])
        assert isinstance(result.error, PermissionDeniedError)

    def test_cannot_share_with_uploader(self, sharing):
        result = sharing.share(make_asset(), make_uploader(), [user_grant(UPLOADER_ID)])
        assert isinstance(result.error, ValidationError)

    @pytest.mark.parametrize("visibility", [Visibility.PUBLIC, Visibility.COMPANY, Visibility.ROLE])
    def test_user_grant_needs_user_visibility(self, sharing, visibility):
        asset = make_asset(visibility, allowed_role=UserRole.SEO_SPECIALIST)
        result = sharing.share(asset, make_uploader(), [user_grant("user-2")])
        assert isinstance(result.error, ValidationError)
        assert result.error.details["visibility"] == visibility.value

    def test_empty_targets_rejected(self, sharing):
        assert isinstance(sharing.share(make_asset(), make_uploader(), []).error, ValidationError)

    def test_grant_for_other_asset_rejected(self, sharing):
        result = sharing.share(make_asset(), make_uploader(), [user_grant("user-2", asset_id="asset-9")])
        assert isinstance(result.error, ValidationError)

    def test_shared_user_sees_asset_once_approved(self, sharing):
        checker = CapabilityChecker()
        shared = sharing.share(make_asset(), make_uploader(), [user_grant("user-2")]).unwrap()
        assert not checker.can_view(make_user("user-2"), shared)
        approved = shared.model_copy(update={"status": AssetStatus.APPROVED})
        assert checker.can_view(make_user("user-2"), approved)


class TestShareWithRoles:
    def test_role_grant_on_role_asset(self, sharing):
        asset = make_asset(Visibility.ROLE, AssetStatus.APPROVED, allowed_role=UserRole.SEO_SPECIALIST)

        result = sharing.share(asset, make_admin(), [role_grant(UserRole.CONTENT_CREATOR)])

        assert result.asset.visibility == Visibility.ROLE
        assert CapabilityChecker().can_view(make_user("user-2", role=UserRole.CONTENT_CREATOR), result.asset)

    def test_role_grant_rejected_elsewhere(self, sharing):
        result = sharing.share(make_asset(Visibility.SELECTED_USERS), make_uploader(), [role_grant(UserRole.ADMIN)])
        assert isinstance(result.error, ValidationError)


class TestRevoke:
    def test_revoke_removes_grant(self, sharing):
        asset = make_asset(Visibility.SELECTED_USERS, shares=(user_grant("user-2"), user_grant("user-3")))

        result = sharing.revoke(asset, make_uploader(), user_grant("user-2"))

        assert result.asset.shares == (user_grant("user-3"),)
        [event] = result.events
        assert isinstance(event, AssetShareRevoked)
        assert event.grant == user_grant("user-2")

    def test_revoking_missing_grant_is_no_op(self, sharing):
        asset = make_asset(Visibility.SELECTED_USERS)
        result = sharing.revoke(asset, make_uploader(), user_grant("user-2"))
        assert result.ok
        assert not result.changed

    def test_stranger_may_not_revoke(self, sharing):
        asset = make_asset(Visibility.SELECTED_USERS, shares=(user_grant("user-2"),))
        result = sharing.revoke(asset, make_user("user-2"), user_grant("user-2"))
        assert isinstance(result.error, PermissionDeniedError)

    def test_revoked_user_loses_access(self, sharing):
        checker = CapabilityChecker()
        asset = make_asset(Visibility.SELECTED_USERS, AssetStatus.APPROVED, shares=(user_grant("user-2"),))
        assert checker.can_view(make_user("user-2"), asset)
        revoked = sharing.revoke(asset, make_admin(), user_grant("user-2")).unwrap()
        assert not checker.can_view(make_user("user-2"), revoked)
