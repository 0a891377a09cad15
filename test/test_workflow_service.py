"""
Tests for ApprovalWorkflow: submit / approve / reject / change_visibility.

All operations are pure; no database is involved.
"""

import pytest

from assetflow.audit import AuditAction
from assetflow.constants.assets import AssetStatus, Visibility
from assetflow.constants.roles import UserRole
from assetflow.events import (
    AssetApproved,
    AssetRejected,
    AssetStatusChanged,
    AssetSubmittedForReview,
    AssetVisibilityChanged,
)
from assetflow.exceptions import InvalidStateTransitionError, PermissionDeniedError, ValidationError
from assetflow.services.capability_service import CapabilityChecker
from assetflow.services.workflow_service import ApprovalWorkflow, WorkflowResult
from utils.factories import make_admin, make_asset, make_uploader, make_user, user_grant
from utils.mocks import FIXED_NOW, RecordingAuditSink, fixed_clock


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def workflow(audit) -> ApprovalWorkflow:
    return ApprovalWorkflow(CapabilityChecker(audit_sink=audit), clock=fixed_clock)


def _event_types(result: WorkflowResult) -> list[type]:
    return [type(event) for event in result.events]


class TestSubmit:
    @pytest.mark.parametrize("status", [AssetStatus.DRAFT, AssetStatus.REJECTED])
    def test_uploader_submits(self, workflow, status):
        asset = make_asset(status=status, rejection_reason="blurry" if status == AssetStatus.REJECTED else None)

        result = workflow.submit(asset, make_uploader())

        assert result.ok
        assert result.asset.status == AssetStatus.PENDING_REVIEW
        assert result.asset.rejection_reason is None
        assert result.previous is asset
        assert _event_types(result) == [AssetSubmittedForReview, AssetStatusChanged]
        assert result.events[1].previous_status == status

    def test_input_not_mutated(self, workflow):
        asset = make_asset()
        workflow.submit(asset, make_uploader())
        assert asset.status == AssetStatus.DRAFT

    @pytest.mark.parametrize("status", [AssetStatus.PENDING_REVIEW, AssetStatus.APPROVED])
    def test_invalid_status(self, workflow, status):
        result = workflow.submit(make_asset(status=status), make_uploader())
        assert isinstance(result.error, InvalidStateTransitionError)
        assert result.error.status_code == 409
        assert result.error.details["current_status"] == status.value
        assert result.events == ()

    def test_admin_cannot_submit_for_uploader(self, workflow, audit):
        result = workflow.submit(make_asset(), make_admin())
        assert isinstance(result.error, PermissionDeniedError)
        assert len(audit.for_action(AuditAction.ACCESS_DENIED)) == 1

    def test_other_user_cannot_submit(self, workflow):
        result = workflow.submit(make_asset(), make_user("user-2"))
        assert isinstance(result.error, PermissionDeniedError)


class TestApprove:
    def test_admin_approves_keeping_visibility(self, workflow):
        asset = make_asset(Visibility.COMPANY, AssetStatus.PENDING_REVIEW)

        result = workflow.approve(asset, make_admin())

        assert result.ok
        approved = result.asset
        assert approved.status == AssetStatus.APPROVED
        assert approved.visibility == Visibility.COMPANY
        assert approved.approved_at == FIXED_NOW
        assert approved.approved_by_id == "admin-1"
        assert _event_types(result) == [AssetApproved, AssetStatusChanged]

    def test_approve_with_role_visibility(self, workflow):
        asset = make_asset(Visibility.UPLOADER_ONLY, AssetStatus.PENDING_REVIEW)

        result = workflow.approve(asset, make_admin(), Visibility.ROLE, UserRole.SEO_SPECIALIST)

        assert result.asset.visibility == Visibility.ROLE
        assert result.asset.allowed_role == UserRole.SEO_SPECIALIST
        assert _event_types(result) == [AssetApproved, AssetStatusChanged, AssetVisibilityChanged]
        changed = result.events[2]
        assert changed.previous_visibility == Visibility.UPLOADER_ONLY
        assert changed.new_allowed_role == UserRole.SEO_SPECIALIST

    def test_role_visibility_accepts_strings(self, workflow):
        asset = make_asset(status=AssetStatus.PENDING_REVIEW)
        result = workflow.approve(asset, make_admin(), "role", "seo_specialist")
        assert result.asset.allowed_role == UserRole.SEO_SPECIALIST

    def test_role_without_allowed_role_rejected(self, workflow):
        asset = make_asset(status=AssetStatus.PENDING_REVIEW)

        result = workflow.approve(asset, make_admin(), Visibility.ROLE)

        assert isinstance(result.error, ValidationError)
        assert result.error.status_code == 422
        assert result.error.details["field"] == "allowed_role"
        assert result.asset is None

    def test_existing_role_asset_keeps_its_role(self, workflow):
        asset = make_asset(Visibility.ROLE, AssetStatus.PENDING_REVIEW, allowed_role=UserRole.CONTENT_CREATOR)
        result = workflow.approve(asset, make_admin())
        assert result.asset.allowed_role == UserRole.CONTENT_CREATOR
        assert AssetVisibilityChanged not in _event_types(result)

    def test_legacy_role_asset_without_role_needs_one(self, workflow):
        asset = make_asset(Visibility.ROLE, AssetStatus.PENDING_REVIEW, allowed_role=None)
        assert isinstance(workflow.approve(asset, make_admin()).error, ValidationError)
        assert workflow.approve(asset, make_admin(), allowed_role=UserRole.SEO_SPECIALIST).ok

    def test_non_role_visibility_clears_allowed_role(self, workflow):
        asset = make_asset(Visibility.ROLE, AssetStatus.PENDING_REVIEW, allowed_role=UserRole.SEO_SPECIALIST)
        result = workflow.approve(asset, make_admin(), Visibility.PUBLIC, UserRole.SEO_SPECIALIST)
        assert result.asset.visibility == Visibility.PUBLIC
        assert result.asset.allowed_role is None

    def test_non_role_visibility_ignores_unknown_role(self, workflow):
        result = workflow.approve(make_asset(status=AssetStatus.PENDING_REVIEW), make_admin(), "COMPANY", "JANITOR")
        assert result.ok
        assert result.asset.visibility == Visibility.COMPANY
        assert result.asset.allowed_role is None

    def test_unknown_visibility_rejected(self, workflow):
        result = workflow.approve(make_asset(status=AssetStatus.PENDING_REVIEW), make_admin(), "EVERYONE")
        assert isinstance(result.error, ValidationError)
        assert result.error.details["field"] == "visibility"

    def test_approving_twice_is_invalid_transition(self, workflow):
        first = workflow.approve(make_asset(status=AssetStatus.PENDING_REVIEW), make_admin())

        second = workflow.approve(first.asset, make_admin())

        assert isinstance(second.error, InvalidStateTransitionError)
        assert second.error.details["current_status"] == "APPROVED"

    @pytest.mark.parametrize("status", [AssetStatus.DRAFT, AssetStatus.REJECTED])
    def test_admin_cannot_approve_outside_review(self, workflow, status):
        result = workflow.approve(make_asset(status=status), make_admin())
        assert isinstance(result.error, InvalidStateTransitionError)

    @pytest.mark.parametrize("role", [UserRole.CONTENT_CREATOR, UserRole.SEO_SPECIALIST])
    def test_non_admin_denied(self, workflow, audit, role):
        result = workflow.approve(make_asset(status=AssetStatus.PENDING_REVIEW), make_user("user-2", role=role))
        assert isinstance(result.error, PermissionDeniedError)
        [record] = audit.records
        assert record.details["capability"] == "APPROVE"

    def test_uploader_cannot_approve_own_asset(self, workflow):
        result = workflow.approve(make_asset(status=AssetStatus.PENDING_REVIEW), make_uploader())
        assert isinstance(result.error, PermissionDeniedError)

    def test_approval_clears_previous_rejection(self, workflow):
        asset = make_asset(status=AssetStatus.PENDING_REVIEW, rejection_reason="old", rejected_by_id="admin-2")
        result = workflow.approve(asset, make_admin())
        assert result.asset.rejection_reason is None
        assert result.asset.rejected_by_id is None


class TestReject:
    def test_admin_rejects_with_reason(self, workflow):
        result = workflow.reject(make_asset(status=AssetStatus.PENDING_REVIEW), make_admin(), "  Off brand  ")

        assert result.asset.status == AssetStatus.REJECTED
        assert result.asset.rejection_reason == "Off brand"
        assert result.asset.rejected_at == FIXED_NOW
        assert result.asset.rejected_by_id == "admin-1"
        assert _event_types(result) == [AssetRejected, AssetStatusChanged]
        assert result.events[0].reason == "Off brand"

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_blank_reason_rejected(self, workflow, reason):
        result = workflow.reject(make_asset(status=AssetStatus.PENDING_REVIEW), make_admin(), reason)
        assert isinstance(result.error, ValidationError)
        assert result.error.details["field"] == "reason"

    def test_non_admin_denied_before_reason_checked(self, workflow):
        result = workflow.reject(make_asset(status=AssetStatus.PENDING_REVIEW), make_uploader(), "")
        assert isinstance(result.error, PermissionDeniedError)

    def test_cannot_reject_approved(self, workflow):
        result = workflow.reject(make_asset(status=AssetStatus.APPROVED), make_admin(), "late")
        assert isinstance(result.error, InvalidStateTransitionError)

    def test_rejected_asset_can_be_resubmitted(self, workflow):
        rejected = workflow.reject(make_asset(status=AssetStatus.PENDING_REVIEW), make_admin(), "Fix logo").asset
        resubmitted = workflow.submit(rejected, make_uploader())
        assert resubmitted.asset.status == AssetStatus.PENDING_REVIEW
        assert resubmitted.asset.rejection_reason is None


class TestChangeVisibility:
    def test_admin_changes_approved_asset(self, workflow):
        asset = make_asset(Visibility.COMPANY, AssetStatus.APPROVED)

        result = workflow.change_visibility(asset, make_admin(), Visibility.PUBLIC)

        assert result.asset.visibility == Visibility.PUBLIC
        assert result.asset.status == AssetStatus.APPROVED
        assert _event_types(result) == [AssetVisibilityChanged]

    def test_owner_changes_draft(self, workflow):
        result = workflow.change_visibility(make_asset(), make_uploader(), Visibility.ROLE, UserRole.SEO_SPECIALIST)
        assert result.asset.allowed_role == UserRole.SEO_SPECIALIST

    def test_owner_cannot_change_approved(self, workflow):
        result = workflow.change_visibility(
            make_asset(Visibility.COMPANY, AssetStatus.APPROVED), make_uploader(), Visibility.PUBLIC
        )
        assert isinstance(result.error, PermissionDeniedError)

    def test_role_without_allowed_role(self, workflow):
        result = workflow.change_visibility(make_asset(), make_admin(), Visibility.ROLE)
        assert isinstance(result.error, ValidationError)

    def test_no_op_emits_nothing(self, workflow):
        asset = make_asset(Visibility.COMPANY)
        result = workflow.change_visibility(asset, make_uploader(), Visibility.COMPANY)
        assert result.ok
        assert not result.changed
        assert result.events == ()


class TestScenarios:
    def test_role_scoped_publication(self, workflow):
        """Creator uploads, admin approves for SEO specialists only."""
        checker = CapabilityChecker()
        seo = make_user("seo-1", role=UserRole.SEO_SPECIALIST)
        other_creator = make_user("user-2", role=UserRole.CONTENT_CREATOR)

        asset = workflow.submit(make_asset(), make_uploader()).asset
        assert not checker.can_view(seo, asset)

        approved = workflow.approve(asset, make_admin(), Visibility.ROLE, UserRole.SEO_SPECIALIST).unwrap()

        assert checker.can_view(seo, approved)
        assert not checker.can_view(other_creator, approved)
        assert checker.can_view(make_uploader(), approved)

    def test_rejection_loop(self, workflow):
        checker = CapabilityChecker()
        colleague = make_user("user-2")
        asset = make_asset(Visibility.COMPANY)

        pending = workflow.submit(asset, make_uploader()).unwrap()
        rejected = workflow.reject(pending, make_admin(), "Wrong colours").unwrap()
        assert not checker.can_view(colleague, rejected)
        assert checker.can_edit(make_uploader(), rejected)

        approved = workflow.approve(workflow.submit(rejected, make_uploader()).unwrap(), make_admin()).unwrap()
        assert checker.can_view(colleague, approved)
        assert not checker.can_edit(make_uploader(), approved)

    def test_private_asset_shared_with_one_colleague(self, workflow):
        checker = CapabilityChecker()
        asset = make_asset(Visibility.SELECTED_USERS, shares=(user_grant("user-2"),))

        approved = workflow.approve(workflow.submit(asset, make_uploader()).unwrap(), make_admin()).unwrap()

        assert checker.can_view(make_user("user-2"), approved)
        assert not checker.can_view(make_user("user-3"), approved)
        assert checker.can_view(make_admin(), approved)


class TestWorkflowResult:
    def test_unwrap_raises_carried_error(self, workflow):
        result = workflow.submit(make_asset(status=AssetStatus.APPROVED), make_uploader())
        with pytest.raises(InvalidStateTransitionError):
            result.unwrap()

    def test_failure_is_not_changed(self):
        result = WorkflowResult.failure(ValidationError("bad"))
        assert not result.ok
        assert not result.changed
