"""
Custom Exception Classes for assetflow

This module defines the error taxonomy shared by the engine and the API
layer. The workflow returns these as values inside a WorkflowResult; the
API layer raises them and the exception handlers render them.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes for API consumers."""

    AUTH_FAILED = "AUTH_FAILED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    WORKFLOW_INVALID_TRANSITION = "WORKFLOW_INVALID_TRANSITION"
    WORKFLOW_CONCURRENT_MODIFICATION = "WORKFLOW_CONCURRENT_MODIFICATION"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class AssetFlowError(Exception):
    """Base exception class for all assetflow errors"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Authorization
# ============================================================================


class PermissionDeniedError(AssetFlowError):
    """Raised when a capability check fails"""

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        capability: str | None = None,
        asset_id: str | None = None,
    ):
        details: dict[str, Any] = {}
        if capability:
            details["capability"] = capability
        if asset_id:
            details["asset_id"] = asset_id
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=ErrorCode.AUTH_PERMISSION_DENIED,
            details=details,
        )


# ============================================================================
# Workflow
# ============================================================================


class InvalidStateTransitionError(AssetFlowError):
    """Raised when a workflow operation is attempted from a status that doesn't permit it"""

    def __init__(self, current_status: str, target_status: str, asset_id: str | None = None):
        current = getattr(current_status, "value", current_status)
        target = getattr(target_status, "value", target_status)
        super().__init__(
            message=f"Cannot transition asset from '{current}' to '{target}'",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.WORKFLOW_INVALID_TRANSITION,
            details={"asset_id": asset_id, "current_status": current, "target_status": target},
        )


class ConcurrentModificationError(AssetFlowError):
    """Raised when an optimistic update lost the race against another transition"""

    def __init__(self, asset_id: str, expected_status: str | None = None, expected_version: int | None = None):
        details = {"asset_id": asset_id, "expected_status": getattr(expected_status, "value", expected_status)}
        if expected_version is not None:
            details["expected_version"] = expected_version
        super().__init__(
            message=f"Asset '{asset_id}' was modified concurrently; reload and retry",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.WORKFLOW_CONCURRENT_MODIFICATION,
            details=details,
        )


# ============================================================================
# Validation
# ============================================================================


class ValidationError(AssetFlowError):
    """Raised when input validation fails"""

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = dict(details or {})
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=ErrorCode.VALIDATION_FAILED,
            details=error_details,
        )


# ============================================================================
# Resource Not Found
# ============================================================================


class ResourceNotFoundError(AssetFlowError):
    """Base class for resource not found errors"""

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class AssetNotFoundError(ResourceNotFoundError):
    """Raised when an asset is not found"""

    def __init__(self, asset_id: Any | None = None):
        super().__init__(resource_type="Asset", resource_id=asset_id)


class UserNotFoundError(ResourceNotFoundError):
    """Raised when a user is not found"""

    def __init__(self, user_id: Any | None = None):
        super().__init__(resource_type="User", resource_id=user_id)


# Errors a workflow operation may return
WorkflowError = PermissionDeniedError | InvalidStateTransitionError | ValidationError | ConcurrentModificationError
