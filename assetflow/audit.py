"""
Audit Records

The engine emits one structured record per denied capability check and per
persisted workflow transition. Persisting and displaying them belongs to an
external audit store; the default sink writes them to the
``assetflow.audit`` logger.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from assetflow.config import settings
from assetflow.events import (
    AssetEvent,
    AssetShared,
    AssetShareRevoked,
    AssetStatusChanged,
    AssetVisibilityChanged,
)

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("assetflow.audit")


class AuditAction(str, Enum):
    ACCESS_DENIED = "ACCESS_DENIED"
    STATUS_CHANGE = "STATUS_CHANGE"
    VISIBILITY_CHANGE = "VISIBILITY_CHANGE"
    SHARE = "SHARE"
    REVOKE_SHARE = "REVOKE_SHARE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class AuditRecord:
    action: AuditAction
    actor_id: str
    asset_id: str
    timestamp: datetime
    previous_status: str | None = None
    new_status: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "actor_id": self.actor_id,
            "asset_id": self.asset_id,
            "timestamp": self.timestamp.isoformat(),
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "details": self.details,
        }


class AuditSink(Protocol):
    def record(self, record: AuditRecord) -> None: ...


class LoggingAuditSink:
    """Writes audit records as structured log lines."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.logger = log or audit_logger

    def record(self, record: AuditRecord) -> None:
        level = logging.WARNING if record.action == AuditAction.ACCESS_DENIED else logging.INFO
        self.logger.log(
            level,
            f"{record.action.value} asset={record.asset_id} actor={record.actor_id}",
            extra={
                "audit_action": record.action.value,
                "actor_id": record.actor_id,
                "asset_id": record.asset_id,
                "previous_status": record.previous_status,
                "new_status": record.new_status,
                "details": record.details,
            },
        )


class NullAuditSink:
    def record(self, record: AuditRecord) -> None:
        return None


def emit(sink: AuditSink | None, record: AuditRecord) -> None:
    """Hand *record* to *sink*; a failing sink is logged, never propagated."""
    if sink is None:
        return
    try:
        sink.record(record)
    except Exception as e:
        logger.error(f"Failed to record audit entry {record.action.value} for asset {record.asset_id}: {e}")


def record_for_event(event: AssetEvent) -> AuditRecord | None:
    """Map a domain event to the audit record describing it, if any."""
    if isinstance(event, AssetStatusChanged):
        return AuditRecord(
            action=AuditAction.STATUS_CHANGE,
            actor_id=event.actor_id,
            asset_id=event.asset_id,
            timestamp=event.occurred_at,
            previous_status=event.previous_status.value,
            new_status=event.new_status.value,
        )
    if isinstance(event, AssetVisibilityChanged):
        return AuditRecord(
            action=AuditAction.VISIBILITY_CHANGE,
            actor_id=event.actor_id,
            asset_id=event.asset_id,
            timestamp=event.occurred_at,
            details={
                "previous_visibility": event.previous_visibility.value,
                "new_visibility": event.new_visibility.value,
                "previous_allowed_role": event.previous_allowed_role.value if event.previous_allowed_role else None,
                "new_allowed_role": event.new_allowed_role.value if event.new_allowed_role else None,
                "context": event.context,
            },
        )
    if isinstance(event, AssetShared):
        return AuditRecord(
            action=AuditAction.SHARE,
            actor_id=event.actor_id,
            asset_id=event.asset_id,
            timestamp=event.occurred_at,
            details={"targets": [f"{g.target_type.value}:{g.target}" for g in event.grants]},
        )
    if isinstance(event, AssetShareRevoked) and event.grant is not None:
        return AuditRecord(
            action=AuditAction.REVOKE_SHARE,
            actor_id=event.actor_id,
            asset_id=event.asset_id,
            timestamp=event.occurred_at,
            details={"target": f"{event.grant.target_type.value}:{event.grant.target}"},
        )
    # Approve/reject/submit are covered by their AssetStatusChanged companion
    return None


def get_audit_sink() -> AuditSink:
    return LoggingAuditSink()


def denial_sink() -> AuditSink | None:
    """Sink for capability denials, honoring the audit_capability_denials setting."""
    return get_audit_sink() if settings.audit_capability_denials else None
