"""
Domain Events and Dispatcher

Workflow and sharing operations emit these events; external collaborators
(notification delivery, audit persistence, webhooks) subscribe to them.

Dispatch is fire-and-forget: each subscriber is awaited in sequence;
exceptions are caught, logged, and execution continues. A failing
subscriber never rolls back the transition that produced the event.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from assetflow.constants.assets import AssetStatus, Visibility
from assetflow.constants.roles import UserRole
from assetflow.schemas.snapshots import ShareGrant

logger = logging.getLogger(__name__)

# ── Event names ───────────────────────────────────────────────────────────────
EVENT_ASSET_SUBMITTED = "asset.submitted"
EVENT_ASSET_APPROVED = "asset.approved"
EVENT_ASSET_REJECTED = "asset.rejected"
EVENT_ASSET_STATUS_CHANGED = "asset.status_changed"
EVENT_ASSET_VISIBILITY_CHANGED = "asset.visibility_changed"
EVENT_ASSET_SHARED = "asset.shared"
EVENT_ASSET_SHARE_REVOKED = "asset.share_revoked"


@dataclass(frozen=True)
class AssetEvent:
    """Base class for all asset domain events."""

    name: ClassVar[str] = "asset.event"

    asset_id: str
    actor_id: str
    occurred_at: datetime

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"event": self.name}
        for key, value in self.__dict__.items():
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, (AssetStatus, Visibility, UserRole)):
                value = value.value
            elif isinstance(value, tuple):
                value = [v.model_dump(mode="json") if isinstance(v, ShareGrant) else v for v in value]
            elif isinstance(value, ShareGrant):
                value = value.model_dump(mode="json")
            payload[key] = value
        return payload


@dataclass(frozen=True)
class AssetSubmittedForReview(AssetEvent):
    name: ClassVar[str] = EVENT_ASSET_SUBMITTED

    uploader_id: str
    title: str = ""


@dataclass(frozen=True)
class AssetApproved(AssetEvent):
    name: ClassVar[str] = EVENT_ASSET_APPROVED

    uploader_id: str
    visibility: Visibility
    allowed_role: UserRole | None = None


@dataclass(frozen=True)
class AssetRejected(AssetEvent):
    name: ClassVar[str] = EVENT_ASSET_REJECTED

    uploader_id: str
    reason: str


@dataclass(frozen=True)
class AssetStatusChanged(AssetEvent):
    name: ClassVar[str] = EVENT_ASSET_STATUS_CHANGED

    previous_status: AssetStatus
    new_status: AssetStatus


@dataclass(frozen=True)
class AssetVisibilityChanged(AssetEvent):
    name: ClassVar[str] = EVENT_ASSET_VISIBILITY_CHANGED

    previous_visibility: Visibility
    new_visibility: Visibility
    previous_allowed_role: UserRole | None = None
    new_allowed_role: UserRole | None = None
    context: str = ""


@dataclass(frozen=True)
class AssetShared(AssetEvent):
    name: ClassVar[str] = EVENT_ASSET_SHARED

    grants: tuple[ShareGrant, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AssetShareRevoked(AssetEvent):
    name: ClassVar[str] = EVENT_ASSET_SHARE_REVOKED

    grant: ShareGrant | None = None


EventHandler = Callable[[AssetEvent], Awaitable[Any] | Any]


class EventDispatcher:
    """
    In-process publish/subscribe for asset events.

    Handlers subscribe to an event class; they also receive subclasses of
    it, so subscribing to AssetEvent receives everything.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[type[AssetEvent], list[EventHandler]] = defaultdict(list)

    # ── Registration ──────────────────────────────────────────────────────────

    def subscribe(self, event_type: type[AssetEvent], handler: EventHandler) -> None:
        self._subscriptions[event_type].append(handler)
        logger.info(f"Subscribed {getattr(handler, '__name__', handler)} to {event_type.name}")

    def unsubscribe(self, event_type: type[AssetEvent], handler: EventHandler) -> None:
        handlers = self._subscriptions.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def clear(self) -> None:
        self._subscriptions.clear()

    def handlers_for(self, event: AssetEvent) -> list[EventHandler]:
        handlers: list[EventHandler] = []
        for event_type, subscribed in self._subscriptions.items():
            if isinstance(event, event_type):
                handlers.extend(subscribed)
        return handlers

    # ── Dispatch ──────────────────────────────────────────────────────────────

    async def publish(self, event: AssetEvent) -> None:
        """Deliver *event* to every matching subscriber, swallowing their failures."""
        for handler in self.handlers_for(event):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                name = getattr(handler, "__name__", handler)
                logger.warning(f"Event handler {name} for {event.name} raised: {exc}")

    async def publish_all(self, events: Iterable[AssetEvent]) -> None:
        for event in events:
            await self.publish(event)


# ── Global singleton ──────────────────────────────────────────────────────────
event_dispatcher = EventDispatcher()
