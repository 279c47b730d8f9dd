"""Webhook wire formats.

Two payload shapes arrive on the webhook endpoint:

* the legacy (v2) shape, ``{"messages": [{"event": ..., "incident": {...}}, ...]}``,
  one message per lifecycle change;
* the current (v3) shape, ``{"event": {"event_type": ..., "resource_type": ...,
  "data": {...}}}``, a single event envelope.

Each shape knows how to turn itself into canonical events. Embedded incident
data is validated only once an event is known to be relevant, so a payload
about some other resource never fails on a non-incident ``data`` object.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

from pagerbridge.models import CanonicalEvent, EventKind, Incident
from pagerbridge.utils.logging import get_logger

log = get_logger(__name__)

EVENT_KINDS: dict[str, EventKind] = {
    "incident.triggered": EventKind.TRIGGERED,
    "incident.acknowledged": EventKind.ACKNOWLEDGED,
    "incident.resolved": EventKind.RESOLVED,
    "incident.reassigned": EventKind.REASSIGNED,
    "incident.status_update_published": EventKind.STATUS_UPDATED,
}


class LegacyMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    event: str = ""
    created_on: datetime | None = None
    incident: dict[str, Any] = Field(default_factory=dict)


class LegacyWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    messages: list[LegacyMessage]

    def to_events(self) -> list[CanonicalEvent]:
        events: list[CanonicalEvent] = []
        for message in self.messages:
            kind = EVENT_KINDS.get(message.event)
            if kind is None:
                log.info("webhook_event_ignored", event_type=message.event, message_id=message.id)
                continue
            events.append(
                CanonicalEvent(
                    id=message.id,
                    kind=kind,
                    incident=Incident.model_validate(message.incident),
                    source="legacy",
                )
            )
        return events


class V3Agent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    type: str = ""
    summary: str = ""
    html_url: str = ""


class V3Event(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    event_type: str = ""
    resource_type: str = ""
    occurred_at: datetime | None = None
    agent: V3Agent | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class V3WebhookPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: V3Event

    def to_events(self) -> list[CanonicalEvent]:
        event = self.event
        if event.resource_type and event.resource_type != "incident":
            log.info("webhook_resource_ignored", resource_type=event.resource_type, event_id=event.id)
            return []

        kind = EVENT_KINDS.get(event.event_type)
        if kind is None:
            log.info("webhook_event_ignored", event_type=event.event_type, event_id=event.id)
            return []

        return [
            CanonicalEvent(
                id=event.id,
                kind=kind,
                incident=Incident.model_validate(event.data),
                source="v3",
            )
        ]


WebhookPayload = Union[LegacyWebhookPayload, V3WebhookPayload]


def parse_payload(document: dict[str, Any]) -> WebhookPayload | None:
    """Pick the payload variant by shape. Returns None for neither shape."""
    if "messages" in document:
        return LegacyWebhookPayload.model_validate(document)
    if "event" in document:
        return V3WebhookPayload.model_validate(document)
    return None
