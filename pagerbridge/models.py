"""Incident, event, notification and action models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Remote incident snapshot
# ---------------------------------------------------------------------------

class IncidentStatus(str, Enum):
    TRIGGERED = "triggered"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class Urgency(str, Enum):
    HIGH = "high"
    LOW = "low"


class _Reference(BaseModel):
    # PagerDuty references carry extra keys (type, self, html_url) we do not keep
    model_config = ConfigDict(extra="ignore")


class User(_Reference):
    id: str = ""
    # v3 webhooks send references with "summary" instead of "name"
    name: str = Field(default="", validation_alias=AliasChoices("name", "summary"))
    email: str | None = None


class ServiceRef(_Reference):
    id: str = ""
    name: str = Field(default="", validation_alias=AliasChoices("name", "summary"))


class EscalationPolicyRef(_Reference):
    id: str = ""
    name: str = Field(default="", validation_alias=AliasChoices("name", "summary"))
    html_url: str = ""


class Assignment(_Reference):
    assignee: User
    at: datetime | None = None


class Incident(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    incident_number: int = 0
    title: str = ""
    description: str = ""
    status: IncidentStatus
    urgency: Urgency
    created_at: datetime | None = None
    service: ServiceRef = Field(default_factory=ServiceRef)
    assignments: list[Assignment] = Field(default_factory=list)
    last_status_change_by: User | None = None
    last_status_change_at: datetime | None = None
    alert_count: int = 0
    html_url: str = ""
    escalation_policy: EscalationPolicyRef | None = None

    @property
    def is_unassigned(self) -> bool:
        return not self.assignments

    @property
    def assignee_names(self) -> list[str]:
        return [a.assignee.name for a in self.assignments]


# ---------------------------------------------------------------------------
# Canonical event
# ---------------------------------------------------------------------------

class EventKind(str, Enum):
    TRIGGERED = "triggered"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    REASSIGNED = "reassigned"
    STATUS_UPDATED = "status_updated"


@dataclass
class CanonicalEvent:
    id: str
    kind: EventKind
    incident: Incident
    source: str = "v3"


# ---------------------------------------------------------------------------
# Persisted correlation anchor
# ---------------------------------------------------------------------------

class NotificationRecord(BaseModel):
    """One per incident: which chat post shows it, and its last snapshot."""

    id: str
    post_id: str
    channel_id: str
    incident: Incident

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode()

    @classmethod
    def from_bytes(cls, data: bytes) -> "NotificationRecord":
        return cls.model_validate_json(data)


# ---------------------------------------------------------------------------
# User actions
# ---------------------------------------------------------------------------

class ActionKind(str, Enum):
    ACKNOWLEDGE = "acknowledge"
    RESOLVE = "resolve"
    REASSIGN = "reassign"


# Reassign with this assignee lists candidate users instead of assigning
FETCH_USERS = "fetch_users"


@dataclass
class ActionRequest:
    incident_id: str
    action: str
    user_id: str
    user_email: str = ""
    assignee_id: str | None = None


@dataclass
class ActionResult:
    action: ActionKind
    incident: Incident | None = None
    users: list[User] = field(default_factory=list)
    refreshed: bool = False

    def to_response(self) -> dict[str, Any]:
        return {"status": "success", "action": self.action.value}
