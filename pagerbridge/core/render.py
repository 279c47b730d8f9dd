"""Render an incident snapshot as Mattermost message attachment props."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pagerbridge.models import ActionKind, Incident, IncidentStatus, Urgency, User

COLOR_TRIGGERED_HIGH = "#FF0000"
COLOR_TRIGGERED_LOW = "#FFA500"
COLOR_ACKNOWLEDGED = "#FFFF00"
COLOR_RESOLVED = "#008000"


def action_url(incident_id: str, action: ActionKind, callback_base: str = "") -> str:
    return f"{callback_base.rstrip('/')}/api/v1/incidents/{incident_id}/{action.value}"


def format_timestamp(value: datetime | None) -> str:
    """RFC 3339, with Z for UTC."""
    if value is None:
        return ""
    return value.isoformat().replace("+00:00", "Z")


def incident_color(incident: Incident) -> str:
    if incident.status is IncidentStatus.ACKNOWLEDGED:
        return COLOR_ACKNOWLEDGED
    if incident.status is IncidentStatus.RESOLVED:
        return COLOR_RESOLVED
    if incident.urgency is Urgency.HIGH:
        return COLOR_TRIGGERED_HIGH
    return COLOR_TRIGGERED_LOW


def _fields(incident: Incident) -> list[dict[str, Any]]:
    fields = [
        {"title": "Service", "value": incident.service.name, "short": True},
        {"title": "Urgency", "value": incident.urgency.value.title(), "short": True},
    ]
    if not incident.is_unassigned:
        fields.append(
            {"title": "Assigned To", "value": ", ".join(incident.assignee_names), "short": True}
        )
    fields.append({"title": "Created", "value": format_timestamp(incident.created_at), "short": True})
    fields.append(
        {"title": "Link", "value": f"[View in PagerDuty]({incident.html_url})", "short": False}
    )
    return fields


def _action(
    incident_id: str,
    kind: ActionKind,
    name: str,
    callback_base: str,
    callback_token: str,
    **extra: Any,
) -> dict[str, Any]:
    context = {"incident_id": incident_id, "action": kind.value}
    if callback_token:
        context["token"] = callback_token
    return {
        "id": kind.value,
        "name": name,
        "integration": {
            "url": action_url(incident_id, kind, callback_base),
            "context": context,
        },
        **extra,
    }


def incident_actions(
    incident: Incident, callback_base: str = "", callback_token: str = ""
) -> list[dict[str, Any]]:
    actions: list[dict[str, Any]] = []
    if incident.status is IncidentStatus.TRIGGERED:
        actions.append(
            _action(incident.id, ActionKind.ACKNOWLEDGE, "Acknowledge", callback_base,
                    callback_token, type="button", style="primary")
        )
    if incident.status is not IncidentStatus.RESOLVED:
        actions.append(
            _action(incident.id, ActionKind.RESOLVE, "Resolve", callback_base,
                    callback_token, type="button", style="success")
        )
    # Options are filled in when the user asks for candidates
    actions.append(
        _action(incident.id, ActionKind.REASSIGN, "Reassign", callback_base,
                callback_token, type="select", data_source="custom", options=[])
    )
    return actions


def render_incident(
    incident: Incident, callback_base: str = "", callback_token: str = ""
) -> dict[str, Any]:
    attachment = {
        "title": f"[#{incident.incident_number}] {incident.title}",
        "text": incident.description,
        "color": incident_color(incident),
        "fields": _fields(incident),
        "actions": incident_actions(incident, callback_base, callback_token),
    }
    return {"attachments": [attachment], "from_webhook": "true"}


def render_user_options(
    users: list[User],
    incident_id: str,
    callback_base: str = "",
    callback_token: str = "",
) -> dict[str, Any]:
    """Response that fills the reassign select with candidate users.

    The select keeps its integration so the chosen user is posted back.
    """
    select = _action(
        incident_id, ActionKind.REASSIGN, "Reassign", callback_base, callback_token,
        type="select",
        options=[{"text": u.name, "value": u.id} for u in users],
    )
    return {"update": {"props": {"attachments": [{"actions": [select]}]}}}
