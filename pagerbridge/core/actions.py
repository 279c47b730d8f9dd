"""Executes acknowledge / resolve / reassign requests from chat."""

from __future__ import annotations

from uuid import uuid4

from pagerbridge.core.correlator import NotificationCorrelator
from pagerbridge.errors import BridgeError, InvalidAction
from pagerbridge.incidents.client import IncidentClient
from pagerbridge.models import (
    FETCH_USERS,
    ActionKind,
    ActionRequest,
    ActionResult,
    CanonicalEvent,
    EventKind,
    Incident,
    IncidentStatus,
)
from pagerbridge.utils.logging import get_logger

log = get_logger(__name__)

_TARGET_STATUS = {
    ActionKind.ACKNOWLEDGE: IncidentStatus.ACKNOWLEDGED,
    ActionKind.RESOLVE: IncidentStatus.RESOLVED,
}


def parse_action(action: str) -> ActionKind:
    try:
        return ActionKind(action)
    except ValueError:
        raise InvalidAction(f"unknown action: {action!r}") from None


class ActionDispatcher:
    """Validates an action, applies it remotely, then refreshes the notification.

    The acting user's email must already be resolved on the request. The
    remote mutation is not rolled back if the local refresh fails; the next
    webhook for the incident brings the notification up to date.
    """

    def __init__(self, client: IncidentClient, correlator: NotificationCorrelator) -> None:
        self._client = client
        self._correlator = correlator

    async def dispatch(self, request: ActionRequest) -> ActionResult:
        kind = parse_action(request.action)
        log.info(
            "action_requested",
            action=kind.value,
            incident_id=request.incident_id,
            user_id=request.user_id,
        )

        if kind is ActionKind.REASSIGN:
            if not request.assignee_id:
                raise InvalidAction("reassign requires an assignee")
            if request.assignee_id == FETCH_USERS:
                users = await self._client.list_users()
                return ActionResult(action=kind, users=users)
            incident = await self._client.assign(
                request.incident_id, [request.assignee_id], request.user_email
            )
            refreshed = await self._refresh(incident, EventKind.REASSIGNED)
            return ActionResult(action=kind, incident=incident, refreshed=refreshed)

        incident = await self._client.update(
            request.incident_id, _TARGET_STATUS[kind].value, request.user_email, ""
        )
        refreshed = await self._refresh(incident, EventKind.STATUS_UPDATED)
        return ActionResult(action=kind, incident=incident, refreshed=refreshed)

    async def _refresh(self, incident: Incident, kind: EventKind) -> bool:
        event = CanonicalEvent(
            id=f"action-{uuid4().hex[:12]}",
            kind=kind,
            incident=incident,
            source="action",
        )
        try:
            await self._correlator.handle(event)
        except BridgeError as e:
            log.warning(
                "action_refresh_failed",
                incident_id=incident.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        return True
