"""Slash command handler for /pagerduty."""

from __future__ import annotations

from dataclasses import dataclass

from pagerbridge.core.render import format_timestamp
from pagerbridge.errors import BridgeError
from pagerbridge.incidents.client import IncidentClient
from pagerbridge.models import Incident
from pagerbridge.utils.logging import get_logger

log = get_logger(__name__)

TRIGGER = "pagerduty"
DEFAULT_LIMIT = 10
MAX_LIMIT = 25

EPHEMERAL = "ephemeral"
IN_CHANNEL = "in_channel"

HELP_TEXT = (
    "### PagerDuty Command Help\n\n"
    "* `/pagerduty list [status=triggered|acknowledged|resolved] [urgency=high|low] "
    "[service=<id>] [limit=5]` - List incidents\n"
    "* `/pagerduty get <incident_id_or_number>` - Get details for a specific incident\n"
    "* `/pagerduty help` - Show this help message\n"
)


@dataclass
class CommandResponse:
    text: str
    response_type: str = EPHEMERAL

    def to_dict(self) -> dict[str, str]:
        return {"response_type": self.response_type, "text": self.text}


def _assignees(incident: Incident) -> str:
    return ", ".join(incident.assignee_names) or "Unassigned"


class CommandHandler:
    """Dispatches /pagerduty subcommands (list, get, help)."""

    def __init__(self, client: IncidentClient) -> None:
        self._client = client

    async def handle(self, text: str) -> CommandResponse:
        fields = text.split()
        # Mattermost sends the full command, "/pagerduty list ..."
        if fields and fields[0].lstrip("/").lower() == TRIGGER:
            fields = fields[1:]
        if not fields:
            return CommandResponse(HELP_TEXT)

        subcommand = fields[0].lower()
        args = fields[1:]

        if subcommand == "list":
            return await self._list(args)
        if subcommand == "get":
            if not args:
                return CommandResponse("Please provide an incident ID or number")
            return await self._get(args[0])
        if subcommand == "help":
            return CommandResponse(HELP_TEXT)
        return CommandResponse(
            f"Unknown subcommand: {subcommand}. Try `/pagerduty help` for available commands."
        )

    async def _list(self, args: list[str]) -> CommandResponse:
        params: dict[str, str] = {"limit": str(DEFAULT_LIMIT)}
        status = service = urgency = ""

        for arg in args:
            key, sep, value = arg.partition("=")
            if not sep:
                continue
            key = key.lower()
            if key == "limit":
                if value.isdigit() and 0 < int(value) <= MAX_LIMIT:
                    params["limit"] = value
            elif key == "status":
                status = value
                params["statuses[]"] = value
            elif key == "service":
                service = value
                params["service_ids[]"] = value
            elif key == "urgency":
                urgency = value
                params["urgencies[]"] = value

        try:
            incidents = await self._client.list(params)
        except BridgeError as e:
            log.warning("command_list_failed", error=str(e))
            return CommandResponse(f"Error getting incidents: {e}")

        matching = [
            i for i in incidents
            if (not status or i.status.value == status)
            and (not service or i.service.id == service)
            and (not urgency or i.urgency.value == urgency)
        ]

        text = "### PagerDuty Incidents\n\n"
        if not matching:
            text += "No incidents found matching your criteria."
            return CommandResponse(text, IN_CHANNEL)

        text += "| # | Status | Service | Title | Assigned To |\n"
        text += "| --- | --- | --- | --- | --- |\n"
        for i in matching:
            text += (
                f"| [#{i.incident_number}]({i.html_url}) | {i.status.value.title()} "
                f"| {i.service.name} | {i.title} | {_assignees(i)} |\n"
            )
        return CommandResponse(text, IN_CHANNEL)

    async def _get(self, identifier: str) -> CommandResponse:
        try:
            if identifier.isdigit():
                # The list endpoint may ignore the number filter, so match it here
                number = int(identifier)
                found = await self._client.list({"incident_number": identifier})
                incident = next((i for i in found if i.incident_number == number), None)
                if incident is None:
                    return CommandResponse(f"No incident found with number: {identifier}")
            else:
                incident = await self._client.get(identifier)
        except BridgeError as e:
            log.warning("command_get_failed", identifier=identifier, error=str(e))
            return CommandResponse(f"Error getting incident: {e}")

        text = f"### PagerDuty Incident #{incident.incident_number}: {incident.title}\n\n"
        text += f"**Status:** {incident.status.value.title()}\n"
        text += f"**Urgency:** {incident.urgency.value.title()}\n"
        text += f"**Service:** {incident.service.name}\n"
        text += f"**Assigned To:** {_assignees(incident)}\n"
        text += f"**Created:** {format_timestamp(incident.created_at)}\n"
        if incident.last_status_change_at:
            text += f"**Last Status Change:** {format_timestamp(incident.last_status_change_at)}\n"
        text += "\n**Description:**\n"
        text += incident.description
        text += f"\n\n[View in PagerDuty]({incident.html_url})"
        return CommandResponse(text, IN_CHANNEL)
