"""PagerDuty REST v2 client."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import httpx

from pagerbridge.config import IncidentAPIConfig
from pagerbridge.errors import IncidentNotFound
from pagerbridge.models import Incident, IncidentStatus, User
from pagerbridge.utils.http import send
from pagerbridge.utils.logging import get_logger

log = get_logger(__name__)

_ACCEPT = "application/vnd.pagerduty+json;version=2"

QueryParams = Mapping[str, "str | int | Sequence[str]"]


class IncidentClient:
    """Talks to the incident API. Holds only the credential and the HTTP client.

    Every call is made once; failures surface as ``RemoteError``
    (``IncidentNotFound`` for an unknown incident) or ``TransportError``.
    """

    def __init__(
        self,
        config: IncidentAPIConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            timeout=config.timeout,
            transport=transport,
            headers={
                "Accept": _ACCEPT,
                "Content-Type": "application/json",
            },
        )
        self.set_token(config.api_key)

    def set_token(self, api_key: str) -> None:
        self._client.headers["Authorization"] = f"Token token={api_key}"

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Incidents
    # ------------------------------------------------------------------

    async def get(self, incident_id: str) -> Incident:
        resp = await send(
            self._client, "GET", f"/incidents/{incident_id}", not_found=IncidentNotFound
        )
        return Incident.model_validate(resp.json()["incident"])

    async def list(self, params: QueryParams | None = None) -> list[Incident]:
        """List incidents. ``params`` are passed through as query parameters."""
        resp = await send(self._client, "GET", "/incidents", params=_query(params))
        return [Incident.model_validate(i) for i in resp.json().get("incidents", [])]

    async def update(
        self,
        incident_id: str,
        status: IncidentStatus | str,
        user_email: str,
        note: str = "",
    ) -> Incident:
        payload: dict[str, Any] = {
            "incident": {
                "type": "incident_reference",
                "status": IncidentStatus(status).value,
            },
        }
        if note:
            payload["note"] = {"content": note}

        log.info("incident_update", incident_id=incident_id, status=payload["incident"]["status"])
        resp = await send(
            self._client,
            "PUT",
            f"/incidents/{incident_id}",
            json=payload,
            headers=_attribution(user_email),
            not_found=IncidentNotFound,
        )
        return Incident.model_validate(resp.json()["incident"])

    async def assign(
        self, incident_id: str, user_ids: Sequence[str], user_email: str
    ) -> Incident:
        """Replace the incident's assignments with ``user_ids``."""
        payload = {
            "incident": {
                "type": "incident_reference",
                "assignments": [
                    {"assignee": {"id": uid, "type": "user_reference"}}
                    for uid in user_ids
                ],
            },
        }

        log.info("incident_assign", incident_id=incident_id, assignees=list(user_ids))
        resp = await send(
            self._client,
            "PUT",
            f"/incidents/{incident_id}",
            json=payload,
            headers=_attribution(user_email),
            not_found=IncidentNotFound,
        )
        return Incident.model_validate(resp.json()["incident"])

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def list_users(self) -> list[User]:
        resp = await send(self._client, "GET", "/users")
        return [User.model_validate(u) for u in resp.json().get("users", [])]


def _attribution(user_email: str) -> dict[str, str]:
    # PagerDuty attributes the change to the user named in From
    return {"From": user_email} if user_email else {}


def _query(params: QueryParams | None) -> list[tuple[str, str]]:
    if not params:
        return []
    items: list[tuple[str, str]] = []
    for key, value in params.items():
        if isinstance(value, (list, tuple)):
            items.extend((key, str(v)) for v in value)
        else:
            items.append((key, str(value)))
    return items
