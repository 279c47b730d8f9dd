"""Mattermost transport over the REST API v4."""

from __future__ import annotations

from typing import Any

import httpx

from pagerbridge.config import ChatConfig
from pagerbridge.errors import MessageNotFound, RemoteError
from pagerbridge.transports.base import ChatTransport
from pagerbridge.utils.http import send
from pagerbridge.utils.logging import get_logger

log = get_logger(__name__)


class MattermostTransport(ChatTransport):
    def __init__(
        self,
        config: ChatConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.url.rstrip("/") + "/api/v4",
            timeout=30,
            transport=transport,
            headers={"Authorization": f"Bearer {config.bot_token}"},
        )
        self._channel_cache: dict[str, str] = {}

    @property
    def platform_name(self) -> str:
        return "mattermost"

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    async def resolve_channel(self, channel: str) -> str:
        cached = self._channel_cache.get(channel)
        if cached:
            return cached

        channel_id = await self._find_channel(channel)
        self._channel_cache[channel] = channel_id
        log.info("channel_resolved", channel=channel, channel_id=channel_id)
        return channel_id

    async def _find_channel(self, channel: str) -> str:
        # Direct id lookup first
        try:
            resp = await send(self._client, "GET", f"/channels/{channel}")
            return resp.json()["id"]
        except RemoteError as e:
            if e.status_code not in (400, 403, 404):
                raise

        resp = await send(self._client, "GET", "/users/me/teams")
        teams = resp.json()
        for team in teams:
            team_id = team["id"]
            try:
                resp = await send(self._client, "GET", f"/teams/{team_id}/channels/name/{channel}")
                return resp.json()["id"]
            except RemoteError as e:
                if e.status_code not in (400, 403, 404):
                    raise

            # Name or display name, ignoring case
            try:
                resp = await send(self._client, "GET", f"/users/me/teams/{team_id}/channels")
            except RemoteError as e:
                log.debug("channel_list_failed", team_id=team_id, status=e.status_code)
                continue
            wanted = channel.casefold()
            for ch in resp.json():
                if ch.get("name", "").casefold() == wanted or ch.get("display_name", "").casefold() == wanted:
                    return ch["id"]

        raise RemoteError(404, "", f"channel not found in any team: {channel}")

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    async def post_message(self, channel_id: str, props: dict[str, Any]) -> str:
        resp = await send(
            self._client,
            "POST",
            "/posts",
            json={"channel_id": channel_id, "message": "", "props": props},
        )
        post_id = resp.json()["id"]
        log.debug("post_created", channel_id=channel_id, post_id=post_id)
        return post_id

    async def get_message(self, message_id: str) -> dict[str, Any] | None:
        try:
            resp = await send(self._client, "GET", f"/posts/{message_id}", not_found=MessageNotFound)
        except MessageNotFound:
            return None
        post = resp.json()
        if post.get("delete_at"):
            return None
        return post

    async def update_message(self, message_id: str, props: dict[str, Any]) -> None:
        await send(
            self._client,
            "PUT",
            f"/posts/{message_id}/patch",
            json={"props": props},
            not_found=MessageNotFound,
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user_email(self, user_id: str) -> str:
        resp = await send(self._client, "GET", f"/users/{user_id}")
        return resp.json().get("email", "")
