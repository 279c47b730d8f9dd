"""Shared fixtures: an in-memory chat platform and store, and incident payloads."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from pagerbridge.config import ConfigHolder, Settings
from pagerbridge.errors import MessageNotFound, RemoteError, StoreError, TransportError
from pagerbridge.models import Incident
from pagerbridge.storage.kv import KVStore
from pagerbridge.transports.base import ChatTransport

BASE_INCIDENT: dict[str, Any] = {
    "id": "PINC1",
    "type": "incident",
    "incident_number": 42,
    "title": "Disk full on db-1",
    "description": "Disk full on db-1",
    "status": "triggered",
    "urgency": "high",
    "created_at": "2024-05-01T12:00:00Z",
    "service": {"id": "PSVC1", "summary": "Database", "type": "service_reference"},
    "assignments": [
        {
            "at": "2024-05-01T12:00:00Z",
            "assignee": {"id": "PUSER1", "summary": "Alice", "type": "user_reference"},
        }
    ],
    "html_url": "https://acme.pagerduty.com/incidents/PINC1",
}


def incident_data(**overrides: Any) -> dict[str, Any]:
    data = copy.deepcopy(BASE_INCIDENT)
    data.update(overrides)
    return data


class FakeChat(ChatTransport):
    """Chat platform kept in memory, with switches for failure cases."""

    def __init__(self) -> None:
        self.posts: dict[str, dict[str, Any]] = {}
        self.channels: dict[str, str] = {}
        self.emails: dict[str, str] = {"U1": "a@example.com"}
        self.post_calls = 0
        self.update_calls = 0
        self.fail_posts = False
        self.fail_updates_not_found = False

    @property
    def platform_name(self) -> str:
        return "fake"

    async def resolve_channel(self, channel: str) -> str:
        return f"chan-{channel}"

    async def post_message(self, channel_id: str, props: dict[str, Any]) -> str:
        if self.fail_posts:
            raise TransportError("chat unreachable")
        self.post_calls += 1
        post_id = f"post{self.post_calls}"
        self.posts[post_id] = props
        self.channels[post_id] = channel_id
        return post_id

    async def get_message(self, message_id: str) -> dict[str, Any] | None:
        if message_id not in self.posts:
            return None
        return {"id": message_id, "props": self.posts[message_id]}

    async def update_message(self, message_id: str, props: dict[str, Any]) -> None:
        if self.fail_updates_not_found or message_id not in self.posts:
            raise MessageNotFound(404, "")
        self.update_calls += 1
        self.posts[message_id] = props

    async def get_user_email(self, user_id: str) -> str:
        if user_id not in self.emails:
            raise RemoteError(404, "user not found")
        return self.emails[user_id]

    async def close(self) -> None:
        pass

    def attachment(self, post_id: str) -> dict[str, Any]:
        return self.posts[post_id]["attachments"][0]


class MemoryStore(KVStore):
    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.fail_reads = False

    async def get(self, key: str) -> bytes | None:
        if self.fail_reads:
            raise StoreError("read failed")
        return self.data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self.data[key] = value


@pytest.fixture
def settings():
    return Settings(
        incidents={"api_key": "pd-key", "base_url": "https://pd.test"},
        chat={
            "url": "https://chat.test",
            "bot_token": "bot-token",
            "default_channel": "incidents",
            "callback_base_url": "https://bridge.test",
            "callback_token": "cb-token",
        },
        webhook={"path": "/webhook", "secret": ""},
    )


@pytest.fixture
def holder(settings):
    return ConfigHolder(settings)


@pytest.fixture
def chat():
    return FakeChat()


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def incident():
    return Incident.model_validate(incident_data())
