"""Abstract chat transport."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ChatTransport(ABC):
    """What the correlator and the action endpoints need from a chat platform."""

    @property
    @abstractmethod
    def platform_name(self) -> str: ...

    @abstractmethod
    async def resolve_channel(self, channel: str) -> str:
        """Channel id for a configured channel id or name."""
        ...

    @abstractmethod
    async def post_message(self, channel_id: str, props: dict[str, Any]) -> str:
        """Post a message and return its id."""
        ...

    @abstractmethod
    async def get_message(self, message_id: str) -> dict[str, Any] | None:
        """The message, or None when it no longer exists."""
        ...

    @abstractmethod
    async def update_message(self, message_id: str, props: dict[str, Any]) -> None:
        """Replace a message's props. Raises ``MessageNotFound`` if it is gone."""
        ...

    @abstractmethod
    async def get_user_email(self, user_id: str) -> str: ...

    async def close(self) -> None:
        return None
