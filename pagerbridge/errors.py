"""Error taxonomy shared by the webhook, correlation and action layers."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all pagerbridge errors."""


class ConfigError(BridgeError):
    """Required configuration is missing or invalid."""


class DecodeError(BridgeError):
    """A webhook body is not valid JSON or not a valid payload."""


class SignatureError(BridgeError):
    """A webhook signature is missing or does not match."""


class InvalidAction(BridgeError):
    """An action request names an unknown action or lacks its arguments."""


class StoreError(BridgeError):
    """The key-value store failed to read or write."""


class TransportError(BridgeError):
    """A remote API could not be reached."""


class RemoteError(BridgeError):
    """A remote API answered with a non-success status."""

    def __init__(self, status_code: int, body: str, message: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"remote error: status {status_code}: {body}")


class IncidentNotFound(RemoteError):
    """The incident API has no incident with the requested id."""


class MessageNotFound(RemoteError):
    """The chat platform no longer has the requested message."""
