"""pagerbridge chat transports."""

from pagerbridge.transports.base import ChatTransport
from pagerbridge.transports.mattermost import MattermostTransport

__all__ = [
    "ChatTransport",
    "MattermostTransport",
]
