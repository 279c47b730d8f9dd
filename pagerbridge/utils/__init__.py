"""Utility modules for pagerbridge."""

from .logging import bind_request, get_logger, setup_logging

__all__ = [
    "bind_request",
    "get_logger",
    "setup_logging",
]
