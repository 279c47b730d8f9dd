"""Incident management API client."""

from pagerbridge.incidents.client import IncidentClient

__all__ = ["IncidentClient"]
