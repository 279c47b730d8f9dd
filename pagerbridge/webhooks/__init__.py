"""Webhook ingress: signatures, wire formats and the HTTP server."""
