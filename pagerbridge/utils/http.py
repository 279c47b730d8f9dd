"""Shared request helper for the REST clients."""

from __future__ import annotations

from typing import Any

import httpx

from pagerbridge.errors import RemoteError, TransportError


async def send(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    *,
    not_found: type[RemoteError] | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request, mapping failures onto the error taxonomy.

    Non-2xx responses raise ``RemoteError`` carrying status and body (or
    ``not_found`` for a 404 when given). Network failures and timeouts raise
    ``TransportError``. Nothing is retried.
    """
    try:
        resp = await client.request(method, path, **kwargs)
    except httpx.TransportError as e:
        raise TransportError(f"{method} {path}: {type(e).__name__}: {e}") from e

    if resp.status_code == 404 and not_found is not None:
        raise not_found(resp.status_code, resp.text)
    if not resp.is_success:
        raise RemoteError(resp.status_code, resp.text)
    return resp
