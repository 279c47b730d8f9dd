"""Webhook signature validation and event normalization."""

from __future__ import annotations

import hashlib
import hmac
import json
from enum import Enum

from pydantic import ValidationError

from pagerbridge.errors import DecodeError
from pagerbridge.models import CanonicalEvent
from pagerbridge.utils.logging import get_logger
from pagerbridge.webhooks.models import parse_payload

log = get_logger(__name__)

SIGNATURE_HEADER = "X-PagerDuty-Signature"
SIGNATURE_SCHEME = "v1="


# ---------------------------------------------------------------------------
# Signature validation
# ---------------------------------------------------------------------------

class SignatureStatus(str, Enum):
    VALID = "valid"
    MISSING = "missing"
    MISMATCH = "mismatch"


def _digest(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def sign(body: bytes, secret: str) -> str:
    """Signature header value for ``body``, as the sender computes it."""
    return SIGNATURE_SCHEME + _digest(body, secret)


def check_signature(body: bytes, secret: str, header: str | None) -> SignatureStatus:
    """Compare the HMAC-SHA256 of the raw body against the provided signature.

    The header may list several comma-separated signatures while the sender
    rotates secrets; any match is valid. Signatures without the ``v1=``
    prefix are compared as-is.
    """
    if not header or not header.strip():
        return SignatureStatus.MISSING

    expected = _digest(body, secret)
    matched = False
    for candidate in header.split(","):
        candidate = candidate.strip()
        if candidate.startswith(SIGNATURE_SCHEME):
            candidate = candidate[len(SIGNATURE_SCHEME):]
        else:
            log.debug("signature_unexpected_format")
        # Keep comparing after a match so timing does not depend on position
        if hmac.compare_digest(expected.encode(), candidate.encode()):
            matched = True
    return SignatureStatus.VALID if matched else SignatureStatus.MISMATCH


def verify_signature(body: bytes, secret: str, header: str | None) -> bool:
    return check_signature(body, secret, header) is SignatureStatus.VALID


# ---------------------------------------------------------------------------
# Event normalization
# ---------------------------------------------------------------------------

def decode_webhook(body: bytes) -> list[CanonicalEvent]:
    """Decode a webhook body into zero or more canonical events, in order.

    Raises ``DecodeError`` for malformed JSON or an invalid payload. Events
    for other resources or untracked event types are dropped, not errors.
    """
    try:
        document = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"invalid JSON: {e}") from e
    if not isinstance(document, dict):
        raise DecodeError("webhook payload is not a JSON object")

    try:
        payload = parse_payload(document)
        if payload is None:
            log.info("webhook_shape_unrecognized", keys=sorted(document)[:10])
            return []
        return payload.to_events()
    except ValidationError as e:
        raise DecodeError(f"invalid webhook payload: {e.error_count()} error(s)") from e
