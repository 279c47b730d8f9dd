"""Tests for webhook signature validation and event normalization."""

import json

import pytest

from pagerbridge.errors import DecodeError
from pagerbridge.models import EventKind, IncidentStatus
from pagerbridge.webhooks.handlers import (
    SignatureStatus,
    check_signature,
    decode_webhook,
    sign,
    verify_signature,
)
from pagerbridge.webhooks.models import (
    EVENT_KINDS,
    LegacyWebhookPayload,
    V3WebhookPayload,
    parse_payload,
)

from conftest import incident_data


def _flip(data: bytes, index: int) -> bytes:
    flipped = bytearray(data)
    flipped[index] ^= 0x01
    return bytes(flipped)


def v3_body(event_type="incident.triggered", resource_type="incident", **incident) -> bytes:
    return json.dumps({
        "event": {
            "id": "EVT1",
            "event_type": event_type,
            "resource_type": resource_type,
            "occurred_at": "2024-05-01T12:00:00Z",
            "agent": {"id": "PUSER1", "type": "user_reference", "summary": "Alice"},
            "data": incident_data(**incident),
        }
    }).encode()


# ---------------------------------------------------------------------------
# Signature tests
# ---------------------------------------------------------------------------

class TestSignature:
    @pytest.mark.parametrize(
        "body,secret",
        [
            (b"", "s"),
            (b'{"event": {}}', "webhook-secret"),
            (bytes(range(256)), "kéy with spaces"),
        ],
    )
    def test_round_trip(self, body, secret):
        assert verify_signature(body, secret, sign(body, secret)) is True

    def test_flipping_any_body_byte_fails(self):
        body = b'{"event": {"id": "EVT1"}}'
        secret = "webhook-secret"
        header = sign(body, secret)
        for i in range(len(body)):
            assert verify_signature(_flip(body, i), secret, header) is False

    def test_flipping_any_secret_byte_fails(self):
        body = b'{"event": {"id": "EVT1"}}'
        secret = "webhook-secret"
        header = sign(body, secret)
        for i in range(len(secret)):
            wrong = secret[:i] + chr(ord(secret[i]) ^ 0x01) + secret[i + 1:]
            assert verify_signature(body, wrong, header) is False

    def test_header_format(self):
        header = sign(b"body", "secret")
        assert header.startswith("v1=")
        assert len(header) == 3 + 64

    def test_missing_header(self):
        assert check_signature(b"body", "secret", None) is SignatureStatus.MISSING
        assert check_signature(b"body", "secret", "  ") is SignatureStatus.MISSING

    def test_mismatch(self):
        assert check_signature(b"body", "secret", "v1=deadbeef") is SignatureStatus.MISMATCH

    def test_any_of_several_signatures_matches(self):
        body = b"body"
        header = f"v1=deadbeef, {sign(body, 'secret')}"
        assert check_signature(body, "secret", header) is SignatureStatus.VALID

    def test_bare_signature_without_prefix(self):
        body = b"body"
        bare = sign(body, "secret")[len("v1="):]
        assert check_signature(body, "secret", bare) is SignatureStatus.VALID


# ---------------------------------------------------------------------------
# Normalization tests
# ---------------------------------------------------------------------------

class TestEventKinds:
    @pytest.mark.parametrize(
        "event_type,kind",
        [
            ("incident.triggered", EventKind.TRIGGERED),
            ("incident.acknowledged", EventKind.ACKNOWLEDGED),
            ("incident.resolved", EventKind.RESOLVED),
            ("incident.reassigned", EventKind.REASSIGNED),
            ("incident.status_update_published", EventKind.STATUS_UPDATED),
        ],
    )
    def test_recognized_types(self, event_type, kind):
        events = decode_webhook(v3_body(event_type))
        assert len(events) == 1
        assert events[0].kind is kind
        assert events[0].id == "EVT1"
        assert events[0].source == "v3"

    def test_table_has_five_entries(self):
        assert len(EVENT_KINDS) == 5

    @pytest.mark.parametrize("event_type", ["incident.priority_updated", "service.created", ""])
    def test_unrecognized_type_yields_nothing(self, event_type):
        assert decode_webhook(v3_body(event_type)) == []

    @pytest.mark.parametrize("event_type", list(EVENT_KINDS))
    def test_other_resource_yields_nothing(self, event_type):
        body = json.dumps({
            "event": {
                "id": "EVT2",
                "event_type": event_type,
                "resource_type": "service",
                "data": {"id": "PSVC1", "type": "service"},
            }
        }).encode()
        assert decode_webhook(body) == []


class TestDecodeWebhook:
    def test_v3_incident_snapshot(self):
        events = decode_webhook(v3_body(status="acknowledged", urgency="low"))
        incident = events[0].incident
        assert incident.id == "PINC1"
        assert incident.incident_number == 42
        assert incident.status is IncidentStatus.ACKNOWLEDGED
        assert incident.service.name == "Database"
        assert incident.assignee_names == ["Alice"]

    def test_legacy_batch_keeps_order(self):
        body = json.dumps({
            "messages": [
                {"id": "M1", "event": "incident.triggered", "incident": incident_data()},
                {"id": "M2", "event": "incident.unknown", "incident": incident_data()},
                {
                    "id": "M3",
                    "event": "incident.resolved",
                    "incident": incident_data(status="resolved"),
                },
            ]
        }).encode()
        events = decode_webhook(body)
        assert [e.id for e in events] == ["M1", "M3"]
        assert [e.kind for e in events] == [EventKind.TRIGGERED, EventKind.RESOLVED]
        assert all(e.source == "legacy" for e in events)

    def test_unrecognized_shape_yields_nothing(self):
        assert decode_webhook(b'{"ping": true}') == []

    @pytest.mark.parametrize("body", [b"not json", b"\xff\xfe", b"", b"[1, 2]", b'"text"'])
    def test_malformed_raises(self, body):
        with pytest.raises(DecodeError):
            decode_webhook(body)

    def test_missing_incident_id_raises(self):
        with pytest.raises(DecodeError):
            decode_webhook(v3_body(id=""))

    def test_unknown_status_raises(self):
        with pytest.raises(DecodeError):
            decode_webhook(v3_body(status="snoozed"))

    def test_missing_urgency_raises(self):
        body = json.loads(v3_body())
        del body["event"]["data"]["urgency"]
        with pytest.raises(DecodeError):
            decode_webhook(json.dumps(body).encode())


class TestParsePayload:
    def test_picks_variant_by_shape(self):
        assert isinstance(parse_payload({"messages": []}), LegacyWebhookPayload)
        assert isinstance(parse_payload({"event": {}}), V3WebhookPayload)
        assert parse_payload({}) is None
