"""Maps incident events onto one chat notification per incident."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import ValidationError

from pagerbridge.config import ConfigHolder
from pagerbridge.core.locks import KeyedLock
from pagerbridge.core.render import render_incident
from pagerbridge.errors import ConfigError, MessageNotFound, StoreError
from pagerbridge.models import CanonicalEvent, EventKind, Incident, NotificationRecord
from pagerbridge.storage.kv import KVStore
from pagerbridge.transports.base import ChatTransport
from pagerbridge.utils.logging import get_logger

log = get_logger(__name__)

KEY_PREFIX = "incident_attachments:"


def record_key(incident_id: str) -> str:
    return KEY_PREFIX + incident_id


class Outcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    RECREATED = "recreated"


@dataclass
class CorrelationResult:
    outcome: Outcome
    record: NotificationRecord


class NotificationCorrelator:
    """Owns the notification records.

    Every event for an incident lands on the same record and the same chat
    post. Deliveries may repeat or arrive out of order:

    * a repeated trigger refreshes the existing post instead of posting again;
    * an update with no record yet posts a fresh notification;
    * a record whose post was deleted gets a new post and the new post id.

    Records are never deleted. Work on one incident is serialized by a
    per-incident lock, so concurrent deliveries cannot lose each other's write.
    """

    def __init__(
        self,
        store: KVStore,
        transport: ChatTransport,
        config: ConfigHolder,
    ) -> None:
        self._store = store
        self._transport = transport
        self._config = config
        self._locks = KeyedLock()

    async def handle(self, event: CanonicalEvent) -> CorrelationResult:
        incident = event.incident
        async with self._locks.hold(incident.id):
            record = await self._load(incident.id)

            if record is None:
                if event.kind is not EventKind.TRIGGERED:
                    log.info(
                        "notification_missing_for_update",
                        incident_id=incident.id,
                        kind=event.kind.value,
                    )
                return await self._create(incident)

            if event.kind is EventKind.TRIGGERED:
                log.info("duplicate_trigger", incident_id=incident.id, event_id=event.id)
            return await self._update(record, incident)

    async def get_record(self, incident_id: str) -> NotificationRecord | None:
        data = await self._store.get(record_key(incident_id))
        if data is None:
            return None
        return NotificationRecord.from_bytes(data)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    async def _create(
        self,
        incident: Incident,
        channel_id: str | None = None,
        outcome: Outcome = Outcome.CREATED,
    ) -> CorrelationResult:
        if channel_id is None:
            channel_id = await self._channel_id()

        post_id = await self._transport.post_message(channel_id, self._render(incident))
        record = NotificationRecord(
            id=incident.id,
            post_id=post_id,
            channel_id=channel_id,
            incident=incident,
        )
        await self._save(record)
        log.info(
            "notification_posted",
            incident_id=incident.id,
            post_id=post_id,
            channel_id=channel_id,
            outcome=outcome.value,
        )
        return CorrelationResult(outcome=outcome, record=record)

    async def _update(self, record: NotificationRecord, incident: Incident) -> CorrelationResult:
        if await self._transport.get_message(record.post_id) is None:
            log.warning("notification_post_gone", incident_id=incident.id, post_id=record.post_id)
            return await self._create(incident, record.channel_id, Outcome.RECREATED)

        try:
            await self._transport.update_message(record.post_id, self._render(incident))
        except MessageNotFound:
            log.warning("notification_post_gone", incident_id=incident.id, post_id=record.post_id)
            return await self._create(incident, record.channel_id, Outcome.RECREATED)

        updated = record.model_copy(update={"incident": incident})
        await self._save(updated)
        log.info(
            "notification_updated",
            incident_id=incident.id,
            post_id=record.post_id,
            status=incident.status.value,
        )
        return CorrelationResult(outcome=Outcome.UPDATED, record=updated)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, incident_id: str) -> NotificationRecord | None:
        # An unreadable record must not block the event: post a new one
        try:
            return await self.get_record(incident_id)
        except (StoreError, ValidationError) as e:
            log.error("notification_record_unreadable", incident_id=incident_id, error=str(e))
            return None

    async def _save(self, record: NotificationRecord) -> None:
        await self._store.set(record_key(record.id), record.to_bytes())

    async def _channel_id(self) -> str:
        channel = self._config.get().chat.default_channel
        if not channel:
            raise ConfigError("chat.default_channel is not configured")
        return await self._transport.resolve_channel(channel)

    def _render(self, incident: Incident) -> dict:
        chat = self._config.get().chat
        return render_incident(incident, chat.callback_base_url, chat.callback_token)
