"""Inbound event pseudonymization for the ingestion path.

Each tracked event carries a client-generated anonymous id. Before the event
is forwarded downstream the id is replaced with
SHA256(anonymous_id + daily_salt), and retried submissions of the same
event_id are dropped.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from anonymity.config import Settings, get_settings
from anonymity.dedup import DuplicateEventGuard
from anonymity.exceptions import BatchTooLargeError
from anonymity.hasher import salt_anonymous_id
from anonymity.salt import DailySaltProvisioner
from anonymity.sanitize import ValidationLimits, sanitize_string, validate_session_id
from anonymity.store import KeyValueStore

logger = structlog.get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class InboundEvent(BaseModel):
    """Tracked event as submitted by the browser tracker.

    Accepts both snake_case and the tracker's camelCase keys
    (``anonymousId``, ``eventId``, ``sessionId``).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str = "track"
    name: str = ""
    anonymous_id: Optional[str] = None
    session_id: str = ""
    timestamp: int = Field(default_factory=_now_ms)
    path: str = ""
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("event_id", mode="before")
    @classmethod
    def event_id_or_new(cls, v):
        return sanitize_string(v, ValidationLimits.SHORT_STRING_MAX_LENGTH) or str(uuid4())

    @field_validator("event_type", "name", mode="before")
    @classmethod
    def short_text(cls, v):
        return sanitize_string(v, ValidationLimits.SHORT_STRING_MAX_LENGTH)

    @field_validator("path", mode="before")
    @classmethod
    def long_text(cls, v):
        return sanitize_string(v, ValidationLimits.STRING_MAX_LENGTH)

    @field_validator("anonymous_id", mode="before")
    @classmethod
    def anonymous_id_or_none(cls, v):
        return sanitize_string(v, ValidationLimits.SHORT_STRING_MAX_LENGTH) or None

    @field_validator("session_id", mode="before")
    @classmethod
    def session_id_format(cls, v):
        return validate_session_id(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def timestamp_or_now(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return int(v)
        return _now_ms()


class EventAnonymizer:
    """
    Replace anonymous ids with daily-salted pseudonyms and drop duplicates.

    Store errors from either the salt lookup or the dedup check propagate
    unchanged; the caller decides between retrying and failing the request.
    """

    def __init__(
        self,
        provisioner: DailySaltProvisioner,
        guard: Optional[DuplicateEventGuard] = None,
        batch_max_size: int = ValidationLimits.BATCH_MAX_SIZE,
    ):
        self.provisioner = provisioner
        self.guard = guard
        self.batch_max_size = batch_max_size

    async def _is_duplicate(self, event: InboundEvent) -> bool:
        if self.guard is None:
            return False
        return await self.guard.check_duplicate(event.event_id, event.event_type)

    @staticmethod
    def _apply_salt(event: InboundEvent, salt: str) -> InboundEvent:
        if event.anonymous_id is None:
            return event
        return event.model_copy(
            update={"anonymous_id": salt_anonymous_id(event.anonymous_id, salt)}
        )

    async def anonymize(self, event: InboundEvent) -> Optional[InboundEvent]:
        """
        Pseudonymize a single event.

        Returns:
            Event with a salted anonymous_id, or None if it is a duplicate
        """
        # A salt failure after the marker is written drops the client's retry; accepted
        is_duplicate, salt = await asyncio.gather(
            self._is_duplicate(event),
            self.provisioner.get_daily_salt(),
        )

        if is_duplicate:
            logger.info("event_duplicate", event_id=event.event_id, event_type=event.event_type)
            return None

        return self._apply_salt(event, salt)

    async def anonymize_batch(self, events: Sequence[InboundEvent]) -> List[InboundEvent]:
        """
        Pseudonymize a batch with a single salt lookup.

        Events are checked one at a time in batch order, so the first copy of
        a repeated event_id is kept and later copies are dropped.

        Raises:
            BatchTooLargeError: If the batch exceeds batch_max_size
        """
        if len(events) > self.batch_max_size:
            raise BatchTooLargeError(len(events), self.batch_max_size)

        if not events:
            return []

        salt = await self.provisioner.get_daily_salt()

        accepted = []
        for event in events:
            if await self._is_duplicate(event):
                continue
            accepted.append(self._apply_salt(event, salt))

        logger.info(
            "batch_anonymized",
            received=len(events),
            accepted=len(accepted),
            duplicates=len(events) - len(accepted),
        )
        return accepted


def create_event_anonymizer(
    store: KeyValueStore,
    settings: Optional[Settings] = None,
) -> EventAnonymizer:
    """Wire provisioner, dedup guard and anonymizer from settings"""
    settings = settings or get_settings()
    return EventAnonymizer(
        provisioner=DailySaltProvisioner.from_settings(store, settings),
        guard=DuplicateEventGuard.from_settings(store, settings),
        batch_max_size=settings.BATCH_MAX_SIZE,
    )
