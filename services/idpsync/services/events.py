"""In-process event publishing for registry changes.

The deletion sweep does not delete records itself: it publishes an
``EntityDeletedEvent`` and whichever listener is subscribed removes the
record.
"""

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy.orm import Session

from idpsync.db.provisioning import SqlProviderStore
from idpsync.logging_config import get_logger
from idpsync.provider.exceptions import ProviderNotFoundError
from idpsync.provider.models import IdentityProvider
from idpsync.services.audit_service import log_audit_event

logger = get_logger(__name__)

SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class EntityDeletedEvent:
    """Request to remove a provider record, raised on behalf of ``actor``."""

    record: IdentityProvider
    actor: str = SYSTEM_ACTOR


class NotificationSink(Protocol):
    """Anything that accepts published events and reports whether they were delivered."""

    def publish(self, event: Any) -> bool: ...


class EventPublisher:
    """Synchronous publisher dispatching events to listeners by event type."""

    def __init__(self) -> None:
        self._listeners: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: type, listener: Callable[[Any], None]) -> None:
        self._listeners[event_type].append(listener)

    def publish(self, event: Any) -> bool:
        """Deliver ``event`` to every listener registered for its type, in order.

        Returns:
            Whether at least one listener received the event.
        """
        listeners = [
            listener
            for event_type, registered in self._listeners.items()
            if isinstance(event, event_type)
            for listener in registered
        ]
        if not listeners:
            logger.debug("No listeners for event", event_type=type(event).__name__)
        for listener in listeners:
            listener(event)
        return bool(listeners)


class ProviderDeletionListener:
    """Deletes the provider named in an ``EntityDeletedEvent`` and audits it."""

    def __init__(self, db: Session) -> None:
        self._db = db
        self._store = SqlProviderStore(db)

    def __call__(self, event: EntityDeletedEvent) -> None:
        record = event.record
        zone_id = record.zone_id or ""
        try:
            self._store.delete_by_identifier(record.identifier, zone_id)
        except ProviderNotFoundError:
            logger.debug("Identity provider already removed", identifier=record.identifier)
            return

        log_audit_event(
            self._db,
            event_type="admin",
            action="identity_provider_deleted",
            actor_type="system" if event.actor == SYSTEM_ACTOR else "user",
            actor_id=event.actor,
            target_type="identity_provider",
            target_id=record.identifier,
            details={"kind": record.kind.value, "zone_id": zone_id},
        )
        logger.info("Identity provider deleted", identifier=record.identifier, zone_id=zone_id)
