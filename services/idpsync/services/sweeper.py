"""Deletion sweep for identifiers marked for removal."""

from collections.abc import Iterable

from idpsync.logging_config import get_logger
from idpsync.provider.exceptions import ProviderNotFoundError
from idpsync.provider.models import ProviderStore
from idpsync.provider.origins import deletable_identifiers
from idpsync.services.events import EntityDeletedEvent, NotificationSink

logger = get_logger(__name__)


def sweep_deletions(
    store: ProviderStore,
    origins_to_delete: Iterable[str],
    zone_id: str,
    publisher: NotificationSink | None = None,
) -> list[str]:
    """Announce deletion of every non-protected identifier in the deletion set.

    Identifiers with no record are skipped silently. Without a publisher, or when
    no listener takes the event, the record is left in place and a warning is
    logged.

    Returns:
        Identifiers for which a deletion event reached a listener.
    """
    published: list[str] = []
    for identifier in deletable_identifiers(origins_to_delete):
        logger.debug("Attempting to deactivate identity provider", identifier=identifier)
        try:
            provider = store.retrieve_by_identifier(identifier, zone_id)
        except ProviderNotFoundError:
            logger.debug("Identity provider already absent", identifier=identifier)
            continue

        if publisher is None:
            logger.warning(
                "Unable to delete identity provider, no event publisher",
                identifier=identifier,
            )
            continue

        if not publisher.publish(EntityDeletedEvent(record=provider)):
            logger.warning(
                "Unable to delete identity provider, no deletion listener",
                identifier=identifier,
            )
            continue
        logger.debug("Identity provider deactivated", identifier=identifier)
        published.append(identifier)
    return published
