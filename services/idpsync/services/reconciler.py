"""Registry reconciliation.

Upserts the desired providers into the registry by identifier and then
finalizes the internal provider, whose activation depends on the
``disableInternalAuth`` switch rather than on the assembly.
"""

from collections.abc import Iterable

from idpsync.db.models import utc_now
from idpsync.logging_config import get_logger
from idpsync.provider.definitions import build_internal_definition, serialize_definition
from idpsync.provider.exceptions import ProviderNotFoundError
from idpsync.provider.models import IdentityProvider, ProviderStore
from idpsync.provider.origins import UAA, ProviderKind, deletable_identifiers
from idpsync.snapshot import ConfigSnapshot

logger = get_logger(__name__)


def upsert_provider(
    store: ProviderStore, provider: IdentityProvider, zone_id: str
) -> IdentityProvider:
    """Create ``provider`` or update the existing record with the same identifier.

    On update the existing ``id``, ``created_at`` and ``version`` are carried
    over. Only ``ProviderNotFoundError`` counts as absence; any other store
    error propagates.
    """
    try:
        existing: IdentityProvider | None = store.retrieve_by_identifier(
            provider.identifier, zone_id
        )
    except ProviderNotFoundError:
        existing = None

    provider = provider.model_copy(update={"zone_id": zone_id})

    if existing is None:
        logger.info(
            "Creating identity provider",
            identifier=provider.identifier,
            kind=provider.kind.value,
            active=provider.active,
        )
        return store.create(provider, zone_id)

    merged = provider.model_copy(
        update={
            "id": existing.id,
            "created_at": existing.created_at,
            "version": existing.version,
            "last_modified_at": utc_now(),
        }
    )
    logger.info(
        "Updating identity provider",
        identifier=merged.identifier,
        kind=merged.kind.value,
        active=merged.active,
        version=existing.version,
    )
    return store.update(merged, zone_id)


def reconcile_providers(
    store: ProviderStore,
    providers: Iterable[IdentityProvider],
    zone_id: str,
    origins_to_delete: Iterable[str] = (),
) -> list[IdentityProvider]:
    """Upsert each desired provider in order, skipping those slated for deletion.

    Returns:
        The persisted providers, in processing order.
    """
    to_delete = set(deletable_identifiers(origins_to_delete))
    persisted: list[IdentityProvider] = []
    for provider in providers:
        if provider.identifier in to_delete:
            logger.debug("Skipping provider slated for deletion", identifier=provider.identifier)
            continue
        persisted.append(upsert_provider(store, provider, zone_id))
    return persisted


def finalize_internal_provider(store: ProviderStore, snapshot: ConfigSnapshot) -> IdentityProvider:
    """Re-apply policies and the internal-auth switch to the internal provider.

    Always runs after reconciliation, whether or not the internal provider
    changed during it.
    """
    internal = store.retrieve_by_identifier(UAA, snapshot.zone_id)
    definition = build_internal_definition(
        snapshot.password_policy,
        snapshot.lockout_policy,
        snapshot.disable_internal_user_management,
    )
    active = not snapshot.disable_internal_auth
    updated = internal.model_copy(
        update={
            "config": serialize_definition(UAA, ProviderKind.INTERNAL, definition),
            "active": active,
            "last_modified_at": utc_now(),
        }
    )
    logger.info("Finalizing internal identity provider", active=active)
    return store.update(updated, snapshot.zone_id)
