"""Identity provider bootstrap.

Two entry points run against one configuration snapshot:

- ``reconcile()``: assemble the desired providers, upsert them into the
  registry, then finalize the internal provider. Safe to run repeatedly.
- ``sweep_deletions()``: announce deletion of providers marked for removal.

At startup the sweep runs first, then the reconciliation, each in its own
transaction.
"""

from sqlalchemy.orm import Session, sessionmaker

from idpsync.db.provisioning import SqlProviderStore
from idpsync.logging_config import get_logger
from idpsync.provider.models import IdentityProvider, ProviderStore
from idpsync.provider.saml import BootstrapSamlConfigurator, SamlConfigurator
from idpsync.services.assembler import assemble_providers
from idpsync.services.events import (
    EntityDeletedEvent,
    EventPublisher,
    NotificationSink,
    ProviderDeletionListener,
)
from idpsync.services.reconciler import finalize_internal_provider, reconcile_providers
from idpsync.services.sweeper import sweep_deletions
from idpsync.snapshot import ConfigSnapshot

logger = get_logger(__name__)


class IdentityProviderBootstrap:
    """Keeps the provider registry in line with configuration."""

    def __init__(
        self,
        store: ProviderStore,
        snapshot: ConfigSnapshot,
        saml_configurator: SamlConfigurator | None = None,
        publisher: NotificationSink | None = None,
    ) -> None:
        self._store = store
        self._snapshot = snapshot
        self._saml_configurator = saml_configurator
        self._publisher = publisher

    def reconcile(self) -> list[IdentityProvider]:
        """Run one reconciliation pass.

        Configuration errors are raised before the first write.

        Returns:
            Persisted providers in processing order, with the finalized
            internal provider in place of its first-phase record.
        """
        saml_definitions = (
            self._saml_configurator.identity_provider_definitions()
            if self._saml_configurator is not None
            else []
        )
        desired = assemble_providers(self._snapshot, saml_definitions)

        persisted = reconcile_providers(
            self._store,
            desired,
            self._snapshot.zone_id,
            self._snapshot.origins_to_delete,
        )
        internal = finalize_internal_provider(self._store, self._snapshot)

        result = [internal if p.identifier == internal.identifier else p for p in persisted]
        logger.info(
            "Identity providers reconciled",
            count=len(result),
            zone_id=self._snapshot.zone_id,
        )
        return result

    def sweep_deletions(self) -> list[str]:
        """Announce deletion of non-protected identifiers marked for removal."""
        return sweep_deletions(
            self._store,
            self._snapshot.origins_to_delete,
            self._snapshot.zone_id,
            self._publisher,
        )


def build_bootstrap(db: Session, snapshot: ConfigSnapshot) -> IdentityProviderBootstrap:
    """Wire the bootstrap with the SQL store, settings-backed SAML and a deletion listener."""
    publisher = EventPublisher()
    publisher.subscribe(EntityDeletedEvent, ProviderDeletionListener(db))
    return IdentityProviderBootstrap(
        store=SqlProviderStore(db),
        snapshot=snapshot,
        saml_configurator=BootstrapSamlConfigurator(snapshot.saml_providers),
        publisher=publisher,
    )


def run_bootstrap(
    session_factory: sessionmaker[Session], snapshot: ConfigSnapshot
) -> list[IdentityProvider]:
    """Sweep deletions, then reconcile, each in its own transaction."""
    with session_factory() as db:
        bootstrap = build_bootstrap(db, snapshot)

        with db.begin():
            deleted = bootstrap.sweep_deletions()
        if deleted:
            logger.info("Identity providers removed", identifiers=deleted)

        with db.begin():
            return bootstrap.reconcile()
