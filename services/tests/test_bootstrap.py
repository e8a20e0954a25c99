"""End-to-end tests for the identity provider bootstrap."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from idpsync.db.models import AuditLog, IdentityProviderRecord
from idpsync.db.provisioning import SqlProviderStore
from idpsync.provider.exceptions import DuplicateProviderError, ProviderConfigurationError
from idpsync.provider.origins import ProviderKind
from idpsync.provider.saml import BootstrapSamlConfigurator
from idpsync.services.bootstrap import IdentityProviderBootstrap, run_bootstrap
from idpsync.snapshot import ConfigSnapshot

ZONE = "uaa"

OAUTH = {
    "okta": {"type": "oidc1.0", "relyingPartyId": "okta-client"},
    "azure": {"type": "oauth2.0", "relyingPartyId": "azure-client"},
}

SAML = {"adfs": {"idpMetadata": "https://adfs.example.com/metadata"}}


def stored(session_factory) -> dict[str, IdentityProviderRecord]:
    with session_factory() as db:
        return {
            r.origin_key: r
            for r in db.scalars(
                select(IdentityProviderRecord).where(
                    IdentityProviderRecord.identity_zone_id == ZONE
                )
            )
        }


class TestRunBootstrap:
    """Test full bootstrap runs against the database."""

    def test_empty_configuration(self, session_factory):
        """Test only the internal and LDAP providers exist after an empty run."""
        result = run_bootstrap(session_factory, ConfigSnapshot())

        assert [p.identifier for p in result] == ["uaa", "ldap"]
        records = stored(session_factory)
        assert set(records) == {"uaa", "ldap"}
        assert records["uaa"].active is True
        assert records["ldap"].active is False

    def test_oauth_providers(self, session_factory):
        """Test OIDC and raw OAuth2 entries are stored with their kinds."""
        run_bootstrap(session_factory, ConfigSnapshot(oauth_providers=OAUTH))

        records = stored(session_factory)
        assert set(records) == {"uaa", "ldap", "okta", "azure"}
        assert records["okta"].type == ProviderKind.OIDC.value
        assert records["azure"].type == ProviderKind.OAUTH2.value
        assert records["okta"].name == "OAuth Identity Provider[okta]"

    def test_saml_providers(self, session_factory):
        """Test SAML settings are picked up through the configurator."""
        run_bootstrap(session_factory, ConfigSnapshot(saml_providers=SAML))

        records = stored(session_factory)
        assert records["adfs"].type == ProviderKind.SAML.value
        assert records["adfs"].name == "SAML Identity Provider[adfs]"

    def test_second_run_is_idempotent(self, session_factory):
        """Test a repeated run updates in place without new rows."""
        snapshot = ConfigSnapshot(oauth_providers=OAUTH, saml_providers=SAML)

        run_bootstrap(session_factory, snapshot)
        first = stored(session_factory)
        run_bootstrap(session_factory, snapshot)
        second = stored(session_factory)

        assert set(first) == set(second)
        for identifier, record in second.items():
            assert record.id == first[identifier].id
            assert record.config == first[identifier].config
            assert record.active == first[identifier].active
            assert record.version > first[identifier].version

    def test_deletion_of_previously_created_provider(self, session_factory):
        """Test an identifier listed for deletion is removed and audited."""
        run_bootstrap(session_factory, ConfigSnapshot(saml_providers=SAML))

        run_bootstrap(session_factory, ConfigSnapshot(origins_to_delete=("adfs",)))

        assert set(stored(session_factory)) == {"uaa", "ldap"}
        with session_factory() as db:
            audit = db.scalars(select(AuditLog)).one()
            assert audit.target_id == "adfs"

    def test_deleted_provider_not_recreated(self, session_factory):
        """Test a configured provider listed for deletion is not written back."""
        snapshot = ConfigSnapshot(saml_providers=SAML)
        run_bootstrap(session_factory, snapshot)

        result = run_bootstrap(
            session_factory, ConfigSnapshot(saml_providers=SAML, origins_to_delete=("adfs",))
        )

        assert "adfs" not in {p.identifier for p in result}
        assert "adfs" not in stored(session_factory)

    def test_protected_identifiers_survive_deletion(self, session_factory):
        """Test listing uaa and ldap for deletion has no effect."""
        run_bootstrap(session_factory, ConfigSnapshot(origins_to_delete=("uaa", "ldap")))

        assert set(stored(session_factory)) == {"uaa", "ldap"}

    def test_disable_internal_auth(self, session_factory):
        """Test the internal provider is stored inactive when disabled."""
        result = run_bootstrap(
            session_factory, ConfigSnapshot(properties={"disableInternalAuth": "true"})
        )

        (internal,) = [p for p in result if p.identifier == "uaa"]
        assert internal.active is False
        assert stored(session_factory)["uaa"].active is False

    def test_configuration_error_writes_nothing(self, session_factory):
        """Test an unknown OAuth variant aborts before any write."""
        snapshot = ConfigSnapshot(oauth_providers={"bad": {"type": "saml2.0"}})

        with pytest.raises(ProviderConfigurationError):
            run_bootstrap(session_factory, snapshot)

        with session_factory() as db:
            assert db.scalar(select(func.count()).select_from(IdentityProviderRecord)) == 0

    def test_duplicate_identifier_writes_nothing(self, session_factory):
        """Test an OAuth provider reusing a SAML alias aborts the run."""
        snapshot = ConfigSnapshot(
            saml_providers=SAML,
            oauth_providers={"adfs": {"type": "oauth2.0", "relyingPartyId": "x"}},
        )

        with pytest.raises(DuplicateProviderError):
            run_bootstrap(session_factory, snapshot)

        assert stored(session_factory) == {}


class TestIdentityProviderBootstrap:
    """Test the bootstrap object against in-memory collaborators."""

    def test_reconcile_returns_finalized_internal(self, memory_store):
        """Test the returned internal provider reflects the finalizer."""
        snapshot = ConfigSnapshot(properties={"disableInternalAuth": "true"})
        bootstrap = IdentityProviderBootstrap(memory_store, snapshot)

        result = bootstrap.reconcile()

        assert result[0].identifier == "uaa"
        assert result[0].active is False
        assert result[0].version == 1

    def test_sweep_without_publisher(self, memory_store):
        """Test the sweep leaves records alone when nothing listens."""
        IdentityProviderBootstrap(
            memory_store,
            ConfigSnapshot(saml_providers=SAML),
            saml_configurator=BootstrapSamlConfigurator(SAML),
        ).reconcile()

        deleted = IdentityProviderBootstrap(
            memory_store, ConfigSnapshot(origins_to_delete=("adfs",))
        ).sweep_deletions()

        assert deleted == []
        assert memory_store.retrieve_by_identifier("adfs", ZONE).active is True

    def test_sql_store_in_caller_transaction(self, db_session):
        """Test the bootstrap leaves commit to the caller."""
        store = SqlProviderStore(db_session)

        IdentityProviderBootstrap(store, ConfigSnapshot()).reconcile()
        db_session.rollback()

        assert store.list_all(ZONE) == []

    def test_duplicate_raises_before_store_access(self):
        """Test a duplicate identifier fails before the store is touched."""
        store = MagicMock()
        snapshot = ConfigSnapshot(
            saml_providers=SAML,
            oauth_providers={"adfs": {"type": "oidc1.0", "relyingPartyId": "x"}},
        )
        bootstrap = IdentityProviderBootstrap(
            store, snapshot, saml_configurator=BootstrapSamlConfigurator(SAML)
        )

        with pytest.raises(DuplicateProviderError, match="Provider alias adfs is not unique."):
            bootstrap.reconcile()

        store.retrieve_by_identifier.assert_not_called()
        store.create.assert_not_called()
        store.update.assert_not_called()
