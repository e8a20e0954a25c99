"""Desired-state assembly.

Builds the list of providers the registry should contain from a configuration
snapshot. Order is fixed: internal and LDAP, then SAML, then OAuth2/OIDC, then
Keystone. No identifier may appear twice; a duplicate aborts the whole pass
before anything is written.
"""

from collections.abc import Iterable

from idpsync.logging_config import get_logger
from idpsync.provider.definitions import (
    DefinitionModel,
    OIDCDefinition,
    RawOAuthDefinition,
    SamlDefinition,
    build_internal_definition,
    build_keystone_definition,
    build_oauth_definition,
    oauth_kind,
    serialize_definition,
)
from idpsync.provider.exceptions import DuplicateProviderError
from idpsync.provider.ldap import build_ldap_definition, flatten_ldap_config
from idpsync.provider.models import IdentityProvider
from idpsync.provider.origins import KEYSTONE, LDAP, UAA, ProviderKind
from idpsync.snapshot import ConfigSnapshot

logger = get_logger(__name__)

INTERNAL_PROVIDER_NAME = "Internal Identity Provider"
LDAP_PROVIDER_NAME = "LDAP Identity Provider"
KEYSTONE_PROVIDER_NAME = "Keystone Identity Provider"


def validate_unique_identifier(providers: Iterable[IdentityProvider], identifier: str) -> None:
    """Raise if ``identifier`` is already used by one of ``providers``."""
    for provider in providers:
        if provider.identifier == identifier:
            raise DuplicateProviderError(identifier)


def _make_provider(
    identifier: str,
    kind: ProviderKind,
    display_name: str,
    active: bool,
    definition: DefinitionModel,
) -> IdentityProvider:
    return IdentityProvider(
        identifier=identifier,
        kind=kind,
        display_name=display_name,
        active=active,
        config=serialize_definition(identifier, kind, definition),
    )


def internal_provider(snapshot: ConfigSnapshot) -> IdentityProvider:
    """Internal provider candidate. Activation is settled by the finalizer."""
    definition = build_internal_definition(
        snapshot.password_policy,
        snapshot.lockout_policy,
        snapshot.disable_internal_user_management,
    )
    return _make_provider(UAA, ProviderKind.INTERNAL, INTERNAL_PROVIDER_NAME, True, definition)


def ldap_provider(snapshot: ConfigSnapshot) -> IdentityProvider:
    """LDAP provider candidate; always present, active only when profiled and configured."""
    definition = build_ldap_definition(flatten_ldap_config(snapshot.ldap_config, snapshot))
    active = snapshot.has_profile(LDAP) and definition.is_configured()
    return _make_provider(LDAP, ProviderKind.LDAP, LDAP_PROVIDER_NAME, active, definition)


def saml_provider(definition: SamlDefinition) -> IdentityProvider:
    identifier = definition.idp_entity_alias
    return _make_provider(
        identifier,
        ProviderKind.SAML,
        f"SAML Identity Provider[{identifier}]",
        True,
        definition,
    )


def oauth_provider(
    identifier: str, definition: RawOAuthDefinition | OIDCDefinition
) -> IdentityProvider:
    return _make_provider(
        identifier,
        oauth_kind(definition),
        f"OAuth Identity Provider[{identifier}]",
        True,
        definition,
    )


def keystone_provider(snapshot: ConfigSnapshot) -> IdentityProvider | None:
    """Keystone provider candidate when the profile is on or config is present."""
    profiled = snapshot.has_profile(KEYSTONE)
    configured = snapshot.keystone_config is not None
    if not (profiled or configured):
        return None
    definition = build_keystone_definition(snapshot.keystone_config)
    return _make_provider(
        KEYSTONE,
        ProviderKind.KEYSTONE,
        KEYSTONE_PROVIDER_NAME,
        profiled and configured,
        definition,
    )


def assemble_providers(
    snapshot: ConfigSnapshot,
    saml_definitions: Iterable[SamlDefinition] = (),
) -> list[IdentityProvider]:
    """Build the desired provider list for one pass.

    Args:
        snapshot: Configuration for this pass.
        saml_definitions: Definitions from the SAML configurator.

    Returns:
        Candidate providers in processing order, without persisted-only fields.

    Raises:
        DuplicateProviderError: two candidates share an identifier.
        ProviderConfigurationError: a definition is invalid or not serializable.
    """
    providers: list[IdentityProvider] = []

    def append(provider: IdentityProvider) -> None:
        validate_unique_identifier(providers, provider.identifier)
        providers.append(provider)

    # The internal and LDAP identifiers are protected and must always exist
    append(internal_provider(snapshot))
    append(ldap_provider(snapshot))

    for definition in saml_definitions:
        append(saml_provider(definition))

    for identifier, raw in snapshot.oauth_providers.items():
        append(oauth_provider(identifier, build_oauth_definition(identifier, raw)))

    keystone = keystone_provider(snapshot)
    if keystone is not None:
        append(keystone)

    logger.info(
        "Desired identity providers assembled",
        count=len(providers),
        identifiers=[p.identifier for p in providers],
    )
    return providers
