"""
Typed provider definitions.

Each provider kind has a pydantic model holding its configuration payload.
Definitions are serialized to JSON (camelCase keys) and stored opaquely in the
registry; the authentication runtime deserializes them by provider kind.
"""

from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticSerializationError

from idpsync.provider.exceptions import ProviderConfigurationError
from idpsync.provider.origins import ProviderKind


class DefinitionModel(BaseModel):
    """Base model for serialized provider configuration."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


# --- Internal user store ---


class PasswordPolicy(DefinitionModel):
    """Password policy applied to the internal user store."""

    min_length: int = Field(default=0, ge=0)
    max_length: int = Field(default=255, ge=0)
    require_upper_case_character: int = Field(default=0, ge=0)
    require_lower_case_character: int = Field(default=0, ge=0)
    require_digit: int = Field(default=0, ge=0)
    require_special_character: int = Field(default=0, ge=0)
    expire_password_in_months: int = Field(default=0, ge=0)


class LockoutPolicy(DefinitionModel):
    """Account lockout policy applied to the internal user store."""

    lockout_period_seconds: int = Field(default=300, description="Lockout duration")
    lockout_after_failures: int = Field(default=5, description="Failures before lockout")
    count_failures_within: int = Field(
        default=1200,
        description="Window in seconds over which failures are counted",
    )


class InternalDefinition(DefinitionModel):
    """Configuration of the always-present internal provider."""

    password_policy: PasswordPolicy = Field(default_factory=PasswordPolicy)
    lockout_policy: LockoutPolicy = Field(default_factory=LockoutPolicy)
    disable_internal_user_management: bool = False


# --- External providers shared fields ---


class ExternalDefinition(DefinitionModel):
    """Fields common to every federated provider."""

    email_domain: list[str] | None = None
    external_groups_whitelist: list[str] = Field(default_factory=list)
    attribute_mappings: dict[str, Any] = Field(default_factory=dict)
    add_shadow_user_on_login: bool = True
    store_custom_attributes: bool = False


# --- LDAP ---


class LdapDefinition(ExternalDefinition):
    """LDAP provider configuration.

    ``configured`` is only set when the definition was parsed from a non-empty
    property map. An empty definition keeps the LDAP provider inactive.
    """

    configured: bool = False

    base_url: str | None = None
    bind_user_dn: str | None = None
    bind_password: str | None = None
    user_search_base: str | None = None
    user_search_filter: str | None = None
    user_dn_pattern: str | None = None
    user_dn_pattern_delimiter: str = ";"
    referral: Literal["follow", "ignore", "throw"] = "follow"
    mail_attribute_name: str = "mail"
    mail_substitute: str | None = None
    mail_substitute_overrides_ldap: bool = False
    password_attribute_name: str = "userPassword"
    password_encoder: str | None = None
    local_password_compare: bool = False
    skip_ssl_verification: bool = False
    tls_configuration: Literal["none", "simple", "external"] = "none"

    group_search_base: str | None = None
    group_search_filter: str | None = None
    group_role_attribute: str | None = None
    group_search_subtree: bool = True
    group_max_search_depth: int = Field(default=10, ge=1)
    group_ignore_partial_result_exception: bool = True
    auto_add_groups: bool = True

    ldap_profile_file: Literal[
        "ldap/ldap-simple-bind.xml",
        "ldap/ldap-search-and-bind.xml",
        "ldap/ldap-search-and-compare.xml",
    ] = "ldap/ldap-simple-bind.xml"
    ldap_group_file: Literal[
        "ldap/ldap-groups-null.xml",
        "ldap/ldap-groups-as-scopes.xml",
        "ldap/ldap-groups-map-to-scopes.xml",
    ] = "ldap/ldap-groups-null.xml"

    def is_configured(self) -> bool:
        return self.configured


# --- SAML ---


class SamlDefinition(ExternalDefinition):
    """SAML provider configuration, one per IdP entity alias."""

    idp_entity_alias: str = Field(min_length=1)
    meta_data_location: str = Field(min_length=1)
    name_id: str = "urn:oasis:names:tc:SAML:1.1:nameid-format:unspecified"
    assertion_consumer_index: int = Field(default=0, ge=0)
    metadata_trust_check: bool = False
    show_saml_link: bool = True
    link_text: str | None = None
    icon_url: str | None = None
    provider_description: str | None = None
    group_mapping_mode: Literal["EXPLICITLY_MAPPED", "AS_SCOPES"] = "EXPLICITLY_MAPPED"
    skip_ssl_validation: bool = False
    zone_id: str | None = None


# --- OAuth2 / OIDC ---


class XOAuthDefinition(ExternalDefinition):
    """Fields shared by raw OAuth2 and OIDC providers."""

    auth_url: str | None = None
    token_url: str | None = None
    token_key_url: str | None = None
    token_key: str | None = None
    issuer: str | None = None
    relying_party_id: str = Field(min_length=1)
    relying_party_secret: str | None = None
    scopes: list[str] = Field(default_factory=list)
    response_type: str = "code"
    show_link_text: bool = True
    link_text: str | None = None
    skip_ssl_validation: bool = False


class RawOAuthDefinition(XOAuthDefinition):
    """Plain OAuth 2.0 provider."""

    type: Literal["oauth2.0"] = "oauth2.0"
    check_token_url: str | None = None
    user_info_url: str | None = None


class OIDCDefinition(XOAuthDefinition):
    """OpenID Connect 1.0 provider."""

    type: Literal["oidc1.0"] = "oidc1.0"
    discovery_url: str | None = None
    user_info_url: str | None = None
    passcode_enabled: bool = False


OAuthDefinition = Annotated[RawOAuthDefinition | OIDCDefinition, Field(discriminator="type")]

_oauth_adapter: TypeAdapter[RawOAuthDefinition | OIDCDefinition] = TypeAdapter(OAuthDefinition)

OAUTH_VARIANTS: dict[str, ProviderKind] = {
    "oauth2.0": ProviderKind.OAUTH2,
    "oidc1.0": ProviderKind.OIDC,
}


# --- Keystone ---


class KeystoneDefinition(DefinitionModel):
    """Keystone directory service provider. The payload is passed through."""

    additional_configuration: dict[str, Any] | None = None


ProviderDefinition = (
    InternalDefinition
    | LdapDefinition
    | SamlDefinition
    | RawOAuthDefinition
    | OIDCDefinition
    | KeystoneDefinition
)

DEFINITION_TYPES: dict[ProviderKind, type[DefinitionModel]] = {
    ProviderKind.INTERNAL: InternalDefinition,
    ProviderKind.LDAP: LdapDefinition,
    ProviderKind.SAML: SamlDefinition,
    ProviderKind.OAUTH2: RawOAuthDefinition,
    ProviderKind.OIDC: OIDCDefinition,
    ProviderKind.KEYSTONE: KeystoneDefinition,
}


def oauth_kind(definition: RawOAuthDefinition | OIDCDefinition) -> ProviderKind:
    """Return the provider kind for an OAuth definition's declared variant."""
    return OAUTH_VARIANTS[definition.type]


def build_oauth_definition(
    identifier: str, raw: Mapping[str, Any]
) -> RawOAuthDefinition | OIDCDefinition:
    """Parse one configured OAuth2/OIDC entry.

    The entry's ``type`` selects the variant. Unknown or missing variants are
    fatal.
    """
    variant = raw.get("type")
    if variant not in OAUTH_VARIANTS:
        raise ProviderConfigurationError(
            f"Unknown provider type {variant!r} for OAuth provider '{identifier}'"
        )
    try:
        return _oauth_adapter.validate_python(dict(raw))
    except ValidationError as e:
        raise ProviderConfigurationError(
            f"Invalid {variant} configuration for provider '{identifier}': {e}"
        ) from e


def build_keystone_definition(raw: Mapping[str, Any] | None) -> KeystoneDefinition:
    return KeystoneDefinition(additional_configuration=dict(raw) if raw is not None else None)


def build_internal_definition(
    password_policy: PasswordPolicy,
    lockout_policy: LockoutPolicy,
    disable_internal_user_management: bool,
) -> InternalDefinition:
    return InternalDefinition(
        password_policy=password_policy,
        lockout_policy=lockout_policy,
        disable_internal_user_management=disable_internal_user_management,
    )


def serialize_definition(identifier: str, kind: ProviderKind, definition: DefinitionModel) -> str:
    """Serialize a definition for storage, checking that it round-trips.

    Raises:
        ProviderConfigurationError: the definition cannot be serialized, or
            reading the payload back does not reproduce it.
    """
    try:
        payload = definition.model_dump_json(by_alias=True)
        restored = type(definition).model_validate_json(payload)
    except (PydanticSerializationError, ValidationError) as e:
        raise ProviderConfigurationError(
            f"Non serializable {kind} config for provider '{identifier}'"
        ) from e
    if restored != definition:
        raise ProviderConfigurationError(
            f"Non serializable {kind} config for provider '{identifier}': "
            "payload does not round-trip"
        )
    return payload


def parse_definition(kind: ProviderKind, payload: str) -> DefinitionModel:
    """Deserialize a stored payload for the given provider kind."""
    return DEFINITION_TYPES[kind].model_validate_json(payload)
