"""
LDAP provider definition builder.

The nested ``ldap`` configuration is flattened into dotted property names
(``ldap.base.url``), then environment properties are overlaid: first the known
complex properties converted to their declared types, then any other
``ldap.``-prefixed property verbatim.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from idpsync.logging_config import get_logger
from idpsync.provider.definitions import LdapDefinition
from idpsync.provider.exceptions import ProviderConfigurationError
from idpsync.snapshot import ConfigSnapshot

logger = get_logger(__name__)

LDAP_PREFIX = "ldap."
ATTRIBUTE_MAPPINGS = "ldap.attributeMappings"

# Known properties and the type their environment value is converted to
LDAP_PROPERTY_TYPES: dict[str, type] = {
    "ldap.addShadowUserOnLogin": bool,
    ATTRIBUTE_MAPPINGS: dict,
    "ldap.base.localPasswordCompare": bool,
    "ldap.base.mailAttributeName": str,
    "ldap.base.mailSubstitute": str,
    "ldap.base.mailSubstituteOverridesLdap": bool,
    "ldap.base.password": str,
    "ldap.base.passwordAttributeName": str,
    "ldap.base.passwordEncoder": str,
    "ldap.base.referral": str,
    "ldap.base.searchBase": str,
    "ldap.base.searchFilter": str,
    "ldap.base.url": str,
    "ldap.base.userDn": str,
    "ldap.base.userDnPattern": str,
    "ldap.base.userDnPatternDelimiter": str,
    "ldap.emailDomain": list,
    "ldap.externalGroupsWhitelist": list,
    "ldap.groups.autoAdd": bool,
    "ldap.groups.file": str,
    "ldap.groups.groupRoleAttribute": str,
    "ldap.groups.groupSearchFilter": str,
    "ldap.groups.ignorePartialResultException": bool,
    "ldap.groups.maxSearchDepth": int,
    "ldap.groups.searchBase": str,
    "ldap.groups.searchSubtree": bool,
    "ldap.profile.file": str,
    "ldap.ssl.skipverification": bool,
    "ldap.ssl.tls": str,
    "ldap.storeCustomAttributes": bool,
}

LDAP_PROPERTY_NAMES = tuple(LDAP_PROPERTY_TYPES)

# Flat property name -> LdapDefinition field
_FIELD_NAMES: dict[str, str] = {
    "ldap.addShadowUserOnLogin": "add_shadow_user_on_login",
    "ldap.base.localPasswordCompare": "local_password_compare",
    "ldap.base.mailAttributeName": "mail_attribute_name",
    "ldap.base.mailSubstitute": "mail_substitute",
    "ldap.base.mailSubstituteOverridesLdap": "mail_substitute_overrides_ldap",
    "ldap.base.password": "bind_password",
    "ldap.base.passwordAttributeName": "password_attribute_name",
    "ldap.base.passwordEncoder": "password_encoder",
    "ldap.base.referral": "referral",
    "ldap.base.searchBase": "user_search_base",
    "ldap.base.searchFilter": "user_search_filter",
    "ldap.base.url": "base_url",
    "ldap.base.userDn": "bind_user_dn",
    "ldap.base.userDnPattern": "user_dn_pattern",
    "ldap.base.userDnPatternDelimiter": "user_dn_pattern_delimiter",
    "ldap.emailDomain": "email_domain",
    "ldap.externalGroupsWhitelist": "external_groups_whitelist",
    "ldap.groups.autoAdd": "auto_add_groups",
    "ldap.groups.file": "ldap_group_file",
    "ldap.groups.groupRoleAttribute": "group_role_attribute",
    "ldap.groups.groupSearchFilter": "group_search_filter",
    "ldap.groups.ignorePartialResultException": "group_ignore_partial_result_exception",
    "ldap.groups.maxSearchDepth": "group_max_search_depth",
    "ldap.groups.searchBase": "group_search_base",
    "ldap.groups.searchSubtree": "group_search_subtree",
    "ldap.profile.file": "ldap_profile_file",
    "ldap.ssl.skipverification": "skip_ssl_verification",
    "ldap.ssl.tls": "tls_configuration",
    "ldap.storeCustomAttributes": "store_custom_attributes",
}

_LIST_FIELDS = {"email_domain", "external_groups_whitelist"}

# Lowercased name -> declared name
_CANONICAL_NAMES = {name.lower(): name for name in LDAP_PROPERTY_TYPES}


def flatten(config: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys. ``None`` leaves are dropped."""
    flat: dict[str, Any] = {}
    for key, value in config.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten(value, path))
        elif value is not None:
            flat[path] = value
    return flat


def canonical_ldap_name(name: str) -> str:
    """Restore the declared casing of a known LDAP property name.

    Keys under ``ldap.attributeMappings.`` keep the case of their remainder.
    Unknown names are returned unchanged.
    """
    lowered = name.lower()
    if lowered in _CANONICAL_NAMES:
        return _CANONICAL_NAMES[lowered]
    mappings_prefix = ATTRIBUTE_MAPPINGS + "."
    if lowered.startswith(mappings_prefix.lower()):
        return mappings_prefix + name[len(mappings_prefix) :]
    return name


def populate_ldap_environment(flat: dict[str, Any], snapshot: ConfigSnapshot) -> None:
    """Overlay environment properties onto a flattened LDAP map in place."""
    for name, declared in LDAP_PROPERTY_TYPES.items():
        if snapshot.has_property(name):
            flat[name] = snapshot.get_property(name, declared)

    # Free-form properties such as ldap.attributeMappings.user.attribute.x
    for name, value in snapshot.properties_with_prefix(LDAP_PREFIX).items():
        name = canonical_ldap_name(name)
        if name not in LDAP_PROPERTY_TYPES:
            flat[name] = value


def flatten_ldap_config(
    raw: Mapping[str, Any] | None, snapshot: ConfigSnapshot
) -> dict[str, Any]:
    """Flatten the configured LDAP section and overlay environment properties."""
    flat = {canonical_ldap_name(k): v for k, v in flatten({"ldap": raw}).items()} if raw else {}
    populate_ldap_environment(flat, snapshot)
    return flat


def _attribute_mappings(flat: Mapping[str, Any]) -> dict[str, Any]:
    mappings: dict[str, Any] = {}
    nested = flat.get(ATTRIBUTE_MAPPINGS)
    if isinstance(nested, Mapping):
        mappings.update(flatten(nested))
    prefix = ATTRIBUTE_MAPPINGS + "."
    for key, value in flat.items():
        if key.startswith(prefix):
            mappings[key[len(prefix) :]] = value
    return mappings


def ldap_definition_from_config(flat: Mapping[str, Any]) -> LdapDefinition:
    """Parse a non-empty flat property map into a configured definition."""
    values: dict[str, Any] = {"configured": True}
    for name, field_name in _FIELD_NAMES.items():
        if name not in flat:
            continue
        value = flat[name]
        if field_name in _LIST_FIELDS and isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        values[field_name] = value

    prefix = ATTRIBUTE_MAPPINGS + "."
    ignored = sorted(
        name
        for name in flat
        if name not in _FIELD_NAMES and name != ATTRIBUTE_MAPPINGS and not name.startswith(prefix)
    )
    if ignored:
        logger.warning("Ignoring unknown LDAP properties", names=ignored)

    mappings = _attribute_mappings(flat)
    if mappings:
        values["attribute_mappings"] = mappings

    try:
        return LdapDefinition.model_validate(values)
    except ValidationError as e:
        raise ProviderConfigurationError(f"Invalid LDAP configuration: {e}") from e


def build_ldap_definition(flat: Mapping[str, Any]) -> LdapDefinition:
    """Build the LDAP definition. An empty map yields an unconfigured one."""
    if not flat:
        logger.debug("No LDAP configuration found")
        return LdapDefinition()
    return ldap_definition_from_config(flat)
