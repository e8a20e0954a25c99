"""
Configuration snapshot for one bootstrap pass.

Everything the desired-state assembly reads (profiles, flat properties,
provider sections and policies) is captured once in an immutable value, so a
pass depends only on the snapshot and the current registry contents.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml
from pydantic import TypeAdapter, ValidationError

from idpsync.config import Settings
from idpsync.provider.definitions import LockoutPolicy, PasswordPolicy
from idpsync.provider.exceptions import ProviderConfigurationError
from idpsync.provider.origins import DEFAULT_ZONE_ID

DISABLE_INTERNAL_AUTH = "disableInternalAuth"

# Environment variables without a dot that are still read as properties
PLAIN_PROPERTY_NAMES = (DISABLE_INTERNAL_AUTH,)


def parse_boolean(value: Any, default: bool = False) -> bool:
    """Parse a switch value; only a case-insensitive "true" is true."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


@dataclass(frozen=True)
class ConfigSnapshot:
    """Immutable view of the configuration a bootstrap pass runs against."""

    profiles: frozenset[str] = frozenset()
    properties: Mapping[str, Any] = field(default_factory=dict)
    ldap_config: Mapping[str, Any] | None = None
    keystone_config: Mapping[str, Any] | None = None
    oauth_providers: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    saml_providers: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    password_policy: PasswordPolicy = field(default_factory=PasswordPolicy)
    lockout_policy: LockoutPolicy = field(default_factory=LockoutPolicy)
    disable_internal_user_management: bool = False
    origins_to_delete: tuple[str, ...] = ()
    zone_id: str = DEFAULT_ZONE_ID

    @classmethod
    def from_settings(
        cls, settings: Settings, environ: Mapping[str, str] | None = None
    ) -> "ConfigSnapshot":
        """Build a snapshot from settings, overlaying dotted environment variables.

        Environment variables such as ``ldap.base.url`` take precedence over
        the ``properties`` section of the settings.
        """
        properties: dict[str, Any] = dict(settings.properties)
        for key, value in (environ or {}).items():
            if "." in key or key in PLAIN_PROPERTY_NAMES:
                properties[key] = value

        return cls(
            profiles=frozenset(settings.profiles),
            properties=properties,
            ldap_config=settings.ldap,
            keystone_config=settings.keystone,
            oauth_providers=dict(settings.oauth.providers),
            saml_providers=dict(settings.saml.providers),
            password_policy=settings.password_policy,
            lockout_policy=settings.lockout_policy,
            disable_internal_user_management=settings.disable_internal_user_management,
            origins_to_delete=tuple(settings.origins_to_delete),
        )

    def has_profile(self, name: str) -> bool:
        return name in self.profiles

    def _property_key(self, name: str) -> str | None:
        """Resolve ``name`` to a stored key, ignoring case if there is no exact match.

        Nested environment variables reach the settings lowercased, so
        ``disableinternalauth`` must still answer for ``disableInternalAuth``.
        """
        if name in self.properties:
            return name
        lowered = name.lower()
        for key in self.properties:
            if key.lower() == lowered:
                return key
        return None

    def has_property(self, name: str) -> bool:
        return self._property_key(name) is not None

    def get_property(self, name: str, target: type = str, default: Any = None) -> Any:
        """Look up a property converted to ``target``.

        Strings are split on commas for ``list`` and parsed as YAML/JSON for
        ``dict``.

        Raises:
            ProviderConfigurationError: the value cannot be converted.
        """
        key = self._property_key(name)
        if key is None:
            return default
        value = self.properties[key]
        try:
            if target is list:
                if isinstance(value, str):
                    return [part.strip() for part in value.split(",") if part.strip()]
                return TypeAdapter(list[Any]).validate_python(value)
            if target is dict:
                if isinstance(value, str):
                    value = yaml.safe_load(value)
                return TypeAdapter(dict[str, Any]).validate_python(value)
            return TypeAdapter(target).validate_python(value)
        except (ValidationError, yaml.YAMLError) as e:
            raise ProviderConfigurationError(
                f"Property {name} is not a valid {target.__name__}"
            ) from e

    def properties_with_prefix(self, prefix: str) -> dict[str, Any]:
        """Return all properties whose name starts with ``prefix``, ignoring case (full names)."""
        lowered = prefix.lower()
        return {k: v for k, v in self.properties.items() if k.lower().startswith(lowered)}

    @property
    def disable_internal_auth(self) -> bool:
        key = self._property_key(DISABLE_INTERNAL_AUTH)
        value = self.properties[key] if key is not None else None
        return parse_boolean(value, default=False)
