"""SAML identity provider configurator.

Turns the ``saml.providers`` settings section (entity alias -> settings) into
SAML definitions for the desired-state assembly.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from idpsync.logging_config import get_logger
from idpsync.provider.definitions import SamlDefinition
from idpsync.provider.exceptions import ProviderConfigurationError

logger = get_logger(__name__)

# Settings keys that differ from the stored definition field names
_RENAMED_KEYS = {
    "idpMetadata": "metaDataLocation",
    "nameID": "nameId",
    "showSamlLoginLink": "showSamlLink",
}

# Accepted entry keys, by alias and by field name
_KNOWN_KEYS = frozenset(
    name
    for field_name in SamlDefinition.model_fields
    for name in (field_name, to_camel(field_name))
)


class SamlConfigurator(Protocol):
    """Anything that can list the configured SAML identity providers."""

    def identity_provider_definitions(self) -> list[SamlDefinition]: ...


class BootstrapSamlConfigurator:
    """SAML configurator backed by static settings."""

    def __init__(self, providers: Mapping[str, Mapping[str, Any]]) -> None:
        self._providers = providers
        self._definitions: list[SamlDefinition] | None = None

    def identity_provider_definitions(self) -> list[SamlDefinition]:
        """Parse (once) and return the configured SAML definitions."""
        if self._definitions is None:
            self._definitions = [
                self._parse(alias, config) for alias, config in self._providers.items()
            ]
            logger.debug("SAML providers parsed", count=len(self._definitions))
        return list(self._definitions)

    @staticmethod
    def _parse(alias: str, config: Mapping[str, Any]) -> SamlDefinition:
        data = {_RENAMED_KEYS.get(key, key): value for key, value in config.items()}
        if not data.get("metaDataLocation") and not data.get("meta_data_location"):
            raise ProviderConfigurationError(
                f"SAML provider '{alias}' is missing idpMetadata"
            )
        data["idpEntityAlias"] = alias

        unknown = sorted(key for key in data if key not in _KNOWN_KEYS)
        if unknown:
            logger.debug("Ignoring unsupported SAML settings", alias=alias, keys=unknown)
            data = {key: value for key, value in data.items() if key in _KNOWN_KEYS}
        try:
            return SamlDefinition.model_validate(data)
        except ValidationError as e:
            raise ProviderConfigurationError(
                f"Invalid SAML configuration for provider '{alias}': {e}"
            ) from e
