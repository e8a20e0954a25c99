"""Errors raised while building or persisting identity providers."""


class ProviderConfigurationError(ValueError):
    """Configuration that cannot be turned into a valid provider.

    Fatal: the bootstrap pass aborts before anything is written.
    """


class DuplicateProviderError(ProviderConfigurationError):
    """Two providers in the desired state share an identifier."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Provider alias {identifier} is not unique.")
        self.identifier = identifier


class ProviderNotFoundError(LookupError):
    """No provider record exists for the identifier in the zone."""

    def __init__(self, identifier: str, zone_id: str) -> None:
        super().__init__(f"No identity provider '{identifier}' in zone '{zone_id}'")
        self.identifier = identifier
        self.zone_id = zone_id
