"""Identity provider value passed between the assembler, reconciler and store."""

import uuid
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from idpsync.provider.definitions import DefinitionModel, parse_definition
from idpsync.provider.origins import ProviderKind


class IdentityProvider(BaseModel):
    """One provider record, desired or persisted.

    ``id``, ``created_at``, ``version`` and ``last_modified_at`` are only set
    on values read back from the store; the assembler never fills them.
    """

    model_config = ConfigDict(from_attributes=True)

    identifier: str = Field(min_length=1)
    kind: ProviderKind
    display_name: str
    active: bool = True
    config: str = Field(description="Serialized provider definition (JSON)")
    zone_id: str | None = None

    id: uuid.UUID | None = None
    created_at: datetime | None = None
    version: int = 0
    last_modified_at: datetime | None = None

    def definition(self) -> DefinitionModel:
        """Deserialize ``config`` into the definition model for ``kind``."""
        return parse_definition(self.kind, self.config)


class ProviderStore(Protocol):
    """Persistence operations on the provider registry.

    ``retrieve_by_identifier`` and ``delete_by_identifier`` raise
    ``ProviderNotFoundError`` when no record matches; every other failure is
    the store's own and propagates.
    """

    def retrieve_by_identifier(self, identifier: str, zone_id: str) -> IdentityProvider: ...

    def create(self, provider: IdentityProvider, zone_id: str) -> IdentityProvider: ...

    def update(self, provider: IdentityProvider, zone_id: str) -> IdentityProvider: ...

    def delete_by_identifier(self, identifier: str, zone_id: str) -> IdentityProvider: ...

    def list_all(self, zone_id: str) -> list[IdentityProvider]: ...
