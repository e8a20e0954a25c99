"""Identity provider response models."""

import uuid
from datetime import datetime

from idpsync.provider.models import IdentityProvider
from idpsync.provider.origins import ProviderKind

from .common import IdpSyncBaseModel


class IdentityProviderResponse(IdpSyncBaseModel):
    """Registry entry as exposed over the API. Configuration is not included."""

    id: uuid.UUID
    identifier: str
    kind: ProviderKind
    display_name: str
    active: bool
    zone_id: str
    version: int
    created_at: datetime
    last_modified_at: datetime

    @classmethod
    def from_provider(cls, provider: IdentityProvider) -> "IdentityProviderResponse":
        return cls.model_validate(provider.model_dump(exclude={"config"}))


class IdentityProviderList(IdpSyncBaseModel):
    """All providers in a zone."""

    items: list[IdentityProviderResponse]
