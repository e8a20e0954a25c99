"""idpsync API Pydantic models."""

from .common import IdpSyncBaseModel
from .identity_providers import IdentityProviderList, IdentityProviderResponse

__all__ = [
    # Common
    "IdpSyncBaseModel",
    # Identity providers
    "IdentityProviderList",
    "IdentityProviderResponse",
]
