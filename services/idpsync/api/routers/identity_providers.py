"""Identity provider registry router (read-only)."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from idpsync.api.models.identity_providers import IdentityProviderList, IdentityProviderResponse
from idpsync.db.provisioning import SqlProviderStore
from idpsync.db.session import get_db
from idpsync.provider.exceptions import ProviderNotFoundError
from idpsync.provider.origins import DEFAULT_ZONE_ID

router = APIRouter(prefix="/identity-providers", tags=["identity-providers"])


@router.get("", response_model=IdentityProviderList)
def list_identity_providers(
    zone_id: str = Query(default=DEFAULT_ZONE_ID),
    db: Session = Depends(get_db),
) -> IdentityProviderList:
    """List the registry entries of a zone, ordered by identifier."""
    providers = SqlProviderStore(db).list_all(zone_id)
    return IdentityProviderList(
        items=[IdentityProviderResponse.from_provider(p) for p in providers]
    )


@router.get("/{identifier}", response_model=IdentityProviderResponse)
def get_identity_provider(
    identifier: str,
    zone_id: str = Query(default=DEFAULT_ZONE_ID),
    db: Session = Depends(get_db),
) -> IdentityProviderResponse:
    """Get one registry entry by identifier."""
    try:
        provider = SqlProviderStore(db).retrieve_by_identifier(identifier, zone_id)
    except ProviderNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Identity provider '{identifier}' not found",
        ) from None
    return IdentityProviderResponse.from_provider(provider)
