"""SQLAlchemy-backed provider store."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from idpsync.db.models import IdentityProviderRecord, utc_now
from idpsync.logging_config import get_logger
from idpsync.provider.exceptions import ProviderNotFoundError
from idpsync.provider.models import IdentityProvider

logger = get_logger(__name__)


def to_provider(record: IdentityProviderRecord) -> IdentityProvider:
    """Convert a database row to an IdentityProvider value."""
    return IdentityProvider(
        id=record.id,
        identifier=record.origin_key,
        kind=record.type,
        display_name=record.name,
        active=record.active,
        config=record.config,
        zone_id=record.identity_zone_id,
        version=record.version,
        created_at=record.created_at,
        last_modified_at=record.last_modified_at,
    )


class SqlProviderStore:
    """Provider registry stored in the ``identity_providers`` table.

    Writes are flushed but never committed; the caller owns the transaction.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def _find(self, identifier: str, zone_id: str) -> IdentityProviderRecord | None:
        return self._db.scalars(
            select(IdentityProviderRecord).where(
                IdentityProviderRecord.origin_key == identifier,
                IdentityProviderRecord.identity_zone_id == zone_id,
            )
        ).one_or_none()

    def retrieve_by_identifier(self, identifier: str, zone_id: str) -> IdentityProvider:
        record = self._find(identifier, zone_id)
        if record is None:
            raise ProviderNotFoundError(identifier, zone_id)
        return to_provider(record)

    def create(self, provider: IdentityProvider, zone_id: str) -> IdentityProvider:
        now = utc_now()
        record = IdentityProviderRecord(
            origin_key=provider.identifier,
            identity_zone_id=zone_id,
            type=provider.kind.value,
            name=provider.display_name,
            active=provider.active,
            config=provider.config,
            version=0,
            created_at=now,
            last_modified_at=now,
        )
        self._db.add(record)
        self._db.flush()
        return to_provider(record)

    def update(self, provider: IdentityProvider, zone_id: str) -> IdentityProvider:
        """Overwrite the mutable fields of an existing record and bump its version."""
        record = self._db.scalars(
            select(IdentityProviderRecord).where(
                IdentityProviderRecord.id == provider.id,
                IdentityProviderRecord.identity_zone_id == zone_id,
            )
        ).one_or_none()
        if record is None:
            raise ProviderNotFoundError(provider.identifier, zone_id)

        record.origin_key = provider.identifier
        record.type = provider.kind.value
        record.name = provider.display_name
        record.active = provider.active
        record.config = provider.config
        record.version = record.version + 1
        record.last_modified_at = provider.last_modified_at or utc_now()
        self._db.flush()
        return to_provider(record)

    def delete_by_identifier(self, identifier: str, zone_id: str) -> IdentityProvider:
        record = self._find(identifier, zone_id)
        if record is None:
            raise ProviderNotFoundError(identifier, zone_id)
        deleted = to_provider(record)
        self._db.delete(record)
        self._db.flush()
        return deleted

    def list_all(self, zone_id: str) -> list[IdentityProvider]:
        records = self._db.scalars(
            select(IdentityProviderRecord)
            .where(IdentityProviderRecord.identity_zone_id == zone_id)
            .order_by(IdentityProviderRecord.origin_key)
        ).all()
        return [to_provider(r) for r in records]
