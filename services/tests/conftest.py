"""Pytest configuration and fixtures."""

import os
import uuid
from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from idpsync.api.app import create_application
from idpsync.db.models import Base, utc_now
from idpsync.db.provisioning import SqlProviderStore
from idpsync.db.session import get_db
from idpsync.provider.exceptions import ProviderNotFoundError
from idpsync.provider.models import IdentityProvider

# In-memory SQLite by default; point at PostgreSQL with IDPSYNC_TEST_DATABASE_URL
TEST_DATABASE_URL = os.environ.get("IDPSYNC_TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")


class InMemoryProviderStore:
    """Dict-backed ProviderStore with the same version semantics as the SQL store."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], IdentityProvider] = {}

    def retrieve_by_identifier(self, identifier: str, zone_id: str) -> IdentityProvider:
        try:
            return self.records[(identifier, zone_id)]
        except KeyError:
            raise ProviderNotFoundError(identifier, zone_id) from None

    def create(self, provider: IdentityProvider, zone_id: str) -> IdentityProvider:
        now = utc_now()
        created = provider.model_copy(
            update={
                "id": uuid.uuid4(),
                "zone_id": zone_id,
                "version": 0,
                "created_at": now,
                "last_modified_at": now,
            }
        )
        self.records[(provider.identifier, zone_id)] = created
        return created

    def update(self, provider: IdentityProvider, zone_id: str) -> IdentityProvider:
        existing = self.retrieve_by_identifier(provider.identifier, zone_id)
        updated = provider.model_copy(
            update={
                "id": existing.id,
                "zone_id": zone_id,
                "version": existing.version + 1,
                "last_modified_at": provider.last_modified_at or utc_now(),
            }
        )
        self.records[(provider.identifier, zone_id)] = updated
        return updated

    def delete_by_identifier(self, identifier: str, zone_id: str) -> IdentityProvider:
        try:
            return self.records.pop((identifier, zone_id))
        except KeyError:
            raise ProviderNotFoundError(identifier, zone_id) from None

    def list_all(self, zone_id: str) -> list[IdentityProvider]:
        return sorted(
            (p for (_, z), p in self.records.items() if z == zone_id),
            key=lambda p: p.identifier,
        )


@pytest.fixture
def memory_store() -> InMemoryProviderStore:
    """Empty in-memory provider store."""
    return InMemoryProviderStore()


@pytest.fixture
def engine() -> Generator[Engine]:
    """Create engine for testing with a fresh schema."""
    kwargs = {}
    if TEST_DATABASE_URL.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    engine = create_engine(TEST_DATABASE_URL, **kwargs)

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to the test engine."""
    return sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session]:
    """Create database session for testing."""
    with session_factory() as session:
        yield session
        session.rollback()


@pytest.fixture
def sql_store(db_session: Session) -> SqlProviderStore:
    """SQL provider store on the test session."""
    return SqlProviderStore(db_session)


@pytest.fixture
def app(db_session: Session) -> FastAPI:
    """Create FastAPI application for testing."""
    application = create_application()

    def override_get_db() -> Generator[Session]:
        yield db_session

    application.dependency_overrides[get_db] = override_get_db

    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create sync test client."""
    return TestClient(app)
