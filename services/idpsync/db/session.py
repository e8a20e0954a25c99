"""
Database session management for the provider registry.

The bootstrap pass is a blocking, run-to-completion job, so the registry is
accessed through synchronous SQLAlchemy sessions.
"""

from collections.abc import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from idpsync.config import settings
from idpsync.logging_config import get_logger

logger = get_logger(__name__)

engine = create_engine(
    str(settings.database_url),
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

session_factory = sessionmaker(
    engine,
    class_=Session,
    expire_on_commit=False,
    autoflush=False,
)


def init_db() -> None:
    """Verify the registry database is reachable."""
    logger.info("Initializing database connection")
    with engine.begin() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection established")


def close_db() -> None:
    """Close database connection pool."""
    logger.info("Closing database connection pool")
    engine.dispose()


def get_db() -> Generator[Session]:
    """
    Dependency that provides a database session.

    Usage:
        @router.get("/identity-providers")
        def list_providers(db: Session = Depends(get_db)):
            ...
    """
    with session_factory() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


def get_db_health() -> bool:
    """Check database health for readiness probe."""
    try:
        with engine.begin() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False
