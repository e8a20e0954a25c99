"""idpsync database module."""

from .models import Base
from .provisioning import SqlProviderStore
from .session import get_db, get_db_health, init_db

__all__ = ["Base", "SqlProviderStore", "get_db", "get_db_health", "init_db"]
