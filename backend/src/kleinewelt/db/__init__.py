"""Database access."""

from kleinewelt.config import settings
from kleinewelt.db.memory import MemoryDatabase
from kleinewelt.db.postgres import Database

# Global database instance
db: Database | MemoryDatabase = (
    MemoryDatabase() if settings.database_backend == "memory" else Database()
)

__all__ = ["Database", "MemoryDatabase", "db"]
