"""sharelens database layer."""

from sharelens.db.audit import AuditStore
from sharelens.db.connection import Database
from sharelens.db.migrations import MIGRATIONS, run_migrations
from sharelens.db.schema import initialize, open_database
from sharelens.db.store import RankedResult, ResourceStore

__all__ = [
    "AuditStore",
    "Database",
    "MIGRATIONS",
    "RankedResult",
    "ResourceStore",
    "initialize",
    "open_database",
    "run_migrations",
]
