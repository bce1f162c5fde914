"""Dialect helpers — upsert statements for the bound database.

Invariants:
    - dialect_insert() returns an INSERT with on_conflict_do_update on postgresql and sqlite
    - Any other dialect is unsupported (StorageError)
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.core.errors import StorageError

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(db: AsyncSession, table):
    """Dialect-specific INSERT construct supporting on_conflict_do_update."""
    name = db.get_bind().dialect.name
    insert = _INSERTS.get(name)
    if insert is None:
        raise StorageError(f"upsert not supported on {name}", "upsert")
    return insert(table)
