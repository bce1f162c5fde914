"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Clock and identity are injected; services never call datetime.now() directly
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - PersistenceStore names only what the transaction runner drives; services receive
      the concrete AsyncSession for querying
"""

from datetime import datetime
from typing import Protocol

from cfp.core.domain_types import Actor


class Clock(Protocol):
    """Supplies timestamps for created/updated fields."""
    def now(self) -> datetime: ...


class IdentityContext(Protocol):
    """Supplies the caller's identity and role. Authentication happens upstream."""
    def current_actor(self) -> Actor: ...


class PersistenceStore(Protocol):
    """Transactional store: the unit of work committed or rolled back as a whole."""
    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
