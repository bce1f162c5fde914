"""System clock — the production Clock (core/repository_protocols.py)."""

from datetime import datetime, timezone


class SystemClock:
    """Timezone-aware UTC wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
