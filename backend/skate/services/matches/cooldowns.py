"""Deadline-warning cooldown stores.

The reconciler asks a store whether a match was warned recently and
records each warning it sends. Entries older than the cooldown are
purged, so a store never grows past the set of recently warned matches.
"""

from abc import ABC, abstractmethod
from typing import Dict

from skate import db
from skate.models import DeadlineWarning


class WarningCooldownStore(ABC):
    @abstractmethod
    def recently_warned(self, match_id: str, now: float, cooldown: float) -> bool:
        pass

    @abstractmethod
    def mark(self, match_id: str, now: float) -> None:
        pass

    @abstractmethod
    def purge(self, now: float, cooldown: float) -> int:
        pass


class MemoryCooldownStore(WarningCooldownStore):
    """Per-process store; suitable for tests and single-worker setups."""

    def __init__(self):
        self._warned_at: Dict[str, float] = {}

    def recently_warned(self, match_id, now, cooldown):
        last = self._warned_at.get(match_id)
        return last is not None and now - last < cooldown

    def mark(self, match_id, now):
        self._warned_at[match_id] = now

    def purge(self, now, cooldown):
        expired = [mid for mid, ts in self._warned_at.items() if now - ts >= cooldown]
        for mid in expired:
            del self._warned_at[mid]
        return len(expired)


class DatabaseCooldownStore(WarningCooldownStore):
    """Shared store backed by the deadline_warning table."""

    def recently_warned(self, match_id, now, cooldown):
        row = db.session.get(DeadlineWarning, match_id)
        return row is not None and now - row.warned_at < cooldown

    def mark(self, match_id, now):
        row = db.session.get(DeadlineWarning, match_id)
        if row is None:
            row = DeadlineWarning(match_id=match_id, warned_at=now)
            db.session.add(row)
        else:
            row.warned_at = now
        db.session.commit()

    def purge(self, now, cooldown):
        deleted = DeadlineWarning.query.filter(DeadlineWarning.warned_at <= now - cooldown).delete()
        db.session.commit()
        return deleted


def cooldown_store_for(kind: str) -> WarningCooldownStore:
    if kind == 'memory':
        return MemoryCooldownStore()
    if kind == 'database':
        return DatabaseCooldownStore()
    raise ValueError(f'Unknown warning store {kind!r}')
