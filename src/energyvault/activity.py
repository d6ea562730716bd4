"""Activity ledger — append-only local history of completed operations.

Entries are appended once a create or reveal has confirmed and are never
modified or removed during a session. The history is not authoritative:
it lives in memory only and can drift from ledger truth if a confirmed
transaction is later reorganized away. A durable history would be
rebuilt from ledger events instead.
"""

from __future__ import annotations

from typing import Optional

from energyvault.models.record import ActivityEntry, ActivityKind


class ActivityLedger:
    """In-memory, append-only list of ActivityEntry records."""

    def __init__(self) -> None:
        self._entries: list[ActivityEntry] = []
        self._entry_ids: set[str] = set()

    def append(self, entry: ActivityEntry) -> None:
        """Append an entry.

        Raises ValueError if entry_id is a duplicate.
        """
        if entry.entry_id in self._entry_ids:
            raise ValueError(f"Duplicate activity entry ID: {entry.entry_id}")
        self._entries.append(entry)
        self._entry_ids.add(entry.entry_id)

    def recent(self, n: int) -> list[ActivityEntry]:
        """Return the last n entries, oldest first."""
        if n <= 0:
            return []
        return self._entries[-n:]

    def entries(self, kind: Optional[ActivityKind] = None) -> list[ActivityEntry]:
        """Return entries, optionally filtered by kind."""
        if kind is None:
            return list(self._entries)
        return [e for e in self._entries if e.kind == kind]

    @property
    def count(self) -> int:
        return len(self._entries)

    @property
    def last_entry(self) -> Optional[ActivityEntry]:
        return self._entries[-1] if self._entries else None
