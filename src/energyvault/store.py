"""Record store — local cache of the records held on the ledger.

The ledger is authoritative; the store only mirrors it. sync() lists
every record id, fetches each record, and swaps the complete result in
at once, so readers see either the previous snapshot or the new one and
never a half-built mix. A record that cannot be fetched is logged and
left out of the new snapshot; the store is best-effort, not a
transactional unit.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from energyvault.errors import LedgerError, SyncError, VaultError
from energyvault.gateways.ledger import TRANSPORT_ERRORS, LedgerGateway
from energyvault.models.record import Record, StoreStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncReport:
    """Outcome of one sync pass."""
    fetched: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.skipped


class RecordStore:
    """Read-mostly snapshot of ledger records, refreshed by sync().

    Usage:
        store = RecordStore(ledger)
        report = await store.sync()
        record = store.get("energy-1760000000000-ab12cd")
    """

    def __init__(self, ledger: LedgerGateway) -> None:
        self._ledger = ledger
        self._records: dict[str, Record] = {}

    async def sync(self) -> SyncReport:
        """Repopulate the snapshot from the ledger.

        Raises SyncError if the id listing fails; the previous snapshot
        is kept in that case.
        """
        try:
            record_ids = await self._ledger.list_record_ids()
        except (VaultError, *TRANSPORT_ERRORS) as exc:
            raise SyncError(f"listing record ids failed: {exc}") from exc

        results = await asyncio.gather(
            *(self._fetch(record_id) for record_id in record_ids),
            return_exceptions=True,
        )

        records: dict[str, Record] = {}
        skipped: dict[str, str] = {}
        for record_id, result in zip(record_ids, results):
            if isinstance(result, Record):
                records[record_id] = result
            elif isinstance(result, Exception):
                logger.warning(f"Skipping record {record_id}: {result}")
                skipped[record_id] = str(result)
            else:
                # BaseException other than Exception (cancellation)
                raise result

        self._records = records
        logger.info(f"Synced {len(records)} record(s), skipped {len(skipped)}")
        return SyncReport(fetched=list(records), skipped=skipped)

    async def _fetch(self, record_id: str) -> Record:
        snapshot = await self._ledger.get_record(record_id)
        if snapshot is None:
            raise LedgerError(f"record {record_id} listed but not found")
        handle = await self._ledger.get_encrypted_handle(record_id)
        return snapshot.to_record(record_id, ciphertext_handle=handle)

    def get(self, record_id: str) -> Optional[Record]:
        return self._records.get(record_id)

    def list(self) -> list[Record]:
        """Records in the order the last sync listed them."""
        return list(self._records.values())

    def search(self, term: str) -> list[Record]:
        """Records whose name contains term, case-insensitively."""
        needle = term.lower()
        return [r for r in self._records.values() if needle in r.name.lower()]

    def stats(self) -> StoreStats:
        records = list(self._records.values())
        if not records:
            return StoreStats(total=0, verified=0, average_efficiency=0.0)
        return StoreStats(
            total=len(records),
            verified=sum(1 for r in records if r.verified),
            average_efficiency=sum(r.efficiency for r in records) / len(records),
        )

    @property
    def count(self) -> int:
        return len(self._records)
