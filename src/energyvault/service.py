"""energyvault service — unified facade for the presentation layer.

Wires the orchestrator's parts together:
- Session identity (connect / disconnect)
- Encryption engine initialization
- Encrypted submission of new records
- Verifiable reveal of existing records
- Record cache refresh, search and dashboard stats
- Comparison analytics and local activity history

All operations return typed WorkflowResults; none raises for a domain
failure. View state (selection, modal visibility, search text) belongs
to the caller and has no bearing on these operations.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from energyvault.activity import ActivityLedger
from energyvault.analytics import analyze_record
from energyvault.config import VaultConfig
from energyvault.errors import ErrorKind, SyncError, WorkflowResult
from energyvault.gateways.crypto import CryptoGateway, FheEngine
from energyvault.gateways.ledger import LedgerGateway, Web3LedgerGateway
from energyvault.models.record import (
    ActivityEntry,
    ComparisonResult,
    Record,
    StoreStats,
)
from energyvault.store import RecordStore
from energyvault.workflows.reveal import RevealWorkflow
from energyvault.workflows.submission import SubmissionWorkflow

logger = logging.getLogger(__name__)


class EnergyVaultService:
    """Facade over store, workflows, analytics and activity history.

    Usage:
        service = EnergyVaultService(config, ledger, CryptoGateway(engine),
                                     target_context=contract_address)
        service.connect(owner_address)
        await service.initialize_crypto()
        result = await service.submit("Home", "420", "7")
        result = await service.reveal(result.value)
        comparison = service.analyze(record_id)

    Against a live node:
        service = EnergyVaultService.from_config(VaultConfig.from_env(), engine)
    """

    def __init__(
        self,
        config: VaultConfig,
        ledger: LedgerGateway,
        crypto: CryptoGateway,
        target_context: str,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._crypto = crypto
        self._owner: Optional[str] = None

        self._store = RecordStore(ledger)
        self._activity = ActivityLedger()
        self._submission = SubmissionWorkflow(
            ledger, crypto, self._store, self._activity, target_context,
            confirmation_timeout=config.confirmation_timeout_seconds,
        )
        self._reveal = RevealWorkflow(
            ledger, crypto, self._store, self._activity, target_context,
            identity=lambda: self._owner,
            confirmation_timeout=config.confirmation_timeout_seconds,
        )

    @classmethod
    def from_config(cls, config: VaultConfig, engine: FheEngine) -> EnergyVaultService:
        """Build a service backed by Web3LedgerGateway.

        The signing account becomes the connected owner and the contract
        address is the encryption target context.
        """
        if not config.has_ledger_credentials:
            raise ValueError(
                "rpc_url, private_key and contract_address are required"
            )
        ledger = Web3LedgerGateway(
            config.rpc_url,
            config.private_key,
            config.contract_address,
            chain_id=config.chain_id,
        )
        service = cls(config, ledger, CryptoGateway(engine), ledger.contract_address)
        service.connect(ledger.address)
        return service

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @property
    def is_connected(self) -> bool:
        return self._owner is not None

    def connect(self, owner: str) -> None:
        if not owner:
            raise ValueError("owner identity must be non-empty")
        self._owner = owner

    def disconnect(self) -> None:
        self._owner = None

    async def initialize_crypto(self) -> WorkflowResult:
        """Initialize the encryption engine once a session exists."""
        if not self.is_connected:
            return WorkflowResult.fail(ErrorKind.NOT_CONNECTED)
        try:
            await self._crypto.initialize()
        except Exception as exc:
            logger.error(f"Encryption engine initialization failed: {exc}")
            return WorkflowResult.fail(
                ErrorKind.NOT_READY, f"initialization failed: {exc}",
            )
        return WorkflowResult.ok()

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    async def submit(self, name: str, raw_usage: Any, raw_efficiency: Any) -> WorkflowResult:
        return await self._submission.submit(name, raw_usage, raw_efficiency, self._owner)

    async def reveal(self, record_id: str) -> WorkflowResult:
        return await self._reveal.reveal(record_id)

    def is_revealing(self, record_id: str) -> bool:
        return self._reveal.is_revealing(record_id)

    async def refresh(self) -> WorkflowResult:
        """Re-sync the record cache from the ledger."""
        if not self.is_connected:
            return WorkflowResult.fail(ErrorKind.NOT_CONNECTED)
        try:
            report = await self._store.sync()
        except SyncError as exc:
            logger.error(f"Refresh failed: {exc}")
            return WorkflowResult.fail(ErrorKind.SYNC_ERROR, str(exc))
        return WorkflowResult.ok(report)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def record(self, record_id: str) -> Optional[Record]:
        return self._store.get(record_id)

    def records(self, search: str = "") -> list[Record]:
        if search:
            return self._store.search(search)
        return self._store.list()

    def stats(self) -> StoreStats:
        return self._store.stats()

    def analyze(
        self,
        record_id: str,
        local_value: Optional[int] = None,
    ) -> Optional[ComparisonResult]:
        """Comparison for a cached record, or None if it is not cached.

        local_value is a value revealed in this session that the cache
        does not reflect yet; a verified record ignores it.
        """
        record = self._store.get(record_id)
        if record is None:
            return None
        return analyze_record(
            record, local_value, community_average=self._config.community_average,
        )

    def history(self, n: int = 10) -> list[ActivityEntry]:
        return self._activity.recent(n)
