"""Reveal workflow — verifiable decryption of an existing record.

Sequence:
    getRecord ──verified──→ return stored clear value (no further calls)
        │
        └─ getEncryptedHandle → verifyDecryption(handle, on_proof)
              on_proof: submitVerifiedDecryption(id, encoded, proof)
           → await confirmation → append activity → sync → clear value

Proof generation dominates the cost, so the verified fast path skips it
entirely. At most one reveal runs per record id; concurrent callers for
the same id share the running reveal's result. If another party verifies
the record first, the ledger answers "already verified": that outcome is
benign, the store is re-synced and no value is returned, since the
locally decrypted value is not the one the ledger accepted.
A reveal transaction that fails after submission is checked against the
record once more: a losing transaction can revert without a reason
string, so a record that now reads verified counts as the same race.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from energyvault.activity import ActivityLedger
from energyvault.errors import (
    AlreadyVerifiedError,
    ConfirmationTimeoutError,
    ErrorKind,
    LedgerError,
    NotReadyError,
    ProofGenerationError,
    SyncError,
    WorkflowResult,
)
from energyvault.gateways.crypto import CryptoGateway
from energyvault.gateways.ledger import (
    LEDGER_FAILURES,
    LedgerGateway,
    PendingTransaction,
    confirm,
)
from energyvault.models.record import ActivityEntry, ActivityKind, PendingReveal
from energyvault.store import RecordStore
from energyvault.workflows.registry import InFlightRegistry

logger = logging.getLogger(__name__)


class RevealWorkflow:
    """Reveals record values, one in-flight reveal per record id.

    Usage:
        workflow = RevealWorkflow(ledger, crypto, store, activity,
                                  target_context, identity=lambda: owner)
        result = await workflow.reveal("energy-1760000000000-ab12cd")
        if result.success and result.value is not None:
            usage = result.value
    """

    def __init__(
        self,
        ledger: LedgerGateway,
        crypto: CryptoGateway,
        store: RecordStore,
        activity: ActivityLedger,
        target_context: str,
        identity: Callable[[], Optional[str]],
        confirmation_timeout: float = 120.0,
        registry: Optional[InFlightRegistry] = None,
    ) -> None:
        self._ledger = ledger
        self._crypto = crypto
        self._store = store
        self._activity = activity
        self._target_context = target_context
        self._identity = identity
        self._confirmation_timeout = confirmation_timeout
        self._registry = registry or InFlightRegistry()

    def is_revealing(self, record_id: str) -> bool:
        return self._registry.is_pending(record_id)

    async def reveal(self, record_id: str) -> WorkflowResult:
        """Reveal the clear usage value of record_id.

        The result value is the clear value, or None after an
        already-verified race.
        """
        if not self._identity():
            return WorkflowResult.fail(ErrorKind.NOT_CONNECTED)
        return await self._registry.run(record_id, lambda: self._reveal_once(record_id))

    async def _reveal_once(self, record_id: str) -> WorkflowResult:
        try:
            snapshot = await self._ledger.get_record(record_id)
        except LEDGER_FAILURES as exc:
            logger.error(f"getRecord({record_id}) failed: {exc}")
            return WorkflowResult.fail(ErrorKind.LEDGER_ERROR, str(exc))
        if snapshot is None:
            return WorkflowResult.fail(ErrorKind.RECORD_NOT_FOUND, record_id)

        if snapshot.verified:
            logger.info(f"Record {record_id} already verified; returning stored value")
            return WorkflowResult.ok(
                snapshot.clear_value, message="Data already verified on-chain",
            )

        if not self._crypto.is_initialized:
            return WorkflowResult.fail(ErrorKind.NOT_READY)

        try:
            handle = await self._ledger.get_encrypted_handle(record_id)
        except LEDGER_FAILURES as exc:
            logger.error(f"getEncryptedHandle({record_id}) failed: {exc}")
            return WorkflowResult.fail(ErrorKind.LEDGER_ERROR, str(exc))

        pending = PendingReveal(record_id=record_id)

        async def on_proof(encoded: bytes, proof: bytes) -> PendingTransaction:
            tx = await self._ledger.submit_verified_decryption(record_id, encoded, proof)
            pending.tx_hash = tx.tx_hash
            return tx

        try:
            outcome = await self._crypto.verify_decryption(
                [handle], self._target_context, on_proof,
            )
        except NotReadyError:
            return WorkflowResult.fail(ErrorKind.NOT_READY)
        except ProofGenerationError as exc:
            logger.error(f"Proof generation failed for {record_id}: {exc}")
            return WorkflowResult.fail(ErrorKind.PROOF_GENERATION_FAILED, str(exc))
        except AlreadyVerifiedError:
            return await self._already_verified(record_id)
        except LedgerError as exc:
            logger.error(f"Submitting decryption proof for {record_id} failed: {exc}")
            return WorkflowResult.fail(ErrorKind.LEDGER_SUBMISSION_FAILED, str(exc))

        pending.local_value = outcome.clear_values[handle]

        try:
            await confirm(outcome.transaction, self._confirmation_timeout)
        except AlreadyVerifiedError:
            return await self._already_verified(record_id)
        except ConfirmationTimeoutError as exc:
            logger.warning(f"Confirmation of reveal {pending.tx_hash} timed out: {exc}")
            return WorkflowResult.fail(ErrorKind.CONFIRMATION_TIMEOUT, str(exc))
        except LEDGER_FAILURES as exc:
            if await self._verified_since(record_id):
                return await self._already_verified(record_id)
            logger.error(f"Reveal transaction {pending.tx_hash} failed: {exc}")
            return WorkflowResult.fail(ErrorKind.CONFIRMATION_FAILED, str(exc))

        self._activity.append(ActivityEntry.create(
            ActivityKind.REVEAL,
            record_name=snapshot.name,
            usage_value=pending.local_value,
        ))
        await self._sync_quietly()

        logger.info(f"Record {record_id} revealed and verified")
        return WorkflowResult.ok(
            pending.local_value, message="Data decrypted and verified successfully!",
        )

    async def _already_verified(self, record_id: str) -> WorkflowResult:
        logger.warning(f"Record {record_id} was verified concurrently")
        await self._sync_quietly()
        return WorkflowResult(
            success=True,
            error=ErrorKind.ALREADY_VERIFIED_RACE,
            message=ErrorKind.ALREADY_VERIFIED_RACE.reason,
            value=None,
        )

    async def _verified_since(self, record_id: str) -> bool:
        """True if the record reads as verified after our transaction failed.

        A reveal that loses the race after both proofs passed gas
        estimation reverts on-chain without a reason string.
        """
        try:
            snapshot = await self._ledger.get_record(record_id)
        except LEDGER_FAILURES as exc:
            logger.warning(f"Re-reading {record_id} after failed reveal: {exc}")
            return False
        return snapshot is not None and snapshot.verified

    async def _sync_quietly(self) -> None:
        try:
            await self._store.sync()
        except SyncError as exc:
            logger.warning(f"Post-reveal sync failed: {exc}")
