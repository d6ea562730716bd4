"""Submission workflow — encrypt a usage value and create its ledger record.

Sequence, every step a suspension point:
    check owner + engine → new id → encrypt → createRecord
    → await confirmation → append activity → sync store

Each failure is terminal for the call and reported as a typed result.
Nothing is retried here: the caller may run the whole submission again,
which draws a fresh record id. After a confirmation failure the record
may or may not exist on the ledger; only the next sync can tell.
"""

from __future__ import annotations

import logging
import math
import secrets
import time
from typing import Any, Optional

from energyvault.activity import ActivityLedger
from energyvault.errors import (
    ConfirmationTimeoutError,
    EncryptionError,
    ErrorKind,
    NotReadyError,
    SubmissionRejectedError,
    SyncError,
    WorkflowResult,
)
from energyvault.gateways.crypto import CryptoGateway
from energyvault.gateways.ledger import LEDGER_FAILURES, LedgerGateway, confirm
from energyvault.models.record import ActivityEntry, ActivityKind
from energyvault.store import RecordStore

logger = logging.getLogger(__name__)

RECORD_LABEL = "Energy Consumption Data"
RECORD_ID_PREFIX = "energy"


def new_record_id(now_ms: Optional[int] = None) -> str:
    """Timestamp-derived id with a random suffix against same-ms collisions."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{RECORD_ID_PREFIX}-{now_ms}-{secrets.token_hex(3)}"


def parse_form_int(raw: Any) -> int:
    """Read a form field as an integer; unparseable input counts as 0."""
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if math.isfinite(raw) else 0
    text = str(raw or "").strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return 0


class SubmissionWorkflow:
    """Creates new encrypted energy records.

    Submissions for distinct ids never conflict, so instances need no
    coordination and may run concurrently.
    """

    def __init__(
        self,
        ledger: LedgerGateway,
        crypto: CryptoGateway,
        store: RecordStore,
        activity: ActivityLedger,
        target_context: str,
        confirmation_timeout: float = 120.0,
    ) -> None:
        self._ledger = ledger
        self._crypto = crypto
        self._store = store
        self._activity = activity
        self._target_context = target_context
        self._confirmation_timeout = confirmation_timeout

    async def submit(
        self,
        name: str,
        raw_usage: Any,
        raw_efficiency: Any,
        owner: Optional[str],
    ) -> WorkflowResult:
        """Encrypt raw_usage and create a record for it.

        On success the result value is the new record id.
        """
        if not owner:
            return WorkflowResult.fail(ErrorKind.NOT_CONNECTED)
        if not self._crypto.is_initialized:
            return WorkflowResult.fail(ErrorKind.NOT_READY)

        usage = parse_form_int(raw_usage)
        efficiency = parse_form_int(raw_efficiency)
        record_id = new_record_id()
        logger.info(f"Submitting record {record_id} ({name!r}) for {owner}")

        try:
            encrypted = await self._crypto.encrypt(self._target_context, owner, usage)
        except NotReadyError:
            return WorkflowResult.fail(ErrorKind.NOT_READY)
        except EncryptionError as exc:
            logger.error(f"Encryption failed for {record_id}: {exc}")
            return WorkflowResult.fail(ErrorKind.ENCRYPTION_FAILED, str(exc))

        try:
            tx = await self._ledger.create_record(
                record_id,
                name,
                encrypted.ciphertext,
                encrypted.proof,
                efficiency,
                0,
                RECORD_LABEL,
            )
        except SubmissionRejectedError as exc:
            logger.error(f"createRecord rejected for {record_id}: {exc}")
            return WorkflowResult.fail(ErrorKind.SUBMISSION_REJECTED, str(exc))
        except LEDGER_FAILURES as exc:
            logger.error(f"createRecord failed for {record_id}: {exc}")
            return WorkflowResult.fail(ErrorKind.LEDGER_ERROR, str(exc))

        try:
            await confirm(tx, self._confirmation_timeout)
        except ConfirmationTimeoutError as exc:
            logger.warning(f"Confirmation of {record_id} timed out: {exc}")
            return WorkflowResult.fail(ErrorKind.CONFIRMATION_TIMEOUT, str(exc))
        except LEDGER_FAILURES as exc:
            logger.error(f"Confirmation of {record_id} failed: {exc}")
            return WorkflowResult.fail(ErrorKind.CONFIRMATION_FAILED, str(exc))

        self._activity.append(ActivityEntry.create(
            ActivityKind.CREATE, record_name=name, usage_value=usage,
        ))
        try:
            await self._store.sync()
        except SyncError as exc:
            # The record is confirmed; a stale cache is not a submission failure.
            logger.warning(f"Post-submit sync failed: {exc}")

        logger.info(f"Record {record_id} created")
        return WorkflowResult.ok(record_id, message="Energy data created successfully!")
