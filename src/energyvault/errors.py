"""Error taxonomy — typed failure reasons for every orchestrator operation.

Gateways raise exceptions from the VaultError hierarchy. Workflows catch
them at the seam and convert them into a WorkflowResult carrying an
ErrorKind, so the presentation layer always receives a typed result and a
distinguishable reason string. Nothing in the core retries automatically:
retrying an encryption or a ledger write with stale state risks a
duplicate submission, so every retry is the caller's decision.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional


class ErrorKind(str, enum.Enum):
    """Classification of orchestrator failures."""
    NOT_READY = "not_ready"
    NOT_CONNECTED = "not_connected"
    ENCRYPTION_FAILED = "encryption_failed"
    SUBMISSION_REJECTED = "submission_rejected"
    LEDGER_ERROR = "ledger_error"
    PROOF_GENERATION_FAILED = "proof_generation_failed"
    LEDGER_SUBMISSION_FAILED = "ledger_submission_failed"
    CONFIRMATION_TIMEOUT = "confirmation_timeout"
    CONFIRMATION_FAILED = "confirmation_failed"
    ALREADY_VERIFIED_RACE = "already_verified_race"
    RECORD_NOT_FOUND = "record_not_found"
    SYNC_ERROR = "sync_error"

    @property
    def reason(self) -> str:
        return _REASONS[self]

    @property
    def is_benign(self) -> bool:
        """Informational outcomes that need no user action."""
        return self in _BENIGN


_REASONS: dict[ErrorKind, str] = {
    ErrorKind.NOT_READY: "Encryption engine is not initialized",
    ErrorKind.NOT_CONNECTED: "Please connect wallet first",
    ErrorKind.ENCRYPTION_FAILED: "Encrypting the usage value failed",
    ErrorKind.SUBMISSION_REJECTED: "Transaction rejected",
    ErrorKind.LEDGER_ERROR: "Ledger request failed",
    ErrorKind.PROOF_GENERATION_FAILED: "Decryption proof could not be generated",
    ErrorKind.LEDGER_SUBMISSION_FAILED: "Submitting the decryption proof failed",
    ErrorKind.CONFIRMATION_TIMEOUT: (
        "Transaction not confirmed yet; refresh later to see its outcome"
    ),
    ErrorKind.CONFIRMATION_FAILED: "Transaction failed to confirm",
    ErrorKind.ALREADY_VERIFIED_RACE: "Data is already verified on-chain",
    ErrorKind.RECORD_NOT_FOUND: "Record not found",
    ErrorKind.SYNC_ERROR: "Failed to load data",
}

_BENIGN = frozenset({ErrorKind.ALREADY_VERIFIED_RACE, ErrorKind.CONFIRMATION_TIMEOUT})


@dataclass(frozen=True)
class WorkflowResult:
    """Result of a workflow or facade operation.

    On success ``value`` holds the operation's payload (a record id for
    submissions, a clear value or None for reveals). On failure ``error``
    names the reason and ``message`` carries detail for display.
    """
    success: bool
    error: Optional[ErrorKind] = None
    message: str = ""
    value: Any = None

    @staticmethod
    def ok(value: Any = None, message: str = "") -> WorkflowResult:
        return WorkflowResult(success=True, value=value, message=message)

    @staticmethod
    def fail(kind: ErrorKind, detail: str = "") -> WorkflowResult:
        message = f"{kind.reason}: {detail}" if detail else kind.reason
        return WorkflowResult(success=False, error=kind, message=message)

    @property
    def is_benign(self) -> bool:
        return self.error is not None and self.error.is_benign


# ------------------------------------------------------------------
# Gateway exceptions
# ------------------------------------------------------------------

class VaultError(Exception):
    """Base class for errors raised by gateways and the record store."""


class NotReadyError(VaultError):
    """Raised when the encryption engine is used before initialization."""


class EncryptionError(VaultError):
    """Raised when the engine cannot produce a ciphertext and input proof."""


class ProofGenerationError(VaultError):
    """Raised when the engine cannot produce a decryption proof."""


class LedgerError(VaultError):
    """Generic ledger failure (RPC error, reverted transaction)."""


class SubmissionRejectedError(LedgerError):
    """The signer or the contract declined the transaction."""


class AlreadyVerifiedError(LedgerError):
    """The ledger already holds a verified clear value for this record."""


class ConfirmationTimeoutError(LedgerError):
    """Confirmation was not observed within the bounded wait.

    Advisory only: the transaction may still be mined later.
    """


class SyncError(VaultError):
    """Raised when the record id listing itself cannot be fetched."""
