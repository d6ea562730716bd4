"""Crypto gateway — ordered access to the homomorphic-encryption engine.

The engine itself (key material, ciphertext format, proof system) is an
external collaborator. This gateway adds the one rule the orchestrator
relies on: the engine is initialized exactly once, and every encrypt or
verify call made before that fails fast with NotReadyError instead of
queueing behind the initialization.

Verifiable decryption is a two-party step. The engine produces the clear
values together with a proof; the on_proof callback commits that proof to
the ledger and returns the pending transaction. Both halves belong to the
same logical operation, so a callback failure is the operation's failure.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Mapping, Optional, Protocol, Sequence

from energyvault.errors import (
    EncryptionError,
    LedgerError,
    NotReadyError,
    ProofGenerationError,
)
from energyvault.gateways.ledger import PendingTransaction
from energyvault.models.record import CiphertextHandle

logger = logging.getLogger(__name__)

ProofCallback = Callable[[bytes, bytes], Awaitable[PendingTransaction]]


@dataclass(frozen=True)
class EncryptedInput:
    """Ciphertext handle plus the input proof binding it to owner and context."""
    ciphertext: CiphertextHandle
    proof: bytes


@dataclass(frozen=True)
class DecryptionProof:
    """Engine output of a verifiable decryption."""
    clear_values: Mapping[CiphertextHandle, int]
    encoded_clear_values: bytes
    proof: bytes


@dataclass(frozen=True)
class DecryptionOutcome:
    """Clear values plus the ledger transaction that commits them."""
    clear_values: dict[CiphertextHandle, int] = field(default_factory=dict)
    transaction: Optional[PendingTransaction] = None


class FheEngine(Protocol):
    """The external homomorphic-encryption engine."""

    async def initialize(self) -> None: ...

    async def encrypt(
        self, target_context: str, owner: str, value: int,
    ) -> EncryptedInput: ...

    async def public_decrypt(
        self, handles: Sequence[CiphertextHandle], target_context: str,
    ) -> DecryptionProof: ...


class CryptoGateway:
    """Wraps an FheEngine and enforces initialize-before-use.

    Usage:
        crypto = CryptoGateway(engine)
        await crypto.initialize()
        encrypted = await crypto.encrypt(contract_address, owner, 420)
    """

    def __init__(self, engine: FheEngine) -> None:
        self._engine = engine
        self._initialized = False
        self._init_task: Optional[asyncio.Task] = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Run the engine's one-time initialization.

        Idempotent. Concurrent callers share a single initialization; a
        failed initialization can be attempted again.
        """
        if self._initialized:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._engine.initialize())
        task = self._init_task
        try:
            await asyncio.shield(task)
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise
        self._initialized = True
        logger.info("Encryption engine initialized")

    def _require_ready(self) -> None:
        if not self._initialized:
            raise NotReadyError("encryption engine is not initialized")

    async def encrypt(
        self, target_context: str, owner: str, value: int,
    ) -> EncryptedInput:
        self._require_ready()
        try:
            return await self._engine.encrypt(target_context, owner, value)
        except Exception as exc:
            raise EncryptionError(str(exc)) from exc

    async def verify_decryption(
        self,
        handles: Sequence[CiphertextHandle],
        target_context: str,
        on_proof: ProofCallback,
    ) -> DecryptionOutcome:
        """Decrypt handles with a proof and hand the proof to on_proof.

        Raises ProofGenerationError when the engine fails. Ledger errors
        raised by on_proof propagate unchanged.
        """
        self._require_ready()
        try:
            result = await self._engine.public_decrypt(handles, target_context)
        except Exception as exc:
            raise ProofGenerationError(str(exc)) from exc

        missing = [h for h in handles if h not in result.clear_values]
        if missing:
            raise ProofGenerationError(
                f"engine returned no clear value for {len(missing)} handle(s)"
            )

        try:
            transaction = await on_proof(result.encoded_clear_values, result.proof)
        except LedgerError:
            raise
        except Exception as exc:
            raise LedgerError(str(exc)) from exc

        return DecryptionOutcome(
            clear_values={h: int(result.clear_values[h]) for h in handles},
            transaction=transaction,
        )
