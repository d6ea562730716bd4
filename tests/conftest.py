"""Shared fixtures — in-memory ledger and encryption engine fakes."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import pytest
import pytest_asyncio

from energyvault.activity import ActivityLedger
from energyvault.errors import (
    AlreadyVerifiedError,
    ConfirmationTimeoutError,
    LedgerError,
    SubmissionRejectedError,
)
from energyvault.gateways.crypto import (
    CryptoGateway,
    DecryptionProof,
    EncryptedInput,
)
from energyvault.gateways.ledger import TransactionReceipt
from energyvault.models.record import RecordSnapshot
from energyvault.store import RecordStore

OWNER = "0x1111111111111111111111111111111111111111"
TARGET = "0x2222222222222222222222222222222222222222"


def encode_clear_value(value: int) -> bytes:
    return value.to_bytes(32, "big")


class FakeTransaction:
    """Pending transaction whose outcome is chosen by the test."""

    def __init__(
        self,
        tx_hash: str,
        on_mined: Optional[Callable[[], None]] = None,
        outcome: str = "ok",
    ) -> None:
        self._tx_hash = tx_hash
        self._on_mined = on_mined
        self.outcome = outcome
        self.confirm_calls = 0

    @property
    def tx_hash(self) -> str:
        return self._tx_hash

    async def await_confirmation(self, timeout: float) -> TransactionReceipt:
        self.confirm_calls += 1
        await asyncio.sleep(0)
        if self.outcome == "timeout":
            raise ConfirmationTimeoutError(f"{self._tx_hash} not mined in {timeout}s")
        if self.outcome == "revert":
            raise LedgerError(f"{self._tx_hash} reverted")
        if self.outcome == "already_verified":
            raise AlreadyVerifiedError("execution reverted: Data already verified")
        if self._on_mined is not None:
            self._on_mined()
        return TransactionReceipt(tx_hash=self._tx_hash, block_number=1)


@dataclass
class _StoredRecord:
    name: str
    creator: str
    timestamp: int
    public_attr1: int
    public_attr2: int
    handle: bytes
    verified: bool = False
    clear_value: int = 0


@dataclass
class FakeLedger:
    """In-memory energy contract with per-call recording."""
    records: dict[str, _StoredRecord] = field(default_factory=dict)
    unfetchable: set[str] = field(default_factory=set)
    listing_fails: bool = False
    reject_create: bool = False
    create_outcome: str = "ok"
    reveal_outcome: str = "ok"
    create_calls: list[tuple] = field(default_factory=list)
    submit_calls: list[tuple] = field(default_factory=list)
    get_record_calls: int = 0
    creator: str = OWNER
    _tx_counter: int = 0

    def add(
        self,
        record_id: str,
        name: str = "Home",
        efficiency: int = 7,
        handle: Optional[bytes] = None,
        verified: bool = False,
        clear_value: int = 0,
    ) -> None:
        self.records[record_id] = _StoredRecord(
            name=name,
            creator=self.creator,
            timestamp=1760000000,
            public_attr1=efficiency,
            public_attr2=0,
            handle=handle or f"handle:{record_id}".encode(),
            verified=verified,
            clear_value=clear_value,
        )

    def _next_hash(self) -> str:
        self._tx_counter += 1
        return f"0x{self._tx_counter:064x}"

    async def list_record_ids(self) -> list[str]:
        await asyncio.sleep(0)
        if self.listing_fails:
            raise LedgerError("rpc unavailable")
        return list(self.records)

    async def get_record(self, record_id: str) -> Optional[RecordSnapshot]:
        self.get_record_calls += 1
        await asyncio.sleep(0)
        if record_id in self.unfetchable:
            raise LedgerError(f"getBusinessData({record_id}) failed")
        stored = self.records.get(record_id)
        if stored is None:
            return None
        return RecordSnapshot(
            name=stored.name,
            creator=stored.creator,
            timestamp=stored.timestamp,
            public_attr1=stored.public_attr1,
            public_attr2=stored.public_attr2,
            verified=stored.verified,
            clear_value=stored.clear_value,
        )

    async def get_encrypted_handle(self, record_id: str) -> bytes:
        await asyncio.sleep(0)
        if record_id in self.unfetchable:
            raise LedgerError(f"getEncryptedValue({record_id}) failed")
        stored = self.records.get(record_id)
        if stored is None:
            raise LedgerError(f"unknown record {record_id}")
        return stored.handle

    async def create_record(
        self, record_id, name, ciphertext, proof, public_attr1, public_attr2, label,
    ) -> FakeTransaction:
        self.create_calls.append(
            (record_id, name, ciphertext, proof, public_attr1, public_attr2, label)
        )
        await asyncio.sleep(0)
        if self.reject_create:
            raise SubmissionRejectedError("user rejected transaction")

        def mined() -> None:
            self.add(
                record_id, name=name, efficiency=public_attr1, handle=ciphertext,
            )
            self.records[record_id].public_attr2 = public_attr2

        return FakeTransaction(self._next_hash(), mined, outcome=self.create_outcome)

    async def submit_verified_decryption(
        self, record_id, encoded_clear_values, decryption_proof,
    ) -> FakeTransaction:
        self.submit_calls.append((record_id, encoded_clear_values, decryption_proof))
        await asyncio.sleep(0)
        stored = self.records[record_id]
        if stored.verified:
            raise AlreadyVerifiedError("execution reverted: Data already verified")

        def mined() -> None:
            stored.verified = True
            stored.clear_value = int.from_bytes(encoded_clear_values, "big")

        return FakeTransaction(self._next_hash(), mined, outcome=self.reveal_outcome)


class FakeEngine:
    """Encryption engine that keeps plaintexts in a lookup table."""

    def __init__(self) -> None:
        self.plaintexts: dict[bytes, int] = {}
        self.init_calls = 0
        self.encrypt_calls: list[tuple] = []
        self.decrypt_calls: list[tuple] = []
        self.fail_init = False
        self.fail_encrypt = False
        self.fail_decrypt = False

    async def initialize(self) -> None:
        self.init_calls += 1
        await asyncio.sleep(0)
        if self.fail_init:
            raise RuntimeError("relayer unreachable")

    async def encrypt(self, target_context: str, owner: str, value: int) -> EncryptedInput:
        self.encrypt_calls.append((target_context, owner, value))
        await asyncio.sleep(0)
        if self.fail_encrypt:
            raise RuntimeError("bad public key")
        handle = f"handle:{len(self.plaintexts)}:{owner}".encode()
        self.plaintexts[handle] = value
        return EncryptedInput(ciphertext=handle, proof=b"input-proof")

    async def public_decrypt(
        self, handles: Sequence[bytes], target_context: str,
    ) -> DecryptionProof:
        self.decrypt_calls.append((tuple(handles), target_context))
        await asyncio.sleep(0)
        if self.fail_decrypt:
            raise RuntimeError("kms timeout")
        values = {h: self.plaintexts[h] for h in handles}
        return DecryptionProof(
            clear_values=values,
            encoded_clear_values=encode_clear_value(values[handles[0]]),
            proof=b"decryption-proof",
        )


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def crypto(engine: FakeEngine) -> CryptoGateway:
    return CryptoGateway(engine)


@pytest_asyncio.fixture
async def ready_crypto(crypto: CryptoGateway) -> CryptoGateway:
    await crypto.initialize()
    return crypto


@pytest.fixture
def store(ledger: FakeLedger) -> RecordStore:
    return RecordStore(ledger)


@pytest.fixture
def activity() -> ActivityLedger:
    return ActivityLedger()
