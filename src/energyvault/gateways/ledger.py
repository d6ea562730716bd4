"""Ledger gateway — the orchestrator's only path to the energy contract.

The contract is an append-only keyed store of energy records. Reads are
plain calls; writes are signed transactions that move through
submit → pending → mined/reverted. Every write returns a
PendingTransaction whose await_confirmation() is the bounded wait the
workflows use.

Web3LedgerGateway talks to an EVM node over JSON-RPC. Transactions are
signed locally with an eth_account key and sent raw, the same way the
constitution anchoring tool sends its self-transactions.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

import aiohttp
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from energyvault.errors import (
    AlreadyVerifiedError,
    ConfirmationTimeoutError,
    LedgerError,
    SubmissionRejectedError,
)
from energyvault.models.record import CiphertextHandle, RecordSnapshot

logger = logging.getLogger(__name__)

ALREADY_VERIFIED_MARKER = "already verified"

# The HTTP provider re-raises these unwrapped once its own retries run out.
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)

# What a caller of any LedgerGateway method may have to handle.
LEDGER_FAILURES = (LedgerError,) + TRANSPORT_ERRORS

_RPC_ERRORS = (Web3Exception,) + TRANSPORT_ERRORS


@dataclass(frozen=True)
class TransactionReceipt:
    """A mined, successful transaction."""
    tx_hash: str
    block_number: int


class PendingTransaction(Protocol):
    """Handle on a submitted but not yet confirmed ledger write."""

    @property
    def tx_hash(self) -> str: ...

    async def await_confirmation(self, timeout: float) -> TransactionReceipt:
        """Wait for the transaction to be mined.

        Raises ConfirmationTimeoutError when the wait expires,
        AlreadyVerifiedError or LedgerError when it reverted.
        """
        ...


class LedgerGateway(Protocol):
    """Read and write operations on the energy contract."""

    async def list_record_ids(self) -> list[str]: ...

    async def get_record(self, record_id: str) -> Optional[RecordSnapshot]: ...

    async def get_encrypted_handle(self, record_id: str) -> CiphertextHandle: ...

    async def create_record(
        self,
        record_id: str,
        name: str,
        ciphertext: CiphertextHandle,
        proof: bytes,
        public_attr1: int,
        public_attr2: int,
        label: str,
    ) -> PendingTransaction: ...

    async def submit_verified_decryption(
        self,
        record_id: str,
        encoded_clear_values: bytes,
        decryption_proof: bytes,
    ) -> PendingTransaction: ...


def classify_revert(exc: Exception) -> LedgerError:
    """Map a contract-level rejection onto the ledger error taxonomy."""
    message = str(exc)
    if ALREADY_VERIFIED_MARKER in message.lower():
        return AlreadyVerifiedError(message)
    return SubmissionRejectedError(message)


def snapshot_from_call(result: Sequence[Any]) -> RecordSnapshot:
    """Build a RecordSnapshot from the getBusinessData output tuple."""
    (
        name,
        public_value1,
        public_value2,
        _description,
        creator,
        timestamp,
        is_verified,
        decrypted_value,
    ) = result
    return RecordSnapshot(
        name=name,
        creator=creator,
        timestamp=int(timestamp),
        public_attr1=int(public_value1 or 0),
        public_attr2=int(public_value2 or 0),
        verified=bool(is_verified),
        clear_value=int(decrypted_value or 0),
    )


def _fn(name: str, inputs: list[tuple[str, str]], outputs: list[tuple[str, str]], view: bool) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
        "stateMutability": "view" if view else "nonpayable",
    }


ENERGY_CONTRACT_ABI: list[dict[str, Any]] = [
    _fn("getAllBusinessIds", [], [("", "string[]")], view=True),
    _fn(
        "getBusinessData",
        [("businessId", "string")],
        [
            ("name", "string"),
            ("publicValue1", "uint256"),
            ("publicValue2", "uint256"),
            ("description", "string"),
            ("creator", "address"),
            ("timestamp", "uint256"),
            ("isVerified", "bool"),
            ("decryptedValue", "uint32"),
        ],
        view=True,
    ),
    _fn("getEncryptedValue", [("businessId", "string")], [("", "bytes32")], view=True),
    _fn(
        "createBusinessData",
        [
            ("businessId", "string"),
            ("name", "string"),
            ("encryptedValue", "bytes32"),
            ("inputProof", "bytes"),
            ("publicValue1", "uint256"),
            ("publicValue2", "uint256"),
            ("description", "string"),
        ],
        [],
        view=False,
    ),
    _fn(
        "verifyDecryption",
        [
            ("businessId", "string"),
            ("abiEncodedClearValue", "bytes"),
            ("decryptionProof", "bytes"),
        ],
        [],
        view=False,
    ),
]


class Web3PendingTransaction:
    """PendingTransaction backed by an EVM transaction hash."""

    def __init__(self, w3: Any, tx_hash: bytes) -> None:
        self._w3 = w3
        self._tx_hash = tx_hash

    @property
    def tx_hash(self) -> str:
        return self._tx_hash.hex()

    async def await_confirmation(self, timeout: float) -> TransactionReceipt:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                self._tx_hash, timeout=timeout,
            )
        except TimeExhausted as exc:
            raise ConfirmationTimeoutError(
                f"tx {self.tx_hash} not mined within {timeout}s"
            ) from exc
        except _RPC_ERRORS as exc:
            raise LedgerError(str(exc)) from exc

        if receipt["status"] == 0:
            raise LedgerError(f"tx {self.tx_hash} reverted")
        return TransactionReceipt(
            tx_hash=self.tx_hash,
            block_number=receipt["blockNumber"],
        )


class Web3LedgerGateway:
    """LedgerGateway over JSON-RPC using web3 and a local signing key.

    Usage:
        ledger = Web3LedgerGateway(rpc_url, private_key, contract_address)
        ids = await ledger.list_record_ids()
        tx = await ledger.create_record(...)
        receipt = await tx.await_confirmation(timeout=120)
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        contract_address: str,
        chain_id: int = 11155111,  # Sepolia
    ) -> None:
        from web3 import AsyncHTTPProvider, AsyncWeb3
        from eth_account import Account

        self._w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._account = Account.from_key(private_key)
        self._chain_id = chain_id
        self._contract = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=ENERGY_CONTRACT_ABI,
        )
        # Nonce allocation and broadcast must not interleave.
        self._send_lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def contract_address(self) -> str:
        return self._contract.address

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_record_ids(self) -> list[str]:
        try:
            ids = await self._contract.functions.getAllBusinessIds().call()
        except _RPC_ERRORS as exc:
            raise LedgerError(f"getAllBusinessIds failed: {exc}") from exc
        return list(ids)

    async def get_record(self, record_id: str) -> Optional[RecordSnapshot]:
        try:
            result = await self._contract.functions.getBusinessData(record_id).call()
        except ContractLogicError:
            # The contract reverts on unknown ids.
            return None
        except _RPC_ERRORS as exc:
            raise LedgerError(f"getBusinessData({record_id}) failed: {exc}") from exc
        return snapshot_from_call(result)

    async def get_encrypted_handle(self, record_id: str) -> CiphertextHandle:
        try:
            return await self._contract.functions.getEncryptedValue(record_id).call()
        except _RPC_ERRORS as exc:
            raise LedgerError(f"getEncryptedValue({record_id}) failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_record(
        self,
        record_id: str,
        name: str,
        ciphertext: CiphertextHandle,
        proof: bytes,
        public_attr1: int,
        public_attr2: int,
        label: str,
    ) -> PendingTransaction:
        call = self._contract.functions.createBusinessData(
            record_id, name, ciphertext, proof, public_attr1, public_attr2, label,
        )
        return await self._send(call)

    async def submit_verified_decryption(
        self,
        record_id: str,
        encoded_clear_values: bytes,
        decryption_proof: bytes,
    ) -> PendingTransaction:
        call = self._contract.functions.verifyDecryption(
            record_id, encoded_clear_values, decryption_proof,
        )
        return await self._send(call)

    async def _send(self, call: Any) -> Web3PendingTransaction:
        """Build, sign and broadcast a contract call.

        Gas estimation runs the call against current state, so contract
        reverts surface here rather than after mining.
        """
        async with self._send_lock:
            try:
                nonce = await self._w3.eth.get_transaction_count(
                    self._account.address, "pending",
                )
                tx = await call.build_transaction({
                    "from": self._account.address,
                    "nonce": nonce,
                    "chainId": self._chain_id,
                })
                signed = self._account.sign_transaction(tx)
                tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            except ContractLogicError as exc:
                raise classify_revert(exc) from exc
            except _RPC_ERRORS as exc:
                raise LedgerError(str(exc)) from exc

        logger.info(f"Sent tx {tx_hash.hex()} from {self._account.address}")
        return Web3PendingTransaction(self._w3, tx_hash)


async def confirm(tx: PendingTransaction, timeout: float) -> TransactionReceipt:
    """Await tx with a hard bound, whatever the gateway does with timeout."""
    try:
        return await asyncio.wait_for(tx.await_confirmation(timeout), timeout)
    except asyncio.TimeoutError as exc:
        raise ConfirmationTimeoutError(
            f"tx {tx.tx_hash} not confirmed within {timeout}s"
        ) from exc
