"""External collaborator gateways — ledger contract and encryption engine."""

from energyvault.gateways.crypto import (
    CryptoGateway,
    DecryptionOutcome,
    DecryptionProof,
    EncryptedInput,
    FheEngine,
)
from energyvault.gateways.ledger import (
    LedgerGateway,
    PendingTransaction,
    TransactionReceipt,
    Web3LedgerGateway,
)

__all__ = [
    "CryptoGateway",
    "DecryptionOutcome",
    "DecryptionProof",
    "EncryptedInput",
    "FheEngine",
    "LedgerGateway",
    "PendingTransaction",
    "TransactionReceipt",
    "Web3LedgerGateway",
]
