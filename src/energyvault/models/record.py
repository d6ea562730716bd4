"""Record models — ledger-backed energy records and their derived views.

A record holds one encrypted energy-usage measurement. Its public
attributes (the self-declared efficiency rating) are plaintext and
visible to every party; the usage itself is only reachable through the
ciphertext handle until a verified clear value is committed on-chain.

Invariants enforced by these models:
- clear_value is populated if and only if verified is true.
- Activity entries are immutable once created.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union
from uuid import uuid4

CiphertextHandle = Union[bytes, str]


@dataclass(frozen=True)
class PublicAttributes:
    """Plaintext numeric fields stored alongside the ciphertext."""
    efficiency: int = 0
    secondary: int = 0


@dataclass(frozen=True)
class RecordSnapshot:
    """Raw view of a record as returned by the ledger's getRecord call.

    The contract reports a zero clear value for records that have not
    been verified yet; use to_record() to obtain a normalized Record.
    """
    name: str
    creator: str
    timestamp: int
    public_attr1: int
    public_attr2: int
    verified: bool
    clear_value: int = 0

    def to_record(
        self,
        record_id: str,
        ciphertext_handle: Optional[CiphertextHandle] = None,
    ) -> Record:
        return Record(
            record_id=record_id,
            name=self.name,
            creator=self.creator,
            created_at=self.timestamp,
            public_attributes=PublicAttributes(
                efficiency=self.public_attr1,
                secondary=self.public_attr2,
            ),
            ciphertext_handle=ciphertext_handle,
            verified=self.verified,
            clear_value=self.clear_value if self.verified else None,
        )


@dataclass(frozen=True)
class Record:
    """A confidential energy record as cached by the RecordStore."""
    record_id: str
    name: str
    creator: str
    created_at: int
    public_attributes: PublicAttributes
    ciphertext_handle: Optional[CiphertextHandle] = None
    verified: bool = False
    clear_value: Optional[int] = None

    def __post_init__(self) -> None:
        if self.verified and self.clear_value is None:
            raise ValueError(
                f"Record {self.record_id} is verified but has no clear value"
            )
        if not self.verified and self.clear_value is not None:
            raise ValueError(
                f"Record {self.record_id} has a clear value but is not verified"
            )

    @property
    def efficiency(self) -> int:
        return self.public_attributes.efficiency


@dataclass
class PendingReveal:
    """In-flight reveal for one record id. Never persisted.

    Holds the locally decrypted value between proof generation and
    on-chain confirmation; discarded when the reveal finishes.
    """
    record_id: str
    local_value: Optional[int] = None
    tx_hash: Optional[str] = None


class ActivityKind(str, enum.Enum):
    """Kind of completed operation recorded in the activity history."""
    CREATE = "create"
    REVEAL = "reveal"


@dataclass(frozen=True)
class ActivityEntry:
    """A single immutable entry in the local activity history."""
    entry_id: str
    kind: ActivityKind
    record_name: str
    timestamp: datetime
    usage_value: int

    @staticmethod
    def create(
        kind: ActivityKind,
        record_name: str,
        usage_value: int,
        timestamp: Optional[datetime] = None,
        entry_id: Optional[str] = None,
    ) -> ActivityEntry:
        return ActivityEntry(
            entry_id=entry_id or f"act_{uuid4().hex[:12]}",
            kind=kind,
            record_name=record_name,
            timestamp=timestamp or datetime.now(timezone.utc),
            usage_value=usage_value,
        )


@dataclass(frozen=True)
class ComparisonResult:
    """Comparison of one usage value against the community baseline.

    Derived on every request and never cached: the usage input changes
    when a record becomes verified.
    """
    community_average: int
    efficiency_score: int
    savings_potential: int
    comparison_ratio: int
    recommendation: str


@dataclass(frozen=True)
class StoreStats:
    """Dashboard totals over the current record snapshot."""
    total: int
    verified: int
    average_efficiency: float
