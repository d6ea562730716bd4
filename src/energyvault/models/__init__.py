"""Core data models for energyvault."""

from energyvault.models.record import (
    ActivityEntry,
    ActivityKind,
    CiphertextHandle,
    ComparisonResult,
    PendingReveal,
    PublicAttributes,
    Record,
    RecordSnapshot,
    StoreStats,
)

__all__ = [
    "ActivityEntry",
    "ActivityKind",
    "CiphertextHandle",
    "ComparisonResult",
    "PendingReveal",
    "PublicAttributes",
    "Record",
    "RecordSnapshot",
    "StoreStats",
]
