"""Analytics — compare a usage value against the community baseline.

Pure functions, no I/O and no state. The community average is a fixed
configuration value rather than an aggregate over other parties' data:
those values are still encrypted, and aggregating them is out of scope.

Rounding is half-up on every derived integer, so a savings potential of
22.5 reports as 23.
"""

from __future__ import annotations

import math
from typing import Optional

from energyvault.models.record import ComparisonResult, Record

DEFAULT_COMMUNITY_AVERAGE = 750

# Stand-ins used when a record has nothing usable to analyze yet.
PLACEHOLDER_USAGE = 500
DEFAULT_EFFICIENCY = 5

AUDIT_THRESHOLD = 1.2
HIGH_SAVINGS_THRESHOLD = 1.5
SAVINGS_RATE = 0.15
LOW_EFFICIENCY = 5

RECOMMEND_EXCELLENT = "Excellent efficiency"
RECOMMEND_AUDIT = "Consider energy audit"
RECOMMEND_HIGH_SAVINGS = "High savings potential"
RECOMMEND_UPGRADE = "Upgrade to efficient appliances"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(low: int, high: int, value: int) -> int:
    return max(low, min(high, value))


def analyze(
    usage: float,
    efficiency: float,
    community_average: int = DEFAULT_COMMUNITY_AVERAGE,
) -> ComparisonResult:
    """Compute comparison metrics for one usage value.

    The recommendation ladder is evaluated in order and later matches
    override earlier ones, so a low efficiency rating always wins. Usage
    thresholds are inclusive: exactly 1.2x the average already calls for
    an audit.
    """
    if community_average <= 0:
        raise ValueError("community_average must be positive")

    efficiency_score = _clamp(
        0, 100, _round_half_up(efficiency * 10 + (1000 - usage) / 20),
    )
    savings_potential = max(
        0, _round_half_up((usage - community_average) * SAVINGS_RATE),
    )
    comparison_ratio = _round_half_up(usage / community_average * 100)

    recommendation = RECOMMEND_EXCELLENT
    if usage >= community_average * AUDIT_THRESHOLD:
        recommendation = RECOMMEND_AUDIT
    if usage >= community_average * HIGH_SAVINGS_THRESHOLD:
        recommendation = RECOMMEND_HIGH_SAVINGS
    if efficiency < LOW_EFFICIENCY:
        recommendation = RECOMMEND_UPGRADE

    return ComparisonResult(
        community_average=community_average,
        efficiency_score=efficiency_score,
        savings_potential=savings_potential,
        comparison_ratio=comparison_ratio,
        recommendation=recommendation,
    )


def usage_for_analysis(record: Record, local_value: Optional[int] = None) -> int:
    """Pick the usage value to analyze for a record.

    The on-chain clear value wins once the record is verified; otherwise
    a locally revealed value, otherwise a placeholder.
    """
    if record.verified:
        return record.clear_value or 0
    if local_value is not None:
        return local_value
    return PLACEHOLDER_USAGE


def analyze_record(
    record: Record,
    local_value: Optional[int] = None,
    community_average: int = DEFAULT_COMMUNITY_AVERAGE,
) -> ComparisonResult:
    efficiency = record.efficiency or DEFAULT_EFFICIENCY
    return analyze(
        usage_for_analysis(record, local_value),
        efficiency,
        community_average=community_average,
    )
