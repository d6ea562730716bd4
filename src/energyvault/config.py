"""Configuration — connection settings and analytics constants.

Settings come from the process environment, optionally seeded from a
.env file:

    ENERGYVAULT_RPC_URL            (falls back to SEPOLIA_RPC_URL)
    ENERGYVAULT_PRIVATE_KEY        (falls back to PRIVATE_KEY)
    ENERGYVAULT_CONTRACT_ADDRESS
    ENERGYVAULT_CHAIN_ID           default 11155111 (Sepolia)
    ENERGYVAULT_CONFIRMATION_TIMEOUT   seconds, default 120
    ENERGYVAULT_COMMUNITY_AVERAGE      default 750
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from energyvault.analytics import DEFAULT_COMMUNITY_AVERAGE

SEPOLIA_CHAIN_ID = 11155111


@dataclass(frozen=True)
class VaultConfig:
    rpc_url: str = ""
    private_key: str = ""
    contract_address: str = ""
    chain_id: int = SEPOLIA_CHAIN_ID
    confirmation_timeout_seconds: float = 120.0
    community_average: int = DEFAULT_COMMUNITY_AVERAGE

    def __post_init__(self) -> None:
        if self.confirmation_timeout_seconds <= 0:
            raise ValueError("confirmation_timeout_seconds must be positive")
        if self.community_average <= 0:
            raise ValueError("community_average must be positive")

    @property
    def has_ledger_credentials(self) -> bool:
        return bool(self.rpc_url and self.private_key and self.contract_address)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VaultConfig:
        """Build a config from a plain mapping; unknown keys are rejected."""
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> VaultConfig:
        """Read settings from the environment after loading env_file.

        Variables already set in the environment win over the file.
        """
        if env_file is not None:
            load_dotenv(env_file)
        env = os.environ if environ is None else environ

        return cls(
            rpc_url=env.get("ENERGYVAULT_RPC_URL") or env.get("SEPOLIA_RPC_URL", ""),
            private_key=env.get("ENERGYVAULT_PRIVATE_KEY") or env.get("PRIVATE_KEY", ""),
            contract_address=env.get("ENERGYVAULT_CONTRACT_ADDRESS", ""),
            chain_id=_int(env, "ENERGYVAULT_CHAIN_ID", SEPOLIA_CHAIN_ID),
            confirmation_timeout_seconds=float(
                _number(env, "ENERGYVAULT_CONFIRMATION_TIMEOUT", 120.0)
            ),
            community_average=_int(
                env, "ENERGYVAULT_COMMUNITY_AVERAGE", DEFAULT_COMMUNITY_AVERAGE,
            ),
        )


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _number(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None
