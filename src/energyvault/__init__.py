"""energyvault — confidential energy-record lifecycle orchestrator."""

__version__ = "0.1.0"
