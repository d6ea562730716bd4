"""Record lifecycle workflows — encrypted submission and verifiable reveal."""

from energyvault.workflows.registry import InFlightRegistry
from energyvault.workflows.reveal import RevealWorkflow
from energyvault.workflows.submission import SubmissionWorkflow

__all__ = ["InFlightRegistry", "RevealWorkflow", "SubmissionWorkflow"]
