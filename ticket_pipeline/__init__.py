"""
Ticket Pipeline Control

Drives a single ticket through analysis, branch and worktree setup, an AI
coding session, verification, resolution and integration testing.
"""

import importlib.metadata

__version__ = importlib.metadata.version("ticket-pipeline")

from .core.orchestrator import PipelineOrchestrator
from .core.staleness import StalenessReport, detect_staleness
from .enums import AnalysisStatus, Stage, TriggerStatus
from .errors import (
    ActionRejectedError,
    InvalidActionInput,
    NotFoundError,
    PipelineError,
    StageBusyError,
    StageLockedError,
    TransientFetchError,
)
from .integrations.pipeline_api import PipelineApiClient

__all__ = [
    "ActionRejectedError",
    "AnalysisStatus",
    "InvalidActionInput",
    "NotFoundError",
    "PipelineApiClient",
    "PipelineError",
    "PipelineOrchestrator",
    "Stage",
    "StageBusyError",
    "StageLockedError",
    "StalenessReport",
    "TransientFetchError",
    "TriggerStatus",
    "detect_staleness",
]
