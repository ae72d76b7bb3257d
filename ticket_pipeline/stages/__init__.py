"""Stage controllers, one per pipeline stage."""

from .ai_session import AISessionStage
from .analysis import AnalysisStage
from .base import StageContext, StageController
from .branch import BranchStage
from .integration_test import IntegrationTestStage
from .resolution import ResolutionStage
from .verification import VerificationStage
from .worktree import WorktreeStage

__all__ = [
    "AISessionStage",
    "AnalysisStage",
    "BranchStage",
    "IntegrationTestStage",
    "ResolutionStage",
    "StageContext",
    "StageController",
    "VerificationStage",
    "WorktreeStage",
]
