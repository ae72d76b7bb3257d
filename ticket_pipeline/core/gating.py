"""
Stage gating table.

This is the only place that decides which stages are available. Each entry
pairs an "enabled" predicate with a "complete" predicate over the shared
PipelineState, plus the reason shown while the stage is locked.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

from ..enums import AISessionStatus, AnalysisStatus, ResolutionStatus, Stage
from ..errors import StageLockedError
from .resolvers import resolve_ai_session, resolve_resolution
from .state import PipelineState

StatePredicate = Callable[[PipelineState], bool]

_SESSION_STARTED = {
    AISessionStatus.CONTEXT_SENT,
    AISessionStatus.RUNNING,
    AISessionStatus.STOPPED,
}


@dataclass(frozen=True)
class StageGate:
    enabled: StatePredicate
    complete: StatePredicate
    locked_reason: str


STAGE_GATES: Dict[Stage, StageGate] = {
    Stage.ANALYSIS: StageGate(
        enabled=lambda s: True,
        complete=lambda s: s.analysis_status == AnalysisStatus.COMPLETE,
        locked_reason="",
    ),
    Stage.BRANCH: StageGate(
        enabled=lambda s: s.analysis_status != AnalysisStatus.NONE,
        complete=lambda s: bool(s.branch_name),
        locked_reason="run an analysis first",
    ),
    Stage.WORKTREE: StageGate(
        enabled=lambda s: bool(s.branch_name),
        complete=lambda s: s.has_worktree,
        locked_reason="generate a branch name first",
    ),
    Stage.AI_SESSION: StageGate(
        enabled=lambda s: s.has_worktree and s.analysis_status != AnalysisStatus.NONE,
        complete=lambda s: resolve_ai_session(s.ai_session) in _SESSION_STARTED,
        locked_reason="needs a worktree and an analysis",
    ),
    Stage.VERIFICATION: StageGate(
        enabled=lambda s: (
            s.has_worktree
            and bool(s.branch_name)
            and s.analysis_status == AnalysisStatus.COMPLETE
        ),
        complete=lambda s: s.verification is not None,
        locked_reason="needs a worktree, a branch and an up-to-date analysis",
    ),
    Stage.RESOLUTION: StageGate(
        enabled=lambda s: s.verification is not None,
        complete=lambda s: resolve_resolution(s.resolution) == ResolutionStatus.COMPLETED,
        locked_reason="run verification first",
    ),
    Stage.INTEGRATION_TEST: StageGate(
        enabled=lambda s: s.ticket_loaded,
        complete=lambda s: s.integration_test is not None,
        locked_reason="ticket is not loaded",
    ),
}


def is_enabled(stage: Stage, state: PipelineState) -> bool:
    return STAGE_GATES[stage].enabled(state)


def is_complete(stage: Stage, state: PipelineState) -> bool:
    return STAGE_GATES[stage].complete(state)


def require_enabled(stage: Stage, state: PipelineState) -> None:
    """Raise StageLockedError unless ``stage`` is available."""
    gate = STAGE_GATES[stage]
    if not gate.enabled(state):
        raise StageLockedError(stage.value, gate.locked_reason)
