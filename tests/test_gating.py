"""Tests for the stage gating table."""

import itertools

import pytest

from ticket_pipeline.core.gating import STAGE_GATES, is_complete, is_enabled, require_enabled
from ticket_pipeline.core.state import PipelineState
from ticket_pipeline.enums import AuthorType, Stage
from ticket_pipeline.errors import StageLockedError
from ticket_pipeline.schemas import AISessionState, ResolutionState


@pytest.fixture
def state(make_ticket) -> PipelineState:
    return PipelineState(ticket_id="10042", ticket=make_ticket())


def _with_analysis(state, make_annotation, fresh: bool = True) -> PipelineState:
    state.annotations = [make_annotation("a1", 100)]
    if not fresh:
        state.annotations.append(make_annotation("h1", 200, AuthorType.HUMAN))
    state.reclassify()
    return state


class TestStageGates:
    def test_every_stage_has_a_gate(self):
        assert set(STAGE_GATES) == set(Stage)

    def test_fresh_ticket(self, state):
        assert is_enabled(Stage.ANALYSIS, state)
        assert is_enabled(Stage.INTEGRATION_TEST, state)
        for stage in (
            Stage.BRANCH,
            Stage.WORKTREE,
            Stage.AI_SESSION,
            Stage.VERIFICATION,
            Stage.RESOLUTION,
        ):
            assert not is_enabled(stage, state)

    def test_integration_test_needs_loaded_ticket(self):
        assert not is_enabled(Stage.INTEGRATION_TEST, PipelineState(ticket_id="10042"))

    def test_branch_needs_any_analysis(self, state, make_annotation):
        _with_analysis(state, make_annotation, fresh=False)
        assert is_enabled(Stage.BRANCH, state)
        assert not is_complete(Stage.ANALYSIS, state)

    @pytest.mark.parametrize(
        "annotated, fresh, worktree, session",
        list(itertools.product([False, True], [False, True], [False, True], [None, "running"])),
    )
    def test_worktree_locked_without_branch_name(
        self, state, make_annotation, make_workflow, annotated, fresh, worktree, session
    ):
        if annotated:
            _with_analysis(state, make_annotation, fresh=fresh)
        state.workflow = make_workflow(branch=None, worktree=worktree)
        state.ai_session = AISessionState(status=session) if session else None

        assert not is_enabled(Stage.WORKTREE, state)
        with pytest.raises(StageLockedError) as exc:
            require_enabled(Stage.WORKTREE, state)
        assert exc.value.code == "stage_locked"

    def test_worktree_unlocked_with_branch_name(self, state, make_workflow):
        state.workflow = make_workflow(branch="feature/BILL-42")
        assert is_enabled(Stage.WORKTREE, state)

    def test_ai_session_needs_worktree_and_analysis(self, state, make_annotation, make_workflow):
        state.workflow = make_workflow(branch="feature/BILL-42", worktree=True)
        assert not is_enabled(Stage.AI_SESSION, state)
        _with_analysis(state, make_annotation, fresh=False)
        assert is_enabled(Stage.AI_SESSION, state)

    def test_verification_needs_complete_analysis(self, state, make_annotation, make_workflow):
        state.workflow = make_workflow(branch="feature/BILL-42", worktree=True)
        _with_analysis(state, make_annotation, fresh=False)
        assert not is_enabled(Stage.VERIFICATION, state)

        _with_analysis(state, make_annotation, fresh=True)
        assert is_enabled(Stage.VERIFICATION, state)

    def test_resolution_needs_verification(self, state, make_verification):
        assert not is_enabled(Stage.RESOLUTION, state)
        state.verification = make_verification()
        assert is_enabled(Stage.RESOLUTION, state)
        assert is_complete(Stage.VERIFICATION, state)

    @pytest.mark.parametrize(
        "status, complete",
        [
            ("not-started", False),
            ("context_sent", True),
            ("running", True),
            ("stopped", True),
            ("crashed", False),
        ],
    )
    def test_ai_session_completion(self, state, status, complete):
        state.ai_session = AISessionState(status=status)
        assert is_complete(Stage.AI_SESSION, state) is complete

    def test_resolution_completion(self, state):
        state.resolution = ResolutionState(status="in_progress")
        assert not is_complete(Stage.RESOLUTION, state)
        state.resolution = ResolutionState(status="completed")
        assert is_complete(Stage.RESOLUTION, state)
