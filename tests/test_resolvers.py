"""Tests for the stage status resolvers."""

import pytest

from ticket_pipeline.core import resolvers
from ticket_pipeline.enums import (
    AISessionStatus,
    BranchStatus,
    IntegrationOutcome,
    JobStatus,
    ResolutionStatus,
    WorktreeStatus,
)
from ticket_pipeline.schemas import AISessionState, IntegrationTestResult, ResolutionState


def _test_result(**overrides) -> IntegrationTestResult:
    data = dict(
        id="it-1",
        endpoints_tested=4,
        endpoints_passed=4,
        endpoints_failed=0,
        cleanup_status="success",
    )
    data.update(overrides)
    return IntegrationTestResult(**data)


class TestWorkflowResolvers:
    def test_missing_workflow_is_initial_state(self):
        assert resolvers.resolve_branch(None) == BranchStatus.NOT_GENERATED
        assert resolvers.resolve_worktree(None) == WorktreeStatus.NOT_CREATED

    def test_branch_and_worktree(self, make_workflow):
        workflow = make_workflow(branch="feature/x", worktree=True)
        assert resolvers.resolve_branch(workflow) == BranchStatus.GENERATED
        assert resolvers.resolve_worktree(workflow) == WorktreeStatus.CREATED

    def test_empty_branch_name_is_not_generated(self, make_workflow):
        assert resolvers.resolve_branch(make_workflow(branch="")) == BranchStatus.NOT_GENERATED


class TestSessionResolvers:
    @pytest.mark.parametrize(
        "wire, expected",
        [
            ("not-started", AISessionStatus.NOT_STARTED),
            ("not_started", AISessionStatus.NOT_STARTED),
            ("context_sent", AISessionStatus.CONTEXT_SENT),
            ("running", AISessionStatus.RUNNING),
            ("stopped", AISessionStatus.STOPPED),
            ("crashed", AISessionStatus.CRASHED),
            ("something-new", AISessionStatus.NOT_STARTED),
        ],
    )
    def test_ai_session_statuses(self, wire, expected):
        assert resolvers.resolve_ai_session(AISessionState(status=wire)) == expected

    def test_ai_session_absent(self):
        assert resolvers.resolve_ai_session(None) == AISessionStatus.NOT_STARTED

    @pytest.mark.parametrize(
        "wire, expected",
        [
            ("context_sent", ResolutionStatus.CONTEXT_SENT),
            ("in_progress", ResolutionStatus.IN_PROGRESS),
            ("in-progress", ResolutionStatus.IN_PROGRESS),
            ("completed", ResolutionStatus.COMPLETED),
        ],
    )
    def test_resolution_statuses(self, wire, expected):
        assert resolvers.resolve_resolution(ResolutionState(status=wire)) == expected
        assert resolvers.resolve_resolution(None) == ResolutionStatus.NOT_STARTED


class TestJobResolvers:
    def test_verification(self, make_verification):
        assert resolvers.resolve_verification(None) == JobStatus.NOT_STARTED
        assert resolvers.resolve_verification(make_verification()) == JobStatus.COMPLETED
        assert resolvers.resolve_verification(make_verification(), polling=True) == JobStatus.RUNNING

    def test_integration_test(self):
        assert resolvers.resolve_integration_test(None) == JobStatus.NOT_STARTED
        assert resolvers.resolve_integration_test(None, polling=True) == JobStatus.RUNNING
        assert resolvers.resolve_integration_test(_test_result()) == JobStatus.COMPLETED

    @pytest.mark.parametrize(
        "overrides, expected",
        [
            ({}, IntegrationOutcome.PASSED),
            ({"cleanup_status": "failed"}, IntegrationOutcome.PARTIAL),
            ({"endpoints_passed": 3, "endpoints_failed": 1}, IntegrationOutcome.PARTIAL),
            ({"endpoints_passed": 0, "endpoints_failed": 4}, IntegrationOutcome.FAILED),
            (
                {"endpoints_passed": 0, "endpoints_failed": 0, "cleanup_status": None},
                IntegrationOutcome.FAILED,
            ),
        ],
    )
    def test_integration_outcome(self, overrides, expected):
        assert resolvers.resolve_integration_outcome(_test_result(**overrides)) == expected

    def test_integration_outcome_absent(self):
        assert resolvers.resolve_integration_outcome(None) == IntegrationOutcome.NONE


class TestIdempotence:
    """Resolvers keep no state between calls."""

    def test_same_record_same_status(self, make_workflow, make_verification, make_annotation):
        workflow = make_workflow(branch="feature/x", worktree=True)
        session = AISessionState(status="running")
        resolution = ResolutionState(status="in_progress")
        verification = make_verification()
        result = _test_result(endpoints_failed=2, endpoints_passed=2)
        annotations = [make_annotation("a1", 100)]

        calls = [
            lambda: resolvers.resolve_analysis(annotations),
            lambda: resolvers.resolve_branch(workflow),
            lambda: resolvers.resolve_worktree(workflow),
            lambda: resolvers.resolve_ai_session(session),
            lambda: resolvers.resolve_verification(verification),
            lambda: resolvers.resolve_resolution(resolution),
            lambda: resolvers.resolve_integration_test(result),
            lambda: resolvers.resolve_integration_outcome(result),
        ]
        for call in calls:
            assert call() == call()
