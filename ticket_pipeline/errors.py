"""
Error taxonomy for the ticket pipeline.

Every error carries a stable ``code`` for programmatic handling and a
human-readable ``message``. ``NotFoundError`` is never shown to the user:
stages translate it into their initial state. "Already running" is not an
error at all, see ``TriggerStatus.ALREADY_RUNNING``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """
    Base class for all pipeline errors.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    code = "pipeline_error"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
        }


class NotFoundError(PipelineError):
    """The backend has no record yet (HTTP 404)."""

    code = "not_found"


class TransientFetchError(PipelineError):
    """A read failed for a reason that may go away on the next attempt."""

    code = "transient_fetch_failure"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ActionRejectedError(PipelineError):
    """The backend refused an action. ``message`` is the server's own text."""

    code = "action_rejected"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class StageLockedError(PipelineError):
    """An action was attempted on a stage whose predecessors are not complete."""

    code = "stage_locked"

    def __init__(self, stage: str, reason: str):
        self.stage = stage
        self.reason = reason
        super().__init__(f"{stage} is not available yet: {reason}")


class StageBusyError(PipelineError):
    """A trigger was attempted while the same stage is still polling."""

    code = "stage_busy"

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"{stage} is already waiting for a background job")


class InvalidActionInput(PipelineError):
    """Action input failed local validation before any request was sent."""

    code = "invalid_input"
