"""
Canonical enums for the ticket pipeline.

Wire values from the backend are mapped into these closed sets by the
schemas and the stage status resolvers.
"""

from enum import Enum


class Stage(str, Enum):
    """Pipeline stages, in gate order."""

    ANALYSIS = "analysis"
    BRANCH = "branch"
    WORKTREE = "worktree"
    AI_SESSION = "ai_session"
    VERIFICATION = "verification"
    RESOLUTION = "resolution"
    INTEGRATION_TEST = "integration_test"


class AuthorType(str, Enum):
    """Who wrote an annotation. Wire values are ``user`` and ``ai``."""

    HUMAN = "user"
    AUTOMATED = "ai"


class AnalysisStatus(str, Enum):
    """Freshness of the latest automated analysis."""

    NONE = "none"
    PENDING = "pending"
    COMPLETE = "complete"


class BranchStatus(str, Enum):
    NOT_GENERATED = "not_generated"
    GENERATED = "generated"


class WorktreeStatus(str, Enum):
    NOT_CREATED = "not_created"
    CREATED = "created"


class AISessionStatus(str, Enum):
    """Lifecycle of the AI coding session."""

    NOT_STARTED = "not_started"
    CONTEXT_SENT = "context_sent"
    RUNNING = "running"
    STOPPED = "stopped"
    CRASHED = "crashed"


class ResolutionStatus(str, Enum):
    """Lifecycle of the verification-resolution session."""

    NOT_STARTED = "not_started"
    CONTEXT_SENT = "context_sent"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class JobStatus(str, Enum):
    """Display state of a background job stage (verification, integration test)."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"


class IntegrationOutcome(str, Enum):
    """Summary of an integration test result."""

    NONE = "none"
    PASSED = "passed"
    PARTIAL = "partial"
    FAILED = "failed"


class TriggerStatus(str, Enum):
    """Acknowledgement returned by background-job trigger endpoints."""

    PROCESSING = "processing"
    ALREADY_RUNNING = "already_running"


class SessionMode(str, Enum):
    """How much the AI session is asked to do."""

    CONTEXT = "context"
    IMPLEMENTATION = "implementation"


class EnvHandling(str, Enum):
    """How ``.env`` files are carried into a new worktree."""

    LINK = "link"
    COPY = "copy"
    SKIP = "skip"


class NotificationLevel(str, Enum):
    """Severity of a user-visible notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
