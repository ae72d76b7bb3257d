"""Wire schemas for the pipeline backend."""

from .primitives import ResumeCommands, SessionMetadata, Timestamp, WireModel, utc_now
from .project import Project
from .results import (
    IntegrationTestResult,
    JobTriggerRequest,
    ReviewNotesRequest,
    TriggerAck,
    VerificationResult,
)
from .sessions import (
    AISessionState,
    ResolutionCompleteRequest,
    ResolutionStartRequest,
    ResolutionStartResponse,
    ResolutionState,
    SessionStartResponse,
)
from .ticket import (
    Annotation,
    AnnotationCreate,
    AnnotationUpdate,
    ExternalComment,
    JiraUser,
    PullRequestRef,
    Ticket,
)
from .workflow import (
    AnalysisAck,
    AnalysisRequest,
    BranchNameMetadata,
    BranchNameRequest,
    SessionStartRequest,
    WorkflowRecord,
    WorktreeDeleteRequest,
    WorktreeMetadata,
    WorktreeRequest,
)

__all__ = [
    # Primitives
    "ResumeCommands",
    "SessionMetadata",
    "Timestamp",
    "WireModel",
    "utc_now",
    # Project
    "Project",
    # Ticket
    "Annotation",
    "AnnotationCreate",
    "AnnotationUpdate",
    "ExternalComment",
    "JiraUser",
    "PullRequestRef",
    "Ticket",
    # Workflow
    "AnalysisAck",
    "AnalysisRequest",
    "BranchNameMetadata",
    "BranchNameRequest",
    "SessionStartRequest",
    "WorkflowRecord",
    "WorktreeDeleteRequest",
    "WorktreeMetadata",
    "WorktreeRequest",
    # Results
    "IntegrationTestResult",
    "JobTriggerRequest",
    "ReviewNotesRequest",
    "TriggerAck",
    "VerificationResult",
    # Sessions
    "AISessionState",
    "ResolutionCompleteRequest",
    "ResolutionStartRequest",
    "ResolutionStartResponse",
    "ResolutionState",
    "SessionStartResponse",
]
