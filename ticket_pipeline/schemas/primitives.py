"""
Common primitives shared by every wire schema.

The backend speaks camelCase JSON; models use snake_case attributes and
accept either spelling on input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from the backend are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


Timestamp = Annotated[datetime, AfterValidator(_as_utc)]


class WireModel(BaseModel):
    """Base for records exchanged with the pipeline backend."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> Dict[str, Any]:
        """Serialize for a request body (camelCase, unset optionals dropped)."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ResumeCommands(WireModel):
    """Shell commands a developer runs to pick up an AI session locally."""

    cd: str = Field(..., description="Change into the worktree")
    happy: str = Field(..., description="Resume the session")


class SessionMetadata(WireModel):
    """Metadata attached to AI-session and resolution-session records."""

    mode: Optional[str] = None
    status: Optional[str] = None
    started_at: Optional[Timestamp] = None
    stopped_at: Optional[Timestamp] = None
    completed_at: Optional[Timestamp] = None
    additional_instructions: Optional[str] = None
    instructions: Optional[str] = None
    initial_response: Optional[str] = None
    verification_id: Optional[str] = None
    resolution_notes: Optional[str] = None
