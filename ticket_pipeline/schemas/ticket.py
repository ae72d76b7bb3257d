"""
Ticket, external comment and annotation schemas.

Tickets and their comments are owned by the external issue tracker and are
read-only here. Annotations ("hidden comments") are internal notes that are
never synced back to the tracker.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import AliasChoices, Field

from ..enums import AuthorType
from .primitives import Timestamp, WireModel


class JiraUser(WireModel):
    """A person as reported by the issue tracker."""

    id: Optional[str] = None
    account_id: Optional[str] = None
    display_name: str = ""
    email_address: Optional[str] = None


class PullRequestRef(WireModel):
    """A pull request linked to a ticket."""

    id: str
    number: Optional[int] = None
    title: str = ""
    status: Optional[str] = None
    source_branch: Optional[str] = None
    target_branch: Optional[str] = None
    url: Optional[str] = None


class ExternalComment(WireModel):
    """A public comment on the ticket, authored in the issue tracker."""

    id: str
    ticket_id: Optional[str] = None
    body: str = ""
    author: Optional[Any] = None
    created_at: Timestamp = Field(
        ...,
        validation_alias=AliasChoices("created", "createdAt", "created_at"),
        description="Creation time in the issue tracker",
    )


class Ticket(WireModel):
    """A unit of work tracked in the external issue tracker."""

    id: str
    key: str
    summary: str = ""
    description: Optional[str] = None
    issue_type: Optional[str] = None
    status: str = ""
    priority: Optional[str] = None
    resolution: Optional[str] = None
    assignee: Optional[JiraUser] = None
    reporter: Optional[JiraUser] = None
    labels: List[str] = Field(default_factory=list)
    components: List[str] = Field(default_factory=list)
    pull_requests: List[PullRequestRef] = Field(default_factory=list)
    comments: List[ExternalComment] = Field(default_factory=list)


class Annotation(WireModel):
    """An internal note on a ticket, written by a human or an analysis job."""

    id: str
    ticket_id: str
    content: str = ""
    author_type: AuthorType
    author_name: Optional[str] = None
    created_at: Timestamp
    updated_at: Optional[Timestamp] = None

    @property
    def is_automated(self) -> bool:
        return self.author_type == AuthorType.AUTOMATED


class AnnotationCreate(WireModel):
    """Schema for creating an annotation."""

    content: str = Field(..., min_length=1)
    author_type: AuthorType = AuthorType.HUMAN
    author_name: Optional[str] = None


class AnnotationUpdate(WireModel):
    """Schema for editing an annotation's content."""

    content: str = Field(..., min_length=1)
