"""Project schema (the repository/board pairing an analysis runs against)."""

from __future__ import annotations

from typing import Optional

from .primitives import WireModel


class Project(WireModel):
    id: str
    name: str
    key: Optional[str] = None
    description: Optional[str] = None
    local_path: Optional[str] = None
    jira_key: Optional[str] = None
    gitlab_id: Optional[str] = None
    gitlab_url: Optional[str] = None
    jira_url: Optional[str] = None
