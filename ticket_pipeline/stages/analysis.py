"""
Analysis stage: the automated ticket analysis and the annotations around it.

Triggering an analysis starts a background job that writes its result as an
automated annotation, so the stage polls the annotation list until an
automated annotation it has not seen before shows up. Every annotation
change re-classifies staleness.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..enums import AuthorType, Stage
from ..schemas import AnalysisAck, Annotation, AnnotationCreate, AnnotationUpdate
from .base import StageController


class AnalysisStage(StageController):
    stage = Stage.ANALYSIS

    async def fetch(self) -> None:
        annotations = await self.fetch_optional(
            lambda: self.client.list_annotations(self.state.ticket_id)
        )
        self._store(annotations or [])

    def status(self) -> str:
        return self.state.analysis_status.value

    def details(self) -> Dict[str, Any]:
        report = self.state.staleness
        latest = report.latest_analysis
        return {
            "latest_analysis_id": latest.id if latest else None,
            "latest_analysis_at": latest.created_at.isoformat() if latest else None,
            "newer_comments": report.newer_comment_count,
            "annotation_count": len(self.state.annotations),
        }

    def _store(self, annotations: List[Annotation]) -> None:
        self.state.annotations = list(annotations)
        self.state.reclassify(self.context.settings.staleness_tolerance_ms)

    async def trigger(self) -> AnalysisAck:
        """Start a background analysis against the selected project."""
        self.ensure_idle()
        project_id = self.state.project_id
        if not project_id:
            raise self.reject("Select a project before running an analysis")

        known = {a.id for a in self.state.annotations if a.is_automated}
        ack = await self.act(
            "Analysis", self.client.trigger_analysis(project_id, self.state.ticket_id)
        )
        self.notifications.info(
            ack.message or "Analysis started; this can take several minutes", self.stage
        )

        async def check() -> Optional[List[Annotation]]:
            return await self.client.list_annotations(self.state.ticket_id)

        def has_new_analysis(annotations: List[Annotation]) -> bool:
            return any(a.is_automated and a.id not in known for a in annotations)

        async def on_complete(annotations: List[Annotation]) -> None:
            self._store(annotations)
            await self.completed()

        self.poller.start(check, has_new_analysis, on_complete)
        return ack

    async def add_annotation(
        self,
        content: str,
        author_name: Optional[str] = None,
        author_type: AuthorType = AuthorType.HUMAN,
    ) -> Annotation:
        if not content.strip():
            raise self.reject("Annotation content cannot be empty")
        annotation = await self.act(
            "Add annotation",
            self.client.create_annotation(
                self.state.ticket_id,
                AnnotationCreate(
                    content=content, author_type=author_type, author_name=author_name
                ),
            ),
        )
        self._store([*self.state.annotations, annotation])
        return annotation

    async def edit_annotation(self, annotation_id: str, content: str) -> Annotation:
        if not content.strip():
            raise self.reject("Annotation content cannot be empty")
        annotation = await self.act(
            "Edit annotation",
            self.client.update_annotation(
                self.state.ticket_id, annotation_id, AnnotationUpdate(content=content)
            ),
        )
        self._store(
            [annotation if a.id == annotation_id else a for a in self.state.annotations]
        )
        return annotation

    async def delete_annotation(self, annotation_id: str) -> None:
        await self.act(
            "Delete annotation",
            self.client.delete_annotation(self.state.ticket_id, annotation_id),
        )
        self._store([a for a in self.state.annotations if a.id != annotation_id])
