"""
Client for the pipeline backend.

Wraps every workflow, verification, integration-test and annotation route
the pipeline consumes, and translates HTTP failures into the pipeline error
taxonomy:

- reads: 404 -> NotFoundError, anything else -> TransientFetchError
- actions: any failure -> ActionRejectedError carrying the server's message
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from ..enums import SessionMode, TriggerStatus
from ..errors import ActionRejectedError, NotFoundError, TransientFetchError
from ..schemas import (
    AISessionState,
    AnalysisAck,
    AnalysisRequest,
    Annotation,
    AnnotationCreate,
    AnnotationUpdate,
    BranchNameRequest,
    IntegrationTestResult,
    JobTriggerRequest,
    ResolutionCompleteRequest,
    ResolutionStartRequest,
    ResolutionStartResponse,
    ResolutionState,
    ReviewNotesRequest,
    SessionStartRequest,
    SessionStartResponse,
    Ticket,
    TriggerAck,
    VerificationResult,
    WorkflowRecord,
    WorktreeDeleteRequest,
    WorktreeRequest,
)

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)

_TRIGGER_STATUSES = {status.value for status in TriggerStatus}


def _server_message(response: httpx.Response) -> str:
    """Pull the most useful error text out of an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        message = body.get("message") or body.get("detail") or body.get("error")
        if isinstance(message, list):
            return "; ".join(str(item) for item in message)
        if message:
            return str(message)

    text = response.text.strip()
    if text:
        return text
    return f"{response.status_code} {response.reason_phrase}"


def parse_trigger_response(
    data: Any, result_model: Type[ResultT]
) -> Union[TriggerAck, ResultT]:
    """Tell a background-job acknowledgement apart from a direct result."""
    if isinstance(data, dict) and data.get("status") in _TRIGGER_STATUSES:
        return TriggerAck.model_validate(data)
    return result_model.model_validate(data)


class PipelineApiClient:
    """
    Async client for the pipeline backend.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"} if api_key else {},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings) -> "PipelineApiClient":
        return cls(
            settings.api_base_url,
            api_key=settings.api_token,
            timeout=settings.api_timeout,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "PipelineApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _read(self, path: str) -> Any:
        try:
            response = await self.client.get(path)
        except httpx.RequestError as e:
            logger.warning(f"GET {path} failed: {e}")
            raise TransientFetchError(f"Could not reach backend: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(_server_message(response))
        if response.is_error:
            raise TransientFetchError(
                _server_message(response), status_code=response.status_code
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"GET {path} returned a non-JSON body: {e}")
            raise TransientFetchError(f"Unreadable response from {path}") from e

    @staticmethod
    def _parse(path: str, model: Type[ResultT], data: Any) -> ResultT:
        """Validate a read payload; a malformed record counts as a failed read."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"GET {path} returned an unexpected payload: {e}")
            raise TransientFetchError(f"Unexpected response from {path}") from e

    async def _act(
        self,
        method: str,
        path: str,
        body: Optional[BaseModel] = None,
    ) -> Any:
        try:
            response = await self.client.request(
                method, path, json=body.to_wire() if body is not None else None
            )
        except httpx.RequestError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ActionRejectedError(f"Could not reach backend: {e}") from e

        if response.is_error:
            message = _server_message(response)
            logger.error(f"{method} {path} rejected ({response.status_code}): {message}")
            raise ActionRejectedError(message, status_code=response.status_code)
        return response.json() if response.content else None

    # Tickets and annotations

    async def get_ticket_details(self, ticket_id: str) -> Ticket:
        """Get a ticket together with its external comments."""
        path = f"/jira/tickets/{ticket_id}/details"
        return self._parse(path, Ticket, await self._read(path))

    async def list_annotations(self, ticket_id: str) -> List[Annotation]:
        path = f"/jira/tickets/{ticket_id}/hidden-comments"
        data = await self._read(path)
        return [self._parse(path, Annotation, item) for item in data or []]

    async def create_annotation(
        self, ticket_id: str, annotation: AnnotationCreate
    ) -> Annotation:
        data = await self._act(
            "POST", f"/jira/tickets/{ticket_id}/hidden-comments", annotation
        )
        return Annotation.model_validate(data)

    async def update_annotation(
        self, ticket_id: str, annotation_id: str, update: AnnotationUpdate
    ) -> Annotation:
        data = await self._act(
            "PUT", f"/jira/tickets/{ticket_id}/hidden-comments/{annotation_id}", update
        )
        return Annotation.model_validate(data)

    async def delete_annotation(self, ticket_id: str, annotation_id: str) -> None:
        await self._act(
            "DELETE", f"/jira/tickets/{ticket_id}/hidden-comments/{annotation_id}"
        )

    # Analysis

    async def trigger_analysis(self, project_id: str, ticket_id: str) -> AnalysisAck:
        """Start the background analysis job (runs for up to ten minutes)."""
        data = await self._act(
            "POST",
            "/code/analysis",
            AnalysisRequest(project_id=project_id, ticket_id=ticket_id),
        )
        return AnalysisAck.model_validate(data or {})

    # Workflow record

    async def get_workflow(self, ticket_id: str) -> WorkflowRecord:
        path = f"/workflows/ticket/{ticket_id}"
        return self._parse(path, WorkflowRecord, await self._read(path))

    async def generate_branch_name(
        self,
        ticket_id: str,
        project_id: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> WorkflowRecord:
        data = await self._act(
            "POST",
            "/workflows/branch-name",
            BranchNameRequest(ticket_id=ticket_id, project_id=project_id, options=options),
        )
        return WorkflowRecord.model_validate(data)

    async def create_worktree(self, request: WorktreeRequest) -> WorkflowRecord:
        data = await self._act("POST", "/workflows/worktree", request)
        return WorkflowRecord.model_validate(data)

    async def delete_worktree(
        self, ticket_id: str, request: Optional[WorktreeDeleteRequest] = None
    ) -> WorkflowRecord:
        data = await self._act(
            "DELETE",
            f"/workflows/ticket/{ticket_id}/worktree",
            request or WorktreeDeleteRequest(),
        )
        return WorkflowRecord.model_validate(data)

    # AI session

    async def get_session_status(self, ticket_id: str) -> AISessionState:
        path = f"/workflows/ticket/{ticket_id}/happy/status"
        return self._parse(path, AISessionState, await self._read(path))

    async def start_session(
        self,
        ticket_id: str,
        mode: SessionMode = SessionMode.CONTEXT,
        additional_instructions: Optional[str] = None,
    ) -> SessionStartResponse:
        data = await self._act(
            "POST",
            f"/workflows/ticket/{ticket_id}/happy/start",
            SessionStartRequest(mode=mode, additional_instructions=additional_instructions),
        )
        return SessionStartResponse.model_validate(data or {})

    async def stop_session(self, ticket_id: str) -> None:
        await self._act("POST", f"/workflows/ticket/{ticket_id}/happy/stop")

    # Verification

    async def trigger_verification(
        self, ticket_id: str, custom_instructions: Optional[str] = None
    ) -> Union[TriggerAck, VerificationResult]:
        data = await self._act(
            "POST",
            f"/workflows/ticket/{ticket_id}/verify",
            JobTriggerRequest(custom_instructions=custom_instructions),
        )
        return parse_trigger_response(data, VerificationResult)

    async def get_verification(self, ticket_id: str) -> VerificationResult:
        path = f"/workflows/ticket/{ticket_id}/verification"
        data = await self._read(path)
        if not data:
            raise NotFoundError(f"No verification for ticket {ticket_id}")
        return self._parse(path, VerificationResult, data)

    async def add_review_notes(
        self, verification_id: str, notes: str, reviewed_by: str
    ) -> VerificationResult:
        data = await self._act(
            "POST",
            f"/workflows/verification/{verification_id}/notes",
            ReviewNotesRequest(notes=notes, reviewed_by=reviewed_by),
        )
        return VerificationResult.model_validate(data)

    async def approve_for_pr(self, ticket_id: str) -> None:
        await self._act("POST", f"/workflows/ticket/{ticket_id}/approve-for-pr")

    # Verification resolution

    async def start_resolution(
        self,
        ticket_id: str,
        mode: SessionMode = SessionMode.CONTEXT,
        instructions: Optional[str] = None,
        verification_id: Optional[str] = None,
    ) -> ResolutionStartResponse:
        data = await self._act(
            "POST",
            f"/workflows/ticket/{ticket_id}/verification/resolve",
            ResolutionStartRequest(
                mode=mode, instructions=instructions, verification_id=verification_id
            ),
        )
        return ResolutionStartResponse.model_validate(data or {})

    async def get_resolution_status(self, ticket_id: str) -> ResolutionState:
        path = f"/workflows/ticket/{ticket_id}/verification/resolve/status"
        return self._parse(path, ResolutionState, await self._read(path))

    async def stop_resolution(self, ticket_id: str) -> None:
        await self._act(
            "POST", f"/workflows/ticket/{ticket_id}/verification/resolve/stop"
        )

    async def complete_resolution(
        self, ticket_id: str, completion_notes: Optional[str] = None
    ) -> None:
        request = (
            ResolutionCompleteRequest(completion_notes=completion_notes)
            if completion_notes
            else ResolutionCompleteRequest()
        )
        await self._act(
            "POST", f"/workflows/ticket/{ticket_id}/verification/resolve/complete", request
        )

    async def re_verify(
        self, ticket_id: str
    ) -> Optional[Union[TriggerAck, VerificationResult]]:
        """Ask the backend for a fresh verification run from the resolution stage."""
        data = await self._act(
            "POST", f"/workflows/ticket/{ticket_id}/verification/resolve/re-verify"
        )
        if not data:
            return None
        return parse_trigger_response(data, VerificationResult)

    # Integration testing

    async def trigger_integration_test(
        self, ticket_id: str, custom_instructions: Optional[str] = None
    ) -> Union[TriggerAck, IntegrationTestResult]:
        data = await self._act(
            "POST",
            f"/workflows/ticket/{ticket_id}/integration-test",
            JobTriggerRequest(custom_instructions=custom_instructions),
        )
        return parse_trigger_response(data, IntegrationTestResult)

    async def get_latest_integration_test(self, ticket_id: str) -> IntegrationTestResult:
        path = f"/workflows/ticket/{ticket_id}/integration-test/latest"
        data = await self._read(path)
        if not data:
            raise NotFoundError(f"No integration test result for ticket {ticket_id}")
        return self._parse(path, IntegrationTestResult, data)

    async def approve_integration_tests(self, ticket_id: str) -> None:
        await self._act("POST", f"/workflows/ticket/{ticket_id}/integration-test/approve")
