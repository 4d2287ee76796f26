"""Analysis submission endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import BaseModel, Field

from .....errors import AnalysisErrorKind, AnalysisInProgressError
from .....pipeline import AnalysisOutcome
from ....errors import APIError
from ....runtime import AnalysisRuntime
from ..deps import get_runtime, get_tenant_id
from ..upload import upload_to_blob

router = APIRouter(prefix="/analyses", tags=["analyses"])

ERROR_RESPONSES = {
    AnalysisErrorKind.VALIDATION: (400, "VALIDATION_ERROR"),
    AnalysisErrorKind.UPLOAD: (502, "UPLOAD_FAILED"),
    AnalysisErrorKind.CONVERSION: (422, "CONVERSION_FAILED"),
    AnalysisErrorKind.STORE: (502, "STORE_FAILED"),
    AnalysisErrorKind.ANALYSIS: (502, "ANALYSIS_FAILED"),
    AnalysisErrorKind.PARSE: (500, "FEEDBACK_PARSE_FAILED"),
    AnalysisErrorKind.UNEXPECTED: (500, "INTERNAL_ERROR"),
}


class CreateAnalysisResponse(BaseModel):
    id: str
    status: str
    warnings: List[str] = Field(default_factory=list)


class AnalysisStatusResponse(BaseModel):
    state: str
    message: str
    record_id: Optional[str] = None
    busy: bool
    history: List[str] = Field(default_factory=list)


def _raise_for_outcome(outcome: AnalysisOutcome) -> None:
    kind = outcome.error_kind or AnalysisErrorKind.UNEXPECTED
    status_code, code = ERROR_RESPONSES[kind]
    details = {"error_kind": kind.value}
    if outcome.record_id:
        details["record_id"] = outcome.record_id
    if outcome.warnings:
        details["warnings"] = outcome.warnings
    raise APIError(status_code, code, outcome.message, details)


@router.post("", response_model=CreateAnalysisResponse, status_code=status.HTTP_201_CREATED)
async def create_analysis(
    company_name: str = Form(default=""),
    job_title: str = Form(default=""),
    job_description: str = Form(default=""),
    file: Optional[UploadFile] = File(default=None),
    runtime: AnalysisRuntime = Depends(get_runtime),
    tenant_id: str = Depends(get_tenant_id),
) -> CreateAnalysisResponse:
    orchestrator = runtime.orchestrator_for(tenant_id)
    if orchestrator.is_busy:
        raise APIError(
            409,
            "ANALYSIS_IN_PROGRESS",
            "An analysis is already running",
            {"state": orchestrator.status.state.value},
        )

    blob = await upload_to_blob(file, max_bytes=runtime.max_upload_bytes)
    try:
        outcome = await orchestrator.analyze(company_name, job_title, job_description, blob)
    except AnalysisInProgressError as exc:
        raise APIError(409, "ANALYSIS_IN_PROGRESS", str(exc)) from exc

    if not outcome.ok:
        _raise_for_outcome(outcome)

    if outcome.record_id is None:
        raise APIError(500, "INTERNAL_ERROR", "Analysis finished without a record id")
    return CreateAnalysisResponse(id=outcome.record_id, status=outcome.message, warnings=outcome.warnings)


@router.get("/status", response_model=AnalysisStatusResponse)
async def get_analysis_status(
    runtime: AnalysisRuntime = Depends(get_runtime),
    tenant_id: str = Depends(get_tenant_id),
) -> AnalysisStatusResponse:
    orchestrator = runtime.orchestrator_for(tenant_id)
    current = orchestrator.status
    observer = runtime.observer_for(tenant_id)
    return AnalysisStatusResponse(
        state=current.state.value,
        message=current.message,
        record_id=current.record_id,
        busy=orchestrator.is_busy,
        history=observer.states(),
    )
