"""Stored analysis record endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from .....records import AnalysisRecord
from ....runtime import AnalysisRuntime
from ..deps import get_runtime

router = APIRouter(prefix="/resumes", tags=["resumes"])


class ResumeRecordResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    resume_path: str = Field(alias="resumePath")
    image_path: str = Field(alias="imagePath")
    company_name: str = Field(alias="companyName")
    job_title: str = Field(alias="jobTitle")
    job_description: str = Field(alias="jobDescription")
    feedback: Optional[Dict[str, Any]] = None

    @classmethod
    def from_record(cls, record: AnalysisRecord) -> "ResumeRecordResponse":
        return cls.model_validate(record.to_dict())


class ListResumesResponse(BaseModel):
    items: List[ResumeRecordResponse]


@router.get("", response_model=ListResumesResponse, response_model_by_alias=True)
async def list_resumes(runtime: AnalysisRuntime = Depends(get_runtime)) -> ListResumesResponse:
    records = await runtime.list_records()
    return ListResumesResponse(items=[ResumeRecordResponse.from_record(record) for record in records])


@router.get("/{record_id}", response_model=ResumeRecordResponse, response_model_by_alias=True)
async def get_resume(record_id: str, runtime: AnalysisRuntime = Depends(get_runtime)) -> ResumeRecordResponse:
    record = await runtime.get_record(record_id)
    return ResumeRecordResponse.from_record(record)
