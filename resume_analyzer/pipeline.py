"""Upload-and-analyze pipeline.

One call to ``UploadOrchestrator.analyze`` takes a PDF résumé plus job context
through these steps, strictly in order::

    upload original -> render page image -> upload image
    -> write provisional record -> request feedback
    -> parse feedback -> write final record

Each step reports a ``StepResult``; the first failure ends the run with
``PipelineState.FAILED`` and an ``AnalysisOutcome`` describing it. Nothing
already written is rolled back, so a failure after the provisional write
leaves a feedback-less record under ``resume:<id>``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from .critique import extract_critique_text, parse_critique
from .errors import AnalysisErrorKind, AnalysisInProgressError, CritiqueParseError
from .ids import generate_id
from .prompts import prepare_instructions
from .providers.feedback import FeedbackGenerator
from .providers.types import FeedbackResponse
from .rasterizer import DocumentRasterizer
from .records import AnalysisRecord
from .storage.blob import BlobStore, FileBlob, UploadedBlob
from .storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

PDF_MIME_TYPE = "application/pdf"
GENERIC_FAILURE_MESSAGE = "Error: Something went wrong during analysis"


class PipelineState(Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    CONVERTING = "converting"
    UPLOADING_IMAGE = "uploading_image"
    PERSISTING = "persisting"
    ANALYZING = "analyzing"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self not in (PipelineState.IDLE, PipelineState.DONE, PipelineState.FAILED)


STAGE_MESSAGES: Dict[PipelineState, str] = {
    PipelineState.IDLE: "",
    PipelineState.UPLOADING: "Uploading the file...",
    PipelineState.CONVERTING: "Converting to image...",
    PipelineState.UPLOADING_IMAGE: "Uploading the image...",
    PipelineState.PERSISTING: "Preparing data...",
    PipelineState.ANALYZING: "Analyzing...",
    PipelineState.FINALIZING: "Processing feedback...",
    PipelineState.DONE: "Analysis complete, redirecting...",
}


@dataclass(frozen=True)
class PipelineStatus:
    """Current state plus the human-readable narrative for it."""

    state: PipelineState
    message: str
    record_id: Optional[str] = None


StatusListener = Callable[[PipelineStatus], None]


@dataclass
class StepResult(Generic[T]):
    """Outcome of one pipeline step."""

    value: Optional[T] = None
    error_kind: Optional[AnalysisErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, value: T) -> "StepResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: AnalysisErrorKind, message: str) -> "StepResult[T]":
        return cls(error_kind=kind, message=message)


@dataclass
class AnalysisOutcome:
    """Result of one ``analyze`` call: a record id, or the failure that ended the run."""

    ok: bool
    record_id: Optional[str] = None
    record: Optional[AnalysisRecord] = None
    error_kind: Optional[AnalysisErrorKind] = None
    message: str = ""
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def success(cls, record: AnalysisRecord, message: str, warnings: List[str]) -> "AnalysisOutcome":
        return cls(ok=True, record_id=record.id, record=record, message=message, warnings=list(warnings))

    @classmethod
    def failure(
        cls,
        kind: AnalysisErrorKind,
        message: str,
        record: Optional[AnalysisRecord] = None,
        warnings: Optional[List[str]] = None,
    ) -> "AnalysisOutcome":
        return cls(
            ok=False,
            record_id=record.id if record else None,
            record=record,
            error_kind=kind,
            message=message,
            warnings=list(warnings or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "record_id": self.record_id,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
            "warnings": list(self.warnings),
        }


def validate_submission(
    company_name: Optional[str],
    job_title: Optional[str],
    job_description: Optional[str],
    file: Optional[FileBlob],
) -> Optional[str]:
    """Return the first user-facing validation message, or None when valid."""
    if not (company_name or "").strip():
        return "Please enter a company name"
    if not (job_title or "").strip():
        return "Please enter a job title"
    if not (job_description or "").strip():
        return "Please enter a job description"
    if file is None:
        return "Please select a PDF file to upload"
    if file.content_type != PDF_MIME_TYPE:
        return "Please upload a PDF file"
    return None


class UploadOrchestrator:
    """Sequences uploads, rendering, persistence and feedback for one résumé at a time.

    All collaborators are injected. One orchestrator runs at most one analysis
    at a time; ``analyze`` raises ``AnalysisInProgressError`` while a run is
    active. Failures of the provisional record write are reported as warnings
    and the run continues unless ``abort_on_checkpoint_failure`` is set.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        rasterizer: DocumentRasterizer,
        kv_store: KeyValueStore,
        feedback_generator: FeedbackGenerator,
        id_factory: Callable[[], str] = generate_id,
        instructions_builder: Callable[[str, str], str] = prepare_instructions,
        abort_on_checkpoint_failure: bool = False,
    ) -> None:
        self.blob_store = blob_store
        self.rasterizer = rasterizer
        self.kv_store = kv_store
        self.feedback_generator = feedback_generator
        self.id_factory = id_factory
        self.instructions_builder = instructions_builder
        self.abort_on_checkpoint_failure = abort_on_checkpoint_failure
        self._status = PipelineStatus(PipelineState.IDLE, "")
        self._listeners: List[StatusListener] = []
        self._warnings: List[str] = []
        self._record: Optional[AnalysisRecord] = None

    @property
    def status(self) -> PipelineStatus:
        return self._status

    @property
    def is_busy(self) -> bool:
        return self._status.state.is_active

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def analyze(
        self,
        company_name: Optional[str],
        job_title: Optional[str],
        job_description: Optional[str],
        file: Optional[FileBlob],
    ) -> AnalysisOutcome:
        """Run the full pipeline and return its outcome.

        Validation failures return immediately without touching any
        collaborator or changing state.
        """
        if self.is_busy:
            raise AnalysisInProgressError(f"Analysis already running (state={self._status.state.value})")

        validation_message = validate_submission(company_name, job_title, job_description, file)
        if validation_message:
            logger.info("analysis_rejected reason=%r", validation_message)
            return AnalysisOutcome.failure(AnalysisErrorKind.VALIDATION, validation_message)

        if file is None:
            raise RuntimeError("validated submission has no file")
        self._warnings = []
        self._record = None
        # Claim the orchestrator before the first await.
        self._transition(PipelineState.UPLOADING)
        try:
            return await self._run(
                company_name=company_name or "",
                job_title=job_title or "",
                job_description=job_description or "",
                file=file,
            )
        except asyncio.CancelledError:
            self._transition(PipelineState.FAILED, "Error: Analysis cancelled")
            raise
        except Exception as exc:
            logger.exception("analysis_crashed state=%s", self._status.state.value)
            kind = AnalysisErrorKind.PARSE if isinstance(exc, CritiqueParseError) else AnalysisErrorKind.UNEXPECTED
            record = self._record
            self._transition(PipelineState.FAILED, GENERIC_FAILURE_MESSAGE, record.id if record else None)
            return AnalysisOutcome.failure(kind, GENERIC_FAILURE_MESSAGE, record=record, warnings=self._warnings)

    async def _run(
        self,
        company_name: str,
        job_title: str,
        job_description: str,
        file: FileBlob,
    ) -> AnalysisOutcome:
        uploaded = await self._upload_original(file)
        if not uploaded.ok:
            return self._fail(uploaded)

        self._transition(PipelineState.CONVERTING)
        converted = await self._convert(file)
        if not converted.ok:
            return self._fail(converted)

        self._transition(PipelineState.UPLOADING_IMAGE)
        uploaded_image = await self._upload_image(converted.value)
        if not uploaded_image.ok:
            return self._fail(uploaded_image)

        self._transition(PipelineState.PERSISTING)
        record = AnalysisRecord(
            id=self.id_factory(),
            resume_path=uploaded.value.path,
            image_path=uploaded_image.value.path,
            company_name=company_name,
            job_title=job_title,
            job_description=job_description,
        )
        self._record = record
        checkpoint = await self._write_record(record, "Error: Failed to save analysis")
        if not checkpoint.ok:
            if self.abort_on_checkpoint_failure:
                return self._fail(checkpoint, record)
            self._warnings.append(checkpoint.message)
            logger.warning("provisional_write_failed record_id=%s continuing=true", record.id)

        self._transition(PipelineState.ANALYZING, record_id=record.id)
        feedback = await self._request_feedback(record)
        if not feedback.ok:
            return self._fail(feedback, record)

        self._transition(PipelineState.FINALIZING, record_id=record.id)
        critique_text = extract_critique_text(feedback.value.message.content)
        final_record = record.with_feedback(parse_critique(critique_text))

        stored = await self._write_record(final_record, "Error: Failed to save feedback")
        if not stored.ok:
            return self._fail(stored, record)

        self._transition(PipelineState.DONE, record_id=record.id)
        logger.info("analysis_completed record_id=%s warnings=%d", record.id, len(self._warnings))
        return AnalysisOutcome.success(final_record, self._status.message, self._warnings)

    async def _upload_original(self, file: FileBlob) -> StepResult[UploadedBlob]:
        uploaded = await self.blob_store.upload([file])
        if not uploaded:
            return StepResult.failure(AnalysisErrorKind.UPLOAD, "Error: Failed to upload file")
        return StepResult.success(uploaded)

    async def _convert(self, file: FileBlob) -> StepResult[FileBlob]:
        result = await self.rasterizer.convert(file)
        if result.image is None:
            logger.info("conversion_failed filename=%s error=%s", file.filename, result.error)
            return StepResult.failure(AnalysisErrorKind.CONVERSION, "Error: Failed to convert PDF to image")
        return StepResult.success(result.image)

    async def _upload_image(self, image: FileBlob) -> StepResult[UploadedBlob]:
        uploaded = await self.blob_store.upload([image])
        if not uploaded:
            return StepResult.failure(AnalysisErrorKind.UPLOAD, "Error: Failed to upload image")
        return StepResult.success(uploaded)

    async def _write_record(self, record: AnalysisRecord, failure_message: str) -> StepResult[AnalysisRecord]:
        try:
            written = await self.kv_store.set(record.key, record.to_json())
        except Exception as exc:
            logger.warning("record_write_error key=%s error=%s", record.key, exc)
            written = False
        if not written:
            return StepResult.failure(AnalysisErrorKind.STORE, failure_message)
        return StepResult.success(record)

    async def _request_feedback(self, record: AnalysisRecord) -> StepResult[FeedbackResponse]:
        instructions = self.instructions_builder(record.job_title, record.job_description)
        response = await self.feedback_generator.feedback(record.resume_path, instructions)
        if not response:
            return StepResult.failure(AnalysisErrorKind.ANALYSIS, "Error: Failed to analyze resume")
        return StepResult.success(response)

    def _fail(self, step: StepResult[Any], record: Optional[AnalysisRecord] = None) -> AnalysisOutcome:
        if step.error_kind is None:
            raise RuntimeError("cannot fail a pipeline with a successful step")
        self._transition(PipelineState.FAILED, step.message, record.id if record else None)
        return AnalysisOutcome.failure(step.error_kind, step.message, record=record, warnings=self._warnings)

    def _transition(
        self,
        state: PipelineState,
        message: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> None:
        text = STAGE_MESSAGES.get(state, "") if message is None else message
        self._status = PipelineStatus(state=state, message=text, record_id=record_id)
        for listener in list(self._listeners):
            try:
                listener(self._status)
            except Exception:
                logger.exception("status_listener_failed state=%s", state.value)
