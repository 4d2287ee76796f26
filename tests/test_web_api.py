"""HTTP surface: submission, record reads, files, auth, error envelope."""

from __future__ import annotations

from typing import Optional

import fitz  # PyMuPDF
import pytest
from fastapi.testclient import TestClient

from resume_analyzer.config import AppSettings
from resume_analyzer.pipeline import AnalysisOutcome
from resume_analyzer.providers.stub import STUB_FEEDBACK
from resume_analyzer.providers.types import FeedbackMessage, FeedbackResponse, TextContent
from resume_analyzer.rasterizer import PdfRasterizer
from resume_analyzer.storage.blob import InMemoryBlobStore
from resume_analyzer.storage.kv import InMemoryKeyValueStore
from resume_analyzer.web.api.v1.endpoints.analyses import _raise_for_outcome
from resume_analyzer.web.app import create_app
from resume_analyzer.web.errors import APIError
from resume_analyzer.web.runtime import AnalysisRuntime

FORM = {
    "company_name": "Acme",
    "job_title": "Backend Engineer",
    "job_description": "Python, FastAPI, PostgreSQL",
}


def _pdf_bytes() -> bytes:
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "Jane Smith - Backend Engineer")
    data = doc.tobytes()
    doc.close()
    return data


def _settings(**overrides) -> AppSettings:
    values = dict(blob_backend="memory", kv_backend="memory")
    values.update(overrides)
    return AppSettings(**values)


def _pdf_upload(content: Optional[bytes] = None, content_type: str = "application/pdf"):
    return {"file": ("resume.pdf", content if content is not None else _pdf_bytes(), content_type)}


@pytest.fixture
def client():
    with TestClient(create_app(settings=_settings())) as test_client:
        yield test_client


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_submission_creates_record_with_feedback(client):
    response = client.post("/api/v1/analyses", data=FORM, files=_pdf_upload())

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "Analysis complete, redirecting..."
    assert body["warnings"] == []

    record = client.get(f"/api/v1/resumes/{body['id']}").json()
    assert record["id"] == body["id"]
    assert record["companyName"] == "Acme"
    assert record["jobTitle"] == "Backend Engineer"
    assert record["jobDescription"] == "Python, FastAPI, PostgreSQL"
    assert record["resumePath"].endswith("/resume.pdf")
    assert record["imagePath"].endswith("/resume.png")
    assert record["feedback"] == STUB_FEEDBACK

    original = client.get(f"/api/v1/files/{record['resumePath']}")
    assert original.status_code == 200
    assert original.headers["content-type"] == "application/pdf"
    assert original.content.startswith(b"%PDF")

    image = client.get(f"/api/v1/files/{record['imagePath']}")
    assert image.headers["content-type"] == "image/png"
    assert image.content.startswith(b"\x89PNG")

    listing = client.get("/api/v1/resumes").json()
    assert [item["id"] for item in listing["items"]] == [body["id"]]


def test_status_reports_last_run(client):
    assert client.get("/api/v1/analyses/status").json() == {
        "state": "idle",
        "message": "",
        "record_id": None,
        "busy": False,
        "history": [],
    }

    created = client.post("/api/v1/analyses", data=FORM, files=_pdf_upload()).json()
    status = client.get("/api/v1/analyses/status").json()

    assert status["state"] == "done"
    assert status["record_id"] == created["id"]
    assert status["busy"] is False
    assert status["history"][0] == "uploading"
    assert status["history"][-1] == "done"


@pytest.mark.parametrize(
    "missing, message",
    [
        ("company_name", "Please enter a company name"),
        ("job_title", "Please enter a job title"),
        ("job_description", "Please enter a job description"),
    ],
)
def test_missing_fields_are_rejected(client, missing, message):
    data = dict(FORM)
    data[missing] = "  "

    response = client.post("/api/v1/analyses", data=data, files=_pdf_upload())

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["message"] == message
    assert error["details"]["error_kind"] == "validation"
    assert client.get("/api/v1/resumes").json() == {"items": []}


def test_missing_file_is_rejected(client):
    response = client.post("/api/v1/analyses", data=FORM)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Please select a PDF file to upload"


def test_non_pdf_upload_is_rejected(client):
    response = client.post("/api/v1/analyses", data=FORM, files=_pdf_upload(b"hello", "text/plain"))

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Please upload a PDF file"


def test_unreadable_pdf_maps_to_conversion_failure(client):
    response = client.post("/api/v1/analyses", data=FORM, files=_pdf_upload(b"not really a pdf"))

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "CONVERSION_FAILED"
    assert error["message"] == "Error: Failed to convert PDF to image"


def test_upload_size_limit():
    with TestClient(create_app(settings=_settings(max_upload_bytes=64))) as small_client:
        response = small_client.post("/api/v1/analyses", data=FORM, files=_pdf_upload())

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "UPLOAD_TOO_LARGE"
    assert error["details"]["max_upload_bytes"] == 64


def test_unknown_record_is_404(client):
    response = client.get("/api/v1/resumes/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "RECORD_NOT_FOUND"


def test_unknown_file_is_404(client):
    response = client.get("/api/v1/files/nope/resume.pdf")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "FILE_NOT_FOUND"


class NoFeedbackGenerator:
    async def feedback(self, document_path, instructions):
        return None


def test_analysis_failure_keeps_provisional_record():
    blob_store = InMemoryBlobStore()
    runtime = AnalysisRuntime(
        blob_store=blob_store,
        kv_store=InMemoryKeyValueStore(),
        rasterizer=PdfRasterizer(scale=1.0),
        feedback_generator=NoFeedbackGenerator(),
    )

    with TestClient(create_app(settings=_settings(), runtime=runtime)) as test_client:
        response = test_client.post("/api/v1/analyses", data=FORM, files=_pdf_upload())

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "ANALYSIS_FAILED"
        assert error["message"] == "Error: Failed to analyze resume"
        record_id = error["details"]["record_id"]

        record = test_client.get(f"/api/v1/resumes/{record_id}").json()
        assert record["feedback"] is None
        assert test_client.get("/api/v1/analyses/status").json()["state"] == "failed"


class UnparseableFeedbackGenerator:
    async def feedback(self, document_path, instructions):
        return FeedbackResponse(message=FeedbackMessage(content=TextContent(text="Sure! Here is my review.")))


def test_parse_failure_reports_stored_record_id():
    kv_store = InMemoryKeyValueStore()
    runtime = AnalysisRuntime(
        blob_store=InMemoryBlobStore(),
        kv_store=kv_store,
        rasterizer=PdfRasterizer(scale=1.0),
        feedback_generator=UnparseableFeedbackGenerator(),
    )

    with TestClient(create_app(settings=_settings(), runtime=runtime)) as test_client:
        response = test_client.post("/api/v1/analyses", data=FORM, files=_pdf_upload())

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "FEEDBACK_PARSE_FAILED"
        assert error["message"] == "Error: Something went wrong during analysis"
        assert error["details"]["error_kind"] == "parse"
        record_id = error["details"]["record_id"]

        record = test_client.get(f"/api/v1/resumes/{record_id}")
        assert record.status_code == 200
        assert record.json()["feedback"] is None


class TestTokenAuth:
    @pytest.fixture
    def secured(self):
        with TestClient(create_app(settings=_settings(auth_mode="token", api_token="secret"))) as test_client:
            yield test_client

    def test_missing_token_redirects_to_sign_in(self, secured):
        response = secured.post("/api/v1/analyses", data=FORM, files=_pdf_upload())

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "UNAUTHORIZED"
        assert error["details"]["redirect"] == "/auth?next=/upload"

    def test_wrong_token_is_rejected(self, secured):
        response = secured.get("/api/v1/resumes", headers={"Authorization": "Bearer wrong"})
        assert response.status_code == 401

    def test_tenant_header_is_required(self, secured):
        response = secured.get("/api/v1/resumes", headers={"Authorization": "Bearer secret"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BAD_REQUEST"

    def test_valid_token_reaches_api(self, secured):
        headers = {"Authorization": "Bearer secret", "X-Tenant-ID": "team-a"}

        created = secured.post("/api/v1/analyses", data=FORM, files=_pdf_upload(), headers=headers)
        assert created.status_code == 201

        status = secured.get("/api/v1/analyses/status", headers=headers).json()
        assert status["record_id"] == created.json()["id"]

        other = secured.get("/api/v1/analyses/status", headers={**headers, "X-Tenant-ID": "team-b"}).json()
        assert other["state"] == "idle"

    def test_health_is_public(self, secured):
        assert secured.get("/healthz").status_code == 200


def test_invalid_settings_refuse_to_start():
    with pytest.raises(ValueError, match="api_token|RESUME_ANALYZER_API_TOKEN"):
        create_app(settings=_settings(auth_mode="token"))


def test_failure_without_kind_maps_to_internal_error():
    with pytest.raises(APIError) as excinfo:
        _raise_for_outcome(AnalysisOutcome(ok=False, message="Error: Something went wrong during analysis"))

    assert excinfo.value.status_code == 500
    assert excinfo.value.code == "INTERNAL_ERROR"
    assert excinfo.value.details == {"error_kind": "unexpected"}
