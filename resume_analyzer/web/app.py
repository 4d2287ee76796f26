"""FastAPI app entrypoint for the résumé analysis API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from hmac import compare_digest
from time import perf_counter
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from .. import __version__
from ..config import AppSettings, Severity, has_errors, validate_settings
from .api.v1.router import api_v1_router
from .errors import APIError, api_error_handler, api_error_response, validation_error_handler
from .runtime import AnalysisRuntime

logger = logging.getLogger("resume_analyzer.web.api")

SIGN_IN_REDIRECT = "/auth?next=/upload"


def create_app(
    settings: Optional[AppSettings] = None,
    runtime: Optional[AnalysisRuntime] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or AppSettings.from_env()
    issues = validate_settings(settings)
    for issue in issues:
        log = logger.error if issue.severity == Severity.ERROR else logger.warning
        log("config_issue field=%s message=%s", issue.field, issue.message)
    if has_errors(issues):
        raise ValueError("; ".join(i.message for i in issues if i.severity == Severity.ERROR))

    runtime = runtime or AnalysisRuntime.from_settings(settings)
    auth_mode = settings.auth_mode
    api_token = settings.api_token

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await runtime.start()
        try:
            yield
        finally:
            await runtime.stop()

    app = FastAPI(title="Resume Analyzer API", version=__version__, lifespan=lifespan)
    app.state.analysis_runtime = runtime
    app.include_router(api_v1_router)

    @app.middleware("http")
    async def auth_and_tenant_middleware(request: Request, call_next):
        if not request.url.path.startswith("/api/v1"):
            return await call_next(request)

        tenant_id = (request.headers.get("X-Tenant-ID") or "").strip()
        if auth_mode == "token":
            auth_header = (request.headers.get("Authorization") or "").strip()
            if not auth_header.startswith("Bearer "):
                return api_error_response(
                    401, "UNAUTHORIZED", "Missing bearer token", {"redirect": SIGN_IN_REDIRECT}
                )
            token = auth_header[len("Bearer ") :].strip()
            if not compare_digest(token, api_token):
                return api_error_response(
                    401, "UNAUTHORIZED", "Invalid bearer token", {"redirect": SIGN_IN_REDIRECT}
                )
            if not tenant_id:
                return api_error_response(400, "BAD_REQUEST", "X-Tenant-ID header is required")
        else:
            tenant_id = tenant_id or "local-dev"

        request.state.tenant_id = tenant_id
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        start = perf_counter()
        meta = runtime.runtime_metadata()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (perf_counter() - start) * 1000
            logger.info(
                "api_request method=%s path=%s status=%s duration_ms=%.2f tenant_id=%s provider=%s model=%s",
                request.method,
                request.url.path,
                500,
                duration_ms,
                getattr(request.state, "tenant_id", "-"),
                meta["provider"],
                meta["model"],
            )
            raise

        duration_ms = (perf_counter() - start) * 1000
        logger.info(
            "api_request method=%s path=%s status=%s duration_ms=%.2f tenant_id=%s provider=%s model=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            getattr(request.state, "tenant_id", "-"),
            meta["provider"],
            meta["model"],
        )
        return response

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict:
        return {"status": "ok"}

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    return app


def main() -> None:
    """Run development API server."""
    import uvicorn

    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    uvicorn.run(create_app(), host="127.0.0.1", port=8000)
