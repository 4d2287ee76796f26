"""Top-level v1 API router."""

from __future__ import annotations

from fastapi import APIRouter

from .endpoints.analyses import router as analyses_router
from .endpoints.files import router as files_router
from .endpoints.resumes import router as resumes_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(analyses_router)
api_v1_router.include_router(resumes_router)
api_v1_router.include_router(files_router)
