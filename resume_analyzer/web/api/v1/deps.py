"""Dependency providers for v1 API."""

from __future__ import annotations

from fastapi import Request

from ...runtime import AnalysisRuntime


def get_runtime(request: Request) -> AnalysisRuntime:
    """Access shared analysis runtime from app state."""
    return request.app.state.analysis_runtime


def get_tenant_id(request: Request) -> str:
    """Return tenant identifier resolved by auth middleware."""
    tenant_id = getattr(request.state, "tenant_id", None)
    return tenant_id or "local-dev"
