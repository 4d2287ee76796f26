"""Read access to stored résumé files and rendered images."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ....runtime import AnalysisRuntime
from ..deps import get_runtime

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{file_path:path}")
async def get_file(file_path: str, runtime: AnalysisRuntime = Depends(get_runtime)) -> Response:
    blob = await runtime.read_file(file_path)
    return Response(content=blob.content, media_type=blob.content_type)
