"""
Export Routes
=============

Static multi-size export of a template folder as a zip archive.
"""

import time

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from adrender.api.dependencies import get_document_builder, get_orchestrator, get_template_store
from adrender.config.logging import get_logger
from adrender.core.export import ExportOrchestrator, StaticExportFlow
from adrender.core.rendering import DocumentBuilder
from adrender.core.templates import TemplateStore
from adrender.models.schemas import ExportResult, SizeListResponse, StaticExportRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Export"])


def archive_response(result: ExportResult, name: str) -> Response:
    """Zip download with per-batch job counts in headers."""
    filename = f"{name}-{int(time.time() * 1000)}.zip"
    headers = {
        "Content-Disposition": f'attachment; filename="{filename}"',
        "X-Export-Succeeded": str(len(result.succeeded)),
        "X-Export-Failed": str(len(result.failures)),
    }
    if result.failures:
        headers["X-Export-Failed-Jobs"] = ",".join(failure.job_id for failure in result.failures)
    return Response(content=result.archive_data, media_type="application/zip", headers=headers)


@router.post("/export")
async def export_static(
    request: StaticExportRequest,
    store: TemplateStore = Depends(get_template_store),
    builder: DocumentBuilder = Depends(get_document_builder),
    orchestrator: ExportOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Export the requested sizes of a template with campaign data applied."""
    try:
        flow = StaticExportFlow(request, store=store, builder=builder)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        "Static export requested",
        template=request.template_path,
        sizes=request.sizes,
        languages=list(request.localizations or {}),
    )
    result = await orchestrator.execute(flow)
    return archive_response(result, "ad-export")


@router.get("/export/sizes", response_model=SizeListResponse)
async def list_export_sizes(
    template: str = Query(..., min_length=1, description="Template path"),
    store: TemplateStore = Depends(get_template_store),
) -> SizeListResponse:
    """Sizes a template can be exported at."""
    return SizeListResponse(sizes=store.list_sizes(template))
