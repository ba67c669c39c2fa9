"""
DPA Export Routes
=================

Bulk PNG export of catalog products rendered through one template size.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from adrender.api.dependencies import get_document_builder, get_orchestrator, get_template_store
from adrender.api.routes.export import archive_response
from adrender.config.logging import get_logger
from adrender.core.export import DpaExportFlow, ExportOrchestrator
from adrender.core.rendering import DocumentBuilder
from adrender.core.templates import TemplateStore
from adrender.models.schemas import DpaExportRequest, SizeListResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["DPA"])


@router.post("/export-dpa")
async def export_dpa(
    request: DpaExportRequest,
    store: TemplateStore = Depends(get_template_store),
    builder: DocumentBuilder = Depends(get_document_builder),
    orchestrator: ExportOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Render every product (per language) and return the captures as a zip."""
    try:
        flow = DpaExportFlow(request, store=store, builder=builder)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        "DPA export requested",
        template=request.template_path,
        size=request.size,
        products=len(request.products),
        languages=list(request.localizations or {}),
    )
    result = await orchestrator.execute(flow)
    return archive_response(result, "dpa-export")


@router.get("/export-dpa/sizes", response_model=SizeListResponse)
async def list_dpa_sizes(
    template: str = Query(..., min_length=1, description="Template path"),
    store: TemplateStore = Depends(get_template_store),
) -> SizeListResponse:
    """Sizes a DPA template can be rendered at."""
    return SizeListResponse(sizes=store.list_sizes(template))
