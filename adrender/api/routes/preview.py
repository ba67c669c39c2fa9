"""
Preview Routes
==============

Single-creative endpoints: the assembled HTML document, a PNG capture, and
the layer summary of one template size.
"""

from typing import Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, Response

from adrender.api.dependencies import get_current_settings, get_document_builder, get_template_store
from adrender.config.logging import get_logger
from adrender.config.settings import Settings
from adrender.core.manifest import apply_dynamic_values, available_sizes, describe, parse_manifest, summarize
from adrender.core.rendering import BrowserSession, DocumentBuilder, PathContext, PlaywrightPNGGenerator
from adrender.core.templates import TemplateStore
from adrender.models.schemas import AdSize, LayerSummaryResponse, PreviewRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Preview"])


def parse_size(size: str, settings: Settings) -> AdSize:
    """Parse a size label, rejecting malformed or oversized values with 400."""
    try:
        parsed = AdSize.parse(size)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if parsed.width > settings.max_width or parsed.height > settings.max_height:
        raise HTTPException(
            status_code=400,
            detail=f"Size {size} exceeds the {settings.max_width}x{settings.max_height} limit",
        )
    return parsed


async def build_document(
    request: PreviewRequest,
    store: TemplateStore,
    builder: DocumentBuilder,
    settings: Settings,
    context: PathContext,
) -> Tuple[str, AdSize]:
    size = parse_size(request.size, settings)
    bundle = store.load(request.template_path, size.label)
    manifest = parse_manifest(bundle.manifest_source)
    applied = apply_dynamic_values(manifest, request.data)
    html = await builder.build(
        bundle,
        applied.manifest,
        applied.injections,
        context=context,
        absolutize=request.absolutize_paths,
    )
    return html, size


@router.post("/preview", response_class=HTMLResponse)
async def preview_document(
    request: PreviewRequest,
    store: TemplateStore = Depends(get_template_store),
    builder: DocumentBuilder = Depends(get_document_builder),
    settings: Settings = Depends(get_current_settings),
) -> HTMLResponse:
    """Self-contained preview document with the data applied."""
    html, size = await build_document(request, store, builder, settings, PathContext.PREVIEW)
    logger.info("Preview built", template=request.template_path, size=size.label, html_length=len(html))
    return HTMLResponse(content=html)


@router.post("/render")
async def render_png(
    request: PreviewRequest,
    store: TemplateStore = Depends(get_template_store),
    builder: DocumentBuilder = Depends(get_document_builder),
    settings: Settings = Depends(get_current_settings),
) -> Response:
    """Capture one creative as PNG with a browser launched for this request."""
    html, size = await build_document(request, store, builder, settings, PathContext.RENDER)

    async with BrowserSession() as session:
        generator = PlaywrightPNGGenerator(session)
        result = await generator.render(html, generator.default_options(size.width, size.height))

    return Response(
        content=result.png_data,
        media_type="image/png",
        headers={
            "X-Ready-Observed": str(result.ready_observed).lower(),
            "X-Page-Errors": str(len(result.page_errors)),
        },
    )


@router.get("/layers", response_model=LayerSummaryResponse)
async def list_layers(
    template: str = Query(..., min_length=1, description="Template path"),
    size: str = Query(..., description="Size label, e.g. 300x250"),
    store: TemplateStore = Depends(get_template_store),
    settings: Settings = Depends(get_current_settings),
) -> LayerSummaryResponse:
    """Addressable layers of a template size, for building layer modifications."""
    parsed = parse_size(size, settings)
    manifest = parse_manifest(store.load(template, parsed.label).manifest_source)
    return LayerSummaryResponse(
        template_path=template,
        size=parsed.label,
        layers=summarize(manifest),
        description=describe(manifest),
        available_sizes=available_sizes(manifest),
    )
