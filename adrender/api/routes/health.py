"""
Health Routes
=============

FastAPI routes for health check endpoints.
"""

from fastapi import APIRouter, Depends

from adrender.api.dependencies import get_current_settings, get_template_store
from adrender.config.logging import get_logger
from adrender.config.settings import Settings
from adrender.core.templates import TemplateStore
from adrender.models.schemas import HealthStatus

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthStatus)
async def health_check(
    store: TemplateStore = Depends(get_template_store),
    settings: Settings = Depends(get_current_settings),
) -> HealthStatus:
    """Service is up; degraded when the templates folder is unreadable."""
    templates_ok = store.is_available()
    status = "healthy" if templates_ok else "degraded"
    if not templates_ok:
        logger.warning("Templates root not available", templates_root=str(store.root))
    return HealthStatus(status=status, version=settings.app_version, templates_root=templates_ok)
