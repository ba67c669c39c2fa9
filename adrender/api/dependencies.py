"""
Route Dependencies
==================

Shared collaborators injected into route handlers, overridable in tests.
"""

from adrender.config.settings import Settings, get_settings
from adrender.core.export import ExportOrchestrator
from adrender.core.rendering import DocumentBuilder
from adrender.core.templates import TemplateStore

_template_store = None


def get_current_settings() -> Settings:
    """Dependency to get current settings."""
    return get_settings()


def get_template_store() -> TemplateStore:
    """Process-wide template store, so its text cache is shared across requests."""
    global _template_store
    if _template_store is None:
        _template_store = TemplateStore()
    return _template_store


def get_document_builder() -> DocumentBuilder:
    return DocumentBuilder()


def get_orchestrator() -> ExportOrchestrator:
    """A fresh orchestrator per request; it owns that request's browser."""
    return ExportOrchestrator()
