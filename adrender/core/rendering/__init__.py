"""
Rendering Module
================

Document assembly, asset path resolution and headless PNG capture.
"""

from .path_resolver import PathContext, inject_base_tag, absolutize_references, resolve_paths
from .document_builder import DocumentBuilder, DocumentBuildError
from .png_generator import (
    BrowserSession,
    PlaywrightPNGGenerator,
    PNGGenerationError,
    RenderTimeoutError,
)

__all__ = [
    "PathContext",
    "inject_base_tag",
    "absolutize_references",
    "resolve_paths",
    "DocumentBuilder",
    "DocumentBuildError",
    "BrowserSession",
    "PlaywrightPNGGenerator",
    "PNGGenerationError",
    "RenderTimeoutError",
]
