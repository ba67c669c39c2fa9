"""
Test Data Package
================

Sample manifest sources and template documents shared by the test suite.
"""

from .sample_manifests import (
    MULTI_SIZE_MANIFEST_JS,
    SINGLE_SIZE_MANIFEST_JS,
    EXOTIC_LITERAL_MANIFEST_JS,
    TEMPLATE_INDEX_HTML,
    PLAYER_JS,
    GSAP_JS,
    STYLES_CSS,
)

__all__ = [
    'MULTI_SIZE_MANIFEST_JS',
    'SINGLE_SIZE_MANIFEST_JS',
    'EXOTIC_LITERAL_MANIFEST_JS',
    'TEMPLATE_INDEX_HTML',
    'PLAYER_JS',
    'GSAP_JS',
    'STYLES_CSS',
]
