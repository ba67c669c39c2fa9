"""
Ad Manifest Renderer
====================

Transformation and rendering pipeline for script-based ad-creative manifests.

This package provides:
- A permissive object-literal parser and serializer for manifest.js files
- Layer geometry edits and dynamic (campaign/product) value merging
- Document assembly and path resolution for preview and export contexts
- Headless PNG capture with Playwright
- Failure-tolerant batch export into zip archives
- FastAPI endpoints for export, preview and size listing
"""

__version__ = "1.0.0"
__author__ = "Ad Manifest Renderer Team"
