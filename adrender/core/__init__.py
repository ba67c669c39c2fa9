"""
Core Business Logic
==================

Manifest processing, rendering and export orchestration.

Components:
- manifest: Manifest parsing, layer transforms, dynamic values, serialization
- rendering: Document assembly, path resolution and PNG capture
- export: Asset fetching, archive writing and batch export
- templates: Template folder access
"""
