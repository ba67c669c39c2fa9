"""
Export Module
=============

Batch export of template creatives.

Components:
- assets: Data URI, local and remote asset fetching
- archive: In-memory zip sink
- jobs: Static and DPA export flows
- orchestrator: Partial-failure batch runner
"""

from .assets import AssetFetcher, AssetFetchError, FetchedAsset
from .archive import ArchiveWriter, ArchiveError
from .jobs import RenderJob, ExportFlow, StaticExportFlow, DpaExportFlow, product_data, slugify
from .orchestrator import ExportOrchestrator, ExportTimeoutError

__all__ = [
    "AssetFetcher",
    "AssetFetchError",
    "FetchedAsset",
    "ArchiveWriter",
    "ArchiveError",
    "RenderJob",
    "ExportFlow",
    "StaticExportFlow",
    "DpaExportFlow",
    "product_data",
    "slugify",
    "ExportOrchestrator",
    "ExportTimeoutError",
]
