"""
Manifest Processing Module
==========================

Script-based ad manifest handling.

Components:
- model: The Manifest tree wrapper
- parser: Object-literal tokenizer, parser and structural validation
- layers: Layer summaries and geometric modifications
- dynamic_values: Campaign/product data merge
- serializer: Manifest tree back to manifest.js text
"""

from .model import Manifest
from .parser import ParseError, ManifestValidationError, parse_manifest
from .serializer import serialize_manifest
from .layers import (
    summarize,
    describe,
    apply_modifications,
    available_sizes,
)
from .dynamic_values import AppliedManifest, apply_dynamic_values

__all__ = [
    "Manifest",
    "ParseError",
    "ManifestValidationError",
    "parse_manifest",
    "serialize_manifest",
    "summarize",
    "describe",
    "apply_modifications",
    "available_sizes",
    "AppliedManifest",
    "apply_dynamic_values",
]
