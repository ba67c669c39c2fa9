"""
Manifest Model
==============

Thin wrapper over the parsed object tree of a manifest.js file.

The tree is kept as plain insertion-ordered dicts, lists and scalars so that
fields the pipeline does not know about survive a parse/serialize cycle in
their original order.
"""

import copy
from typing import Any, Dict, List, Optional

DEFAULT_VARIABLE = "window.manifest"

# Layers whose name carries this marker are children of a compound CTA group.
CHILD_LAYER_MARKER = "_cta"


def normalize_layer_name(name: Any) -> str:
    """Layer identity is the case-folded name."""
    return name.casefold() if isinstance(name, str) else ""


def is_child_layer(name: Any) -> bool:
    """Child layers are addressed only through their parent group."""
    return CHILD_LAYER_MARKER in normalize_layer_name(name)


class Manifest:
    """One ad-creative template: its layers and size variants."""

    def __init__(self, root: Dict[str, Any], variable: str = DEFAULT_VARIABLE):
        self.root = root
        self.variable = variable

    @property
    def layers(self) -> List[Dict[str, Any]]:
        layers = self.root.get("layers")
        return layers if isinstance(layers, list) else []

    @property
    def sizes(self) -> Optional[List[Dict[str, Any]]]:
        sizes = self.root.get("sizes")
        return sizes if isinstance(sizes, list) else None

    @property
    def settings(self) -> Optional[Dict[str, Any]]:
        settings = self.root.get("settings")
        return settings if isinstance(settings, dict) else None

    def find_layer(self, name: str) -> Optional[Dict[str, Any]]:
        """First layer whose name matches case-insensitively."""
        wanted = normalize_layer_name(name)
        for layer in self.layers:
            if isinstance(layer, dict) and normalize_layer_name(layer.get("name")) == wanted:
                return layer
        return None

    def clone(self) -> "Manifest":
        """Deep copy; all transforms work on a clone, never on the parsed original."""
        return Manifest(copy.deepcopy(self.root), self.variable)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Manifest):
            return NotImplemented
        return self.variable == other.variable and self.root == other.root

    def __repr__(self) -> str:
        return f"Manifest(variable={self.variable!r}, layers={len(self.layers)})"
