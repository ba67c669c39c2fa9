"""
Layer Model & Transformer
=========================

Identity and geometry operations on manifest layers. Every operation is pure:
inputs are never mutated, modified manifests are deep copies.
"""

from typing import Any, Dict, Iterable, List, Optional
import math

from adrender.config.logging import get_logger
from adrender.models.schemas import Dimensions, LayerInfo, LayerModification, LayerType, Point
from .model import (
    CHILD_LAYER_MARKER,
    Manifest,
    is_child_layer,
    normalize_layer_name,
)

logger = get_logger(__name__)

# Scaled shots never shrink below one pixel in either dimension.
MIN_SHOT_DIMENSION = 1.0

ALL_SIZES = "all"

__all__ = [
    "CHILD_LAYER_MARKER",
    "MIN_SHOT_DIMENSION",
    "normalize_layer_name",
    "is_child_layer",
    "classify_layer",
    "summarize",
    "describe",
    "apply_modifications",
    "available_sizes",
]


def classify_layer(layer: Dict[str, Any]) -> LayerType:
    """Get the layer kind from its group flag and file type."""
    if layer.get("isGroup"):
        return LayerType.GROUP
    if layer.get("fileType") == "text":
        return LayerType.TEXT
    if layer.get("fileType") == "svg":
        return LayerType.SHAPE
    return LayerType.IMAGE


def summarize(manifest: Manifest) -> List[LayerInfo]:
    """
    Summarize every addressable layer.

    Child layers of compound CTA groups are left out; they are only reachable
    through their parent.

    Args:
        manifest: Parsed manifest

    Returns:
        One LayerInfo per non-child layer, in manifest order
    """
    summary: List[LayerInfo] = []
    for layer in manifest.layers:
        if not isinstance(layer, dict) or is_child_layer(layer.get("name")):
            continue

        shots = layer.get("shots") or []
        first_shot = shots[0] if shots and isinstance(shots[0], dict) else {}
        pos = first_shot.get("pos") or {}
        size = first_shot.get("size") or {}

        summary.append(
            LayerInfo(
                name=layer.get("name", ""),
                guid=None if layer.get("guid") is None else str(layer.get("guid")),
                type=classify_layer(layer),
                pos=Point(x=pos.get("x", 0), y=pos.get("y", 0)),
                size=Dimensions(w=size.get("w", 0), h=size.get("h", 0)),
                is_dynamic=bool(layer.get("isDynamic", False)),
            )
        )
    return summary


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def describe(manifest: Manifest) -> str:
    """Compact human-readable listing of the layer summary."""
    layers = summarize(manifest)
    if not layers:
        return "No layers available."

    lines = []
    for layer in layers:
        lines.append(
            f"- {layer.type.value} {layer.name}: "
            f"pos({_round_half_up(layer.pos.x)}, {_round_half_up(layer.pos.y)}) "
            f"size({_round_half_up(layer.size.w)}x{_round_half_up(layer.size.h)})"
        )
    return "\n".join(lines)


def available_sizes(manifest: Manifest) -> List[str]:
    """
    Sizes the manifest declares, as "WxH" labels in declaration order.

    Falls back to the single settings.width/height size; empty when neither
    is declared.
    """
    sizes = manifest.sizes
    if sizes is None:
        settings = manifest.settings or {}
        width, height = settings.get("width"), settings.get("height")
        if width and height:
            return [f"{_format_dimension(width)}x{_format_dimension(height)}"]
        return []

    return [
        f"{_format_dimension(size.get('width'))}x{_format_dimension(size.get('height'))}"
        for size in sizes
        if isinstance(size, dict)
    ]


def _format_dimension(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _size_filter(modification: LayerModification) -> Optional[set]:
    """Size labels a modification is restricted to, or None for every shot."""
    if not modification.sizes:
        return None
    labels = {size.strip().lower() for size in modification.sizes}
    if ALL_SIZES in labels:
        return None
    return labels


def _shot_size_label(shot: Dict[str, Any], position: int, sizes: List[str]) -> Optional[str]:
    index = shot.get("index", position)
    if isinstance(index, int) and 0 <= index < len(sizes):
        return sizes[index].lower()
    return None


def _apply_to_shot(shot: Dict[str, Any], modification: LayerModification) -> None:
    delta = modification.position_delta
    moves = delta is not None and (delta.x is not None or delta.y is not None)
    factor = modification.scale_factor
    scales = factor is not None and factor != 1
    if not (moves or scales):
        return

    pos = shot.setdefault("pos", {"x": 0, "y": 0})
    if delta is not None:
        if delta.x is not None:
            pos["x"] = pos.get("x", 0) + delta.x
        if delta.y is not None:
            pos["y"] = pos.get("y", 0) + delta.y

    if not scales:
        return

    size = shot.setdefault("size", {"w": 0, "h": 0})
    width, height = size.get("w", 0), size.get("h", 0)
    center_x = pos.get("x", 0) + width / 2
    center_y = pos.get("y", 0) + height / 2

    size["w"] = max(width * factor, MIN_SHOT_DIMENSION)
    size["h"] = max(height * factor, MIN_SHOT_DIMENSION)
    # The runtime sizes elements from initW/initH on first layout.
    if size.get("initW") is not None:
        size["initW"] = max(size["initW"] * factor, MIN_SHOT_DIMENSION)
    if size.get("initH") is not None:
        size["initH"] = max(size["initH"] * factor, MIN_SHOT_DIMENSION)

    pos["x"] = center_x - size["w"] / 2
    pos["y"] = center_y - size["h"] / 2


def apply_modifications(
    manifest: Manifest, modifications: Iterable[LayerModification]
) -> Manifest:
    """
    Apply layer modifications to a deep copy of the manifest.

    Each modification targets one layer by case-insensitive name; unknown
    names are skipped. Position deltas are added to every selected shot, and
    a scale factor resizes the shot around its center. Modifications to the
    same layer compound in the order given.

    Args:
        manifest: Base manifest (left untouched)
        modifications: Modifications to apply, in order

    Returns:
        Modified copy of the manifest
    """
    result = manifest.clone()
    sizes = available_sizes(result)

    for modification in modifications:
        layer = result.find_layer(modification.layer_name)
        if layer is None:
            logger.debug("Layer modification skipped", layer_name=modification.layer_name)
            continue

        wanted_sizes = _size_filter(modification)
        for position, shot in enumerate(layer.get("shots") or []):
            if not isinstance(shot, dict):
                continue
            if wanted_sizes is not None and _shot_size_label(shot, position, sizes) not in wanted_sizes:
                continue
            _apply_to_shot(shot, modification)

    return result
