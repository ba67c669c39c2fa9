"""
Dynamic Value Applier
=====================

Merges campaign or product data into a manifest. Textual and asset fields
replace layer content; colors and fonts go to a side channel the document
builder injects at runtime.
"""

from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from adrender.config.logging import get_logger
from adrender.models.schemas import DynamicValueData, RuntimeInjections
from .layers import apply_modifications
from .model import Manifest

logger = get_logger(__name__)

# Data field -> (layer name, runtime dynamic value name).
DYNAMIC_FIELD_BINDINGS: Dict[str, Tuple[str, str]] = {
    "headline": ("headline", "s0_headline"),
    "body": ("bodycopy", "s0_bodycopy"),
    "cta": ("cta", "s0_ctaText"),
    "price": ("price", "s0_price"),
    "label": ("label", "s0_label"),
    "image": ("image", "s0_imageUrl"),
    "logo": ("logo", "s0_logoUrl"),
}

CONTENT_KEYS = ("content", "text", "src")

MAX_OVERRIDE_COLORS = 3


class AppliedManifest(NamedTuple):
    """A modified manifest plus the runtime data that must not be serialized into it."""
    manifest: Manifest
    injections: RuntimeInjections


def _field_values(data: DynamicValueData) -> Dict[str, Optional[str]]:
    return {
        "headline": data.headline,
        "body": data.body_copy or data.body,
        "cta": data.cta_text or data.cta,
        "price": data.price,
        "label": data.label,
        "image": data.image_url or data.image,
        "logo": data.logo_url,
    }


def _content_key(layer: Dict[str, Any]) -> str:
    for key in CONTENT_KEYS:
        if key in layer:
            return key
    return "content"


def _set_default_value(manifest: Manifest, runtime_name: str, value: str) -> None:
    settings = manifest.settings
    if settings is None:
        return
    entries = settings.get("dynamicValues")
    if not isinstance(entries, list):
        return
    for entry in entries:
        if isinstance(entry, dict) and entry.get("name") == runtime_name:
            entry["defaultValue"] = value


def build_injections(data: DynamicValueData) -> RuntimeInjections:
    """Collect the color and font side channel for one data record."""
    palette: List[str] = [c for c in (data.colors or []) if isinstance(c, str) and c]
    color_override = "|".join(palette[:MAX_OVERRIDE_COLORS]) if palette else None

    extra_data: Dict[str, str] = {}
    for key, value in (
        ("labelColor", data.label_color),
        ("ctaColor", data.cta_color),
        ("bgColor", data.bg_color),
    ):
        if value:
            extra_data[key] = value

    fonts = []
    if data.typography is not None:
        fonts = [font for font in data.typography.font_details() if font.is_embeddable]

    return RuntimeInjections(
        color_override=color_override,
        extra_data=extra_data,
        fonts=fonts,
        palette=palette,
    )


def apply_dynamic_values(manifest: Manifest, data: DynamicValueData) -> AppliedManifest:
    """
    Apply dynamic value data to a copy of the manifest.

    Each bound field with a non-empty value replaces the content of the layer
    of the bound name, and the matching settings.dynamicValues default.
    Layer modifications in the data go through apply_modifications unchanged.

    Args:
        manifest: Base manifest (left untouched)
        data: Campaign or product data

    Returns:
        AppliedManifest with the modified manifest and runtime injections
    """
    result = apply_modifications(manifest, data.layer_modifications)

    values = _field_values(data)
    substituted = []
    for field, (layer_name, runtime_name) in DYNAMIC_FIELD_BINDINGS.items():
        value = values.get(field)
        if not isinstance(value, str) or not value:
            continue

        layer = result.find_layer(layer_name)
        if layer is not None:
            layer[_content_key(layer)] = value
            substituted.append(layer_name)
        _set_default_value(result, runtime_name, value)

    injections = build_injections(data)
    logger.debug(
        "Applied dynamic values",
        substituted=substituted,
        modifications=len(data.layer_modifications),
        has_color_override=injections.color_override is not None,
    )
    return AppliedManifest(manifest=result, injections=injections)
