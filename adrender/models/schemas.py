"""
Pydantic Models and Schemas
===========================

Core data models for the dynamic value contract, layer summaries, rendering,
export requests/responses, and internal data structures.
JSON-facing models accept the camelCase field names used by the studio UI.
"""

from typing import Optional, List, Dict, Any, Literal
from datetime import datetime, timezone
from enum import Enum
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

SIZE_PATTERN = re.compile(r"^(\d+)x(\d+)$")


# Enums
class LayerType(str, Enum):
    """Classified layer kinds."""
    IMAGE = "image"
    TEXT = "text"
    SHAPE = "shape"
    GROUP = "group"


class FontFormat(str, Enum):
    """Embeddable font formats."""
    WOFF2 = "woff2"
    WOFF = "woff"
    TTF = "ttf"
    OTF = "otf"


class ExportKind(str, Enum):
    """Export flows."""
    STATIC = "static"
    DPA = "dpa"


class CamelModel(BaseModel):
    """Base model that accepts both field names and camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# Geometry
class Point(BaseModel):
    """Layer position in pixels."""
    x: float = 0
    y: float = 0


class Dimensions(BaseModel):
    """Layer size in pixels."""
    w: float = 0
    h: float = 0


class AdSize(BaseModel):
    """One creative size variant, written as "WxH"."""
    width: int = Field(..., gt=0, description="Width in pixels")
    height: int = Field(..., gt=0, description="Height in pixels")

    @classmethod
    def parse(cls, value: str) -> "AdSize":
        """Parse a "WxH" size label."""
        match = SIZE_PATTERN.match(value.strip()) if value else None
        if not match:
            raise ValueError(f"Invalid size format '{value}'. Expected WxH (e.g., 1080x1080)")
        return cls(width=int(match.group(1)), height=int(match.group(2)))

    @property
    def label(self) -> str:
        return f"{self.width}x{self.height}"


# Layer Models
class LayerInfo(CamelModel):
    """Summary of one addressable (non-child) layer."""
    name: str = Field(..., description="Layer name")
    guid: Optional[str] = Field(None, description="Layer identifier")
    type: LayerType = Field(..., description="Classified layer type")
    pos: Point = Field(default_factory=Point, description="First shot position")
    size: Dimensions = Field(default_factory=Dimensions, description="First shot size")
    is_dynamic: bool = Field(False, alias="isDynamic", description="Content is replaced per campaign")


class PositionDelta(BaseModel):
    """Relative move; negative values move up/left."""
    x: Optional[float] = None
    y: Optional[float] = None


class LayerModification(CamelModel):
    """A geometric edit targeting one layer by case-insensitive name."""
    layer_name: str = Field(..., alias="layerName", description="Target layer name, e.g. 'logo'")
    position_delta: Optional[PositionDelta] = Field(None, alias="positionDelta")
    scale_factor: Optional[float] = Field(None, alias="scaleFactor", description="1.2 = 20% bigger")
    sizes: Optional[List[str]] = Field(None, description="['300x600', '300x250'] or ['all']")


# Typography
class FontDetail(CamelModel):
    """One brand font, either embedded bytes or a URL."""
    font_family: str = Field("system-ui", alias="fontFamily")
    font_file_base64: Optional[str] = Field(None, alias="fontFileBase64")
    font_url: Optional[str] = Field(None, alias="fontUrl")
    font_format: Optional[FontFormat] = Field(None, alias="fontFormat")
    is_system_font: bool = Field(True, alias="isSystemFont")

    @property
    def is_embeddable(self) -> bool:
        return bool((self.font_file_base64 or self.font_url) and self.font_format)


class Typography(CamelModel):
    """Header/body brand fonts; the flat primary* fields are the older single-font shape."""
    header_font: Optional[FontDetail] = Field(None, alias="headerFont")
    body_font: Optional[FontDetail] = Field(None, alias="bodyFont")
    primary_font_family: Optional[str] = Field(None, alias="primaryFontFamily")
    font_file_base64: Optional[str] = Field(None, alias="fontFileBase64")
    font_format: Optional[FontFormat] = Field(None, alias="fontFormat")
    is_system_font: bool = Field(False, alias="isSystemFont")

    def font_details(self) -> List[FontDetail]:
        """Fonts in declaration order, folding the single-font shape into a header font."""
        fonts: List[FontDetail] = []
        if self.header_font:
            fonts.append(self.header_font)
        elif self.font_file_base64:
            fonts.append(
                FontDetail(
                    font_family=self.primary_font_family or "sans-serif",
                    font_file_base64=self.font_file_base64,
                    font_format=self.font_format,
                    is_system_font=self.is_system_font,
                )
            )
        if self.body_font and not (
            fonts and fonts[0].font_family == self.body_font.font_family
        ):
            fonts.append(self.body_font)
        return fonts


# Dynamic Value Contract
class DynamicValueData(CamelModel):
    """Campaign or product data merged into a manifest. Unknown fields are ignored."""
    headline: Optional[str] = None
    body_copy: Optional[str] = Field(None, alias="bodyCopy")
    body: Optional[str] = None
    cta_text: Optional[str] = Field(None, alias="ctaText")
    cta: Optional[str] = None
    price: Optional[str] = None
    label: Optional[str] = None

    image_url: Optional[str] = Field(None, alias="imageUrl")
    image: Optional[str] = None
    logo_url: Optional[str] = Field(None, alias="logoUrl")

    colors: Optional[List[str]] = None
    label_color: Optional[str] = Field(None, alias="labelColor")
    cta_color: Optional[str] = Field(None, alias="ctaColor")
    bg_color: Optional[str] = Field(None, alias="bgColor")

    typography: Optional[Typography] = None
    layer_modifications: List[LayerModification] = Field(
        default_factory=list, alias="layerModifications"
    )

    @field_validator("colors", mode="before")
    @classmethod
    def strip_color_hashes(cls, v: Any) -> Any:
        """Colors travel as hex without '#'."""
        if isinstance(v, list):
            return [c.lstrip("#") if isinstance(c, str) else c for c in v]
        return v

    @field_validator("label_color", "cta_color", "bg_color", mode="before")
    @classmethod
    def strip_hash(cls, v: Any) -> Any:
        """Colors travel as hex without '#'."""
        if isinstance(v, str):
            return v.lstrip("#")
        return v


class RuntimeInjections(BaseModel):
    """Side-channel produced by applying dynamic values; never part of the manifest."""
    color_override: Optional[str] = Field(None, description="Palette as 'c1|c2|c3'")
    extra_data: Dict[str, str] = Field(default_factory=dict, description="Extra dynamicData keys")
    fonts: List[FontDetail] = Field(default_factory=list, description="Fonts to declare")
    palette: List[str] = Field(default_factory=list, description="Full palette for utility CSS")


# Rendering Models
class RenderOptions(BaseModel):
    """Options for capturing one creative."""
    width: int = Field(..., gt=0, le=4000, description="Render width")
    height: int = Field(..., gt=0, le=4000, description="Render height")
    device_scale_factor: float = Field(1.0, gt=0, le=3.0, description="Device pixel ratio")
    transparent_background: bool = Field(True, description="Omit the default white background")
    optimize_png: bool = Field(False, description="Re-encode PNG with Pillow")


class PNGResult(BaseModel):
    """Result of PNG generation."""
    png_data: bytes = Field(..., description="PNG binary data", exclude=True)
    width: int = Field(..., description="Image width")
    height: int = Field(..., description="Image height")
    file_size: int = Field(..., description="File size in bytes")
    ready_observed: bool = Field(True, description="False when the fallback delay was used")
    page_errors: List[str] = Field(default_factory=list, description="Script errors seen while rendering")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Generation metadata")


# Template Listing
class SizeInfo(BaseModel):
    """One size folder of a template."""
    id: str = Field(..., description="Size label, e.g. 300x250")
    name: str = Field(..., description="Human-readable size name")
    dimensions: str = Field(..., description="Display dimensions, e.g. '300 × 250'")
    width: int
    height: int
    available: bool = Field(True, description="Folder holds both document and manifest")


class SizeListResponse(BaseModel):
    sizes: List[SizeInfo] = Field(default_factory=list)


class LayerSummaryResponse(BaseModel):
    """Addressable layers of one template size."""
    template_path: str
    size: str
    layers: List[LayerInfo] = Field(default_factory=list)
    description: str = Field("", description="One line per layer")
    available_sizes: List[str] = Field(default_factory=list, description="Sizes the manifest declares")


# Export Requests
class StaticExportRequest(CamelModel):
    """Multi-size static export of one template."""
    template_path: str = Field(..., alias="templatePath", min_length=1)
    sizes: List[str] = Field(..., min_length=1)
    dynamic_values: DynamicValueData = Field(default_factory=DynamicValueData, alias="dynamicValues")
    layer_modifications: Optional[List[LayerModification]] = Field(None, alias="layerModifications")
    localizations: Optional[Dict[str, DynamicValueData]] = None


class DpaProduct(CamelModel):
    """One catalog product to render."""
    id: str
    title: str
    price: float
    currency: str = "USD"
    image_url: Optional[str] = Field(None, alias="imageUrl")
    vendor: Optional[str] = None
    cta_text: Optional[str] = Field(None, alias="ctaText")


class BrandData(CamelModel):
    """Brand kit shared by every product of a DPA export."""
    logo_url: Optional[str] = Field(None, alias="logoUrl")
    colors: Optional[List[str]] = None
    label_color: Optional[str] = Field(None, alias="labelColor")
    cta_color: Optional[str] = Field(None, alias="ctaColor")
    bg_color: Optional[str] = Field(None, alias="bgColor")
    typography: Optional[Typography] = None


class ProductTranslation(CamelModel):
    product_id: str = Field(..., alias="productId")
    title: str
    vendor: Optional[str] = None
    cta_text: Optional[str] = Field(None, alias="ctaText")


class DpaLocalization(CamelModel):
    products: List[ProductTranslation] = Field(default_factory=list)


class DpaExportRequest(CamelModel):
    """Bulk raster export of catalog products at one size."""
    template_path: str = Field(..., alias="templatePath", min_length=1)
    size: str
    products: List[DpaProduct] = Field(..., min_length=1)
    brand_data: BrandData = Field(default_factory=BrandData, alias="brandData")
    localizations: Optional[Dict[str, DpaLocalization]] = None


class PreviewRequest(CamelModel):
    """In-memory document (or single PNG) for one template size."""
    template_path: str = Field(..., alias="templatePath", min_length=1)
    size: str
    data: DynamicValueData = Field(default_factory=DynamicValueData)
    absolutize_paths: bool = Field(True, alias="absolutizePaths")


# Export Results
class JobFailure(BaseModel):
    """Record of a skipped job."""
    job_id: str = Field(..., description="Job identifier")
    error_type: str = Field(..., description="Exception class name")
    message: str = Field(..., description="Error message")


class ExportResult(BaseModel):
    """Outcome of an export batch; every submitted job appears exactly once."""
    kind: ExportKind
    archive_data: bytes = Field(b"", exclude=True)
    succeeded: List[str] = Field(default_factory=list, description="Job ids written to the archive")
    failures: List[JobFailure] = Field(default_factory=list, description="Skipped jobs")
    entries: List[str] = Field(default_factory=list, description="Archive entry names")
    processing_time: float = Field(0.0, description="Total processing time in seconds")

    @property
    def job_count(self) -> int:
        return len(self.succeeded) + len(self.failures)


# Error Models
class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")


class HealthStatus(BaseModel):
    """Health check status."""
    status: Literal["healthy", "unhealthy", "degraded"] = Field(..., description="Overall status")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = Field(..., description="Application version")
    templates_root: bool = Field(..., description="Templates folder is readable")
