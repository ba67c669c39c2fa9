"""
Export Jobs
===========

Job builders and per-job processors for the two export flows:

- Static multi-size export: one job per (language, size) producing the
  rewritten template folder, ready to upload to an ad server.
- DPA export: one job per (language, product) producing a PNG capture of
  the product's creative plus the manifest and document it was rendered from.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
import re

from adrender.config.logging import get_logger
from adrender.config.settings import get_settings
from adrender.core.manifest import Manifest, apply_dynamic_values, parse_manifest, serialize_manifest
from adrender.core.rendering import DocumentBuilder, PathContext, PlaywrightPNGGenerator
from adrender.core.templates import TemplateBundle, TemplateStore
from adrender.models.schemas import (
    AdSize,
    BrandData,
    DpaExportRequest,
    DpaProduct,
    DynamicValueData,
    ExportKind,
    StaticExportRequest,
)
from .assets import AssetFetcher, AssetFetchError, FetchedAsset

logger = get_logger(__name__)

ArchiveEntry = Tuple[str, Union[bytes, str]]

DYNAMIC_IMAGE_FILE = "dynamicimage.png"
LOGO_FILE = "logo.png"
PREVIEW_FILE = "preview.png"
DEFAULT_LANGUAGE = "default"
MAX_SLUG_LENGTH = 50


def slugify(value: str, fallback: str = "product") -> str:
    """Lowercase, runs of non-alphanumerics collapsed to '_', at most 50 characters."""
    slug = re.sub(r"[^a-z0-9]+", "_", value.lower()).strip("_")[:MAX_SLUG_LENGTH]
    return slug or fallback


def safe_path_part(value: str) -> str:
    """Archive folder name for an arbitrary identifier."""
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", value).strip("._") or "item"


@dataclass
class RenderJob:
    """One unit of export work; produces the entries of one archive folder."""

    job_id: str
    template_path: str
    size: AdSize
    data: DynamicValueData
    folder: str = ""
    name: str = ""
    language: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def entry(self, filename: str) -> str:
        return f"{self.folder}/{filename}" if self.folder else filename


def localized_data(base: DynamicValueData, override: Optional[DynamicValueData]) -> DynamicValueData:
    """Overlay the fields a localization explicitly sets onto the base data."""
    if override is None:
        return base
    return base.model_copy(update={name: getattr(override, name) for name in override.model_fields_set})


class ExportFlow:
    """Common collaborators of an export flow."""

    kind: ExportKind

    def __init__(
        self,
        store: Optional[TemplateStore] = None,
        builder: Optional[DocumentBuilder] = None,
    ):
        self.settings = get_settings()
        self.store = store or TemplateStore()
        self.builder = builder or DocumentBuilder()
        self.fetcher: Optional[AssetFetcher] = None
        self.generator: Optional[PlaywrightPNGGenerator] = None
        self.logger: Any = logger.bind(component=f"{self.kind.value}_export")

    @property
    def needs_browser(self) -> bool:
        return True

    @property
    def compression_level(self) -> int:
        return self.settings.static_compression_level

    async def prepare(self, fetcher: AssetFetcher, generator: Optional[PlaywrightPNGGenerator]) -> None:
        """Bind per-request collaborators and load what every job shares."""
        self.fetcher = fetcher
        self.generator = generator

    def build_jobs(self) -> List[RenderJob]:
        raise NotImplementedError

    async def process(self, job: RenderJob) -> List[ArchiveEntry]:
        raise NotImplementedError

    async def _render_png(self, job: RenderJob, html: str) -> bytes:
        if self.generator is None:
            raise RuntimeError("No PNG generator bound to export flow")
        options = self.generator.default_options(job.size.width, job.size.height)
        result = await self.generator.render(html, options)
        return result.png_data


class StaticExportFlow(ExportFlow):
    """Rewrites template size folders with campaign data, one folder per language and size."""

    kind = ExportKind.STATIC

    def __init__(self, request: StaticExportRequest, **kwargs: Any):
        super().__init__(**kwargs)
        self.request = request
        self.sizes: List[AdSize] = []
        for size in map(AdSize.parse, request.sizes):
            if size.label not in {known.label for known in self.sizes}:
                self.sizes.append(size)
        self.image: Optional[FetchedAsset] = None
        self.logo: Optional[FetchedAsset] = None

    @property
    def needs_browser(self) -> bool:
        return self.settings.render_static_previews

    async def prepare(self, fetcher: AssetFetcher, generator: Optional[PlaywrightPNGGenerator]) -> None:
        await super().prepare(fetcher, generator)
        self.store.template_dir(self.request.template_path)

        values = self.request.dynamic_values
        self.image = await self._fetch_shared(values.image_url or values.image, DYNAMIC_IMAGE_FILE)
        self.logo = await self._fetch_shared(values.logo_url, LOGO_FILE)

    async def _fetch_shared(self, url: Optional[str], filename: str) -> Optional[FetchedAsset]:
        if not url or not url.strip():
            return None
        assert self.fetcher is not None
        try:
            return await self.fetcher.fetch(url.strip())
        except AssetFetchError as e:
            self.logger.warning("Shared asset not fetched, export continues without it", file=filename, error=str(e))
            return None

    def languages(self) -> List[str]:
        if self.request.localizations:
            return list(self.request.localizations)
        return [DEFAULT_LANGUAGE]

    def build_jobs(self) -> List[RenderJob]:
        languages = self.languages()
        use_subfolders = len(languages) > 1
        jobs = []

        for size in self.sizes:
            for language in languages:
                override = None
                if language != DEFAULT_LANGUAGE and self.request.localizations:
                    override = self.request.localizations[language]
                data = localized_data(self.request.dynamic_values, override)
                if self.request.layer_modifications is not None:
                    data = data.model_copy(update={"layer_modifications": self.request.layer_modifications})

                folder = f"{language}/{size.label}" if use_subfolders else size.label
                jobs.append(
                    RenderJob(
                        job_id=folder,
                        template_path=self.request.template_path,
                        size=size,
                        data=data,
                        folder=folder,
                        name=size.label,
                        language=None if language == DEFAULT_LANGUAGE else language,
                    )
                )
        return jobs

    async def process(self, job: RenderJob) -> List[ArchiveEntry]:
        """
        Produce the rewritten size folder for one job.

        manifest.js and index.html are rewritten; every other file is copied
        as-is except template files named like the assets this export adds.
        """
        bundle = self.store.load(job.template_path, job.size.label)
        manifest = parse_manifest(bundle.manifest_source)

        local_refs: Dict[str, Any] = {}
        if self.image is not None:
            local_refs.update(image_url=DYNAMIC_IMAGE_FILE, image=None)
        if self.logo is not None:
            local_refs["logo_url"] = LOGO_FILE
        applied = apply_dynamic_values(manifest, job.data.model_copy(update=local_refs))

        entries: List[ArchiveEntry] = []
        for name, path in bundle.iter_files():
            if (self.image is not None and name == DYNAMIC_IMAGE_FILE) or (
                self.logo is not None and name == LOGO_FILE
            ):
                continue
            if name == self.settings.manifest_filename:
                entries.append((job.entry(name), serialize_manifest(applied.manifest)))
            elif name == self.settings.document_filename:
                document = await self.builder.build(
                    bundle, applied.manifest, applied.injections, context=PathContext.STATIC_EXPORT
                )
                entries.append((job.entry(name), document))
            else:
                entries.append((job.entry(name), path.read_bytes()))

        if self.image is not None:
            entries.append((job.entry(DYNAMIC_IMAGE_FILE), self.image.data))
        if self.logo is not None:
            entries.append((job.entry(LOGO_FILE), self.logo.data))

        if self.generator is not None:
            entries.append((job.entry(PREVIEW_FILE), await self._preview(job, bundle, manifest)))

        self.logger.debug("Static job processed", job_id=job.job_id, entries=len(entries))
        return entries

    async def _preview(self, job: RenderJob, bundle: TemplateBundle, manifest: Manifest) -> bytes:
        """Capture the job's creative with its new assets inlined."""
        inline_refs: Dict[str, Any] = {}
        if self.image is not None:
            inline_refs.update(image_url=self.image.data_uri, image=None)
        if self.logo is not None:
            inline_refs["logo_url"] = self.logo.data_uri
        applied = apply_dynamic_values(manifest, job.data.model_copy(update=inline_refs))
        html = await self.builder.build(bundle, applied.manifest, applied.injections, context=PathContext.RENDER)
        return await self._render_png(job, html)


def product_data(product: DpaProduct, brand: BrandData) -> DynamicValueData:
    """Map a catalog product and the brand kit onto the dynamic value contract."""
    settings = get_settings()
    cta_text = product.cta_text or settings.default_cta_text
    return DynamicValueData(
        headline=product.title,
        body_copy=product.vendor or "",
        cta_text=cta_text,
        cta=cta_text,
        price=f"{product.currency} {product.price:.2f}",
        label=settings.default_label,
        image_url=product.image_url or "",
        logo_url=brand.logo_url,
        colors=brand.colors,
        label_color=brand.label_color or settings.default_label_color,
        cta_color=brand.cta_color or settings.default_cta_color,
        bg_color=brand.bg_color or settings.default_bg_color,
        typography=brand.typography,
    )


class DpaExportFlow(ExportFlow):
    """Captures one PNG per catalog product, per language."""

    kind = ExportKind.DPA

    def __init__(self, request: DpaExportRequest, **kwargs: Any):
        super().__init__(**kwargs)
        self.request = request
        self.size = AdSize.parse(request.size)
        self.bundle: Optional[TemplateBundle] = None
        self.manifest: Optional[Manifest] = None
        self.logo_uri: Optional[str] = None

    @property
    def compression_level(self) -> int:
        return self.settings.dpa_compression_level

    async def prepare(self, fetcher: AssetFetcher, generator: Optional[PlaywrightPNGGenerator]) -> None:
        await super().prepare(fetcher, generator)
        self.bundle = self.store.load(self.request.template_path, self.size.label)
        self.manifest = parse_manifest(self.bundle.manifest_source)

        logo_url = self.request.brand_data.logo_url
        if logo_url:
            try:
                self.logo_uri = await fetcher.fetch_data_uri(logo_url)
            except AssetFetchError as e:
                self.logger.warning("Brand logo not inlined, using its URL", error=str(e))
                self.logo_uri = logo_url

    def localized_products(self) -> List[Tuple[Optional[str], List[DpaProduct]]]:
        """Products per language, with translations merged over the originals."""
        if not self.request.localizations:
            return [(None, list(self.request.products))]

        result = []
        for language, localization in self.request.localizations.items():
            translations = {t.product_id: t for t in localization.products}
            products = []
            for product in self.request.products:
                translation = translations.get(product.id)
                if translation is not None:
                    product = product.model_copy(
                        update={
                            "title": translation.title,
                            "vendor": translation.vendor or product.vendor,
                            "cta_text": translation.cta_text or product.cta_text,
                        }
                    )
                products.append(product)
            result.append((language, products))
        return result

    def build_jobs(self) -> List[RenderJob]:
        localized = self.localized_products()
        use_subfolders = len(localized) > 1
        jobs = []

        for language, products in localized:
            seen: Dict[str, int] = {}
            for product in products:
                product_folder = safe_path_part(product.id)
                count = seen.get(product_folder, 0)
                seen[product_folder] = count + 1
                if count:
                    product_folder = f"{product_folder}_{count + 1}"

                folder = f"{language}/{product_folder}" if use_subfolders and language else product_folder
                jobs.append(
                    RenderJob(
                        job_id=folder,
                        template_path=self.request.template_path,
                        size=self.size,
                        data=product_data(product, self.request.brand_data),
                        folder=folder,
                        name=f"{slugify(product.title)}_{self.size.label}.png",
                        language=language,
                        metadata={"product_id": product.id},
                    )
                )
        return jobs

    async def process(self, job: RenderJob) -> List[ArchiveEntry]:
        """
        Render one product.

        The product image is fetched first and inlined; a failed fetch
        raises AssetFetchError and the product is skipped.
        """
        assert self.bundle is not None and self.manifest is not None and self.fetcher is not None

        updates: Dict[str, Any] = {}
        if job.data.image_url:
            image_uri = await self.fetcher.fetch_data_uri(job.data.image_url)
            updates.update(image_url=image_uri, image=image_uri)
        if self.logo_uri:
            updates["logo_url"] = self.logo_uri

        applied = apply_dynamic_values(self.manifest, job.data.model_copy(update=updates))
        html = await self.builder.build(self.bundle, applied.manifest, applied.injections, context=PathContext.RENDER)
        png = await self._render_png(job, html)

        self.logger.info("Product rendered", job_id=job.job_id, product_id=job.metadata.get("product_id"))
        return [
            (job.entry(job.name), png),
            (job.entry(self.settings.manifest_filename), serialize_manifest(applied.manifest)),
            (job.entry(self.settings.document_filename), html),
        ]
