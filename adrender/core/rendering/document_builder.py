"""
Document Builder
================

Assembles the HTML document for one render job from a template folder, a
modified manifest and the runtime injections produced by dynamic values.
"""

from typing import Any, Dict, List, Optional
from pathlib import Path
import json
import re

import jinja2

from adrender.config.logging import get_logger
from adrender.config.settings import get_settings
from adrender.core.manifest import Manifest, serialize_manifest
from adrender.core.templates import TemplateBundle
from adrender.models.schemas import FontDetail, RuntimeInjections
from .path_resolver import PathContext, is_resolved, resolve_paths

logger = get_logger(__name__)

FONT_FORMATS = {
    "woff2": ("woff2", "font/woff2"),
    "woff": ("woff", "font/woff"),
    "ttf": ("truetype", "font/ttf"),
    "otf": ("opentype", "font/otf"),
}

HEADER_FONT_SELECTORS = [".maincopy", ".ctaCopy"]
BODY_FONT_SELECTORS = [".subcopy"]
ALL_COPY_SELECTORS = [".maincopy", ".subcopy", ".ctaCopy"]

# Remote runtime libraries swapped for a local copy from the template folder.
LOCAL_LIBRARY_FILES = {"gsap": "gsap.min.js"}

HEX_COLOR = re.compile(r"^[0-9a-fA-F]{3,8}$")
HEAD_CLOSE = re.compile(r"</head>", re.IGNORECASE)
SCRIPT_CLOSE = re.compile(r"</script", re.IGNORECASE)
LOCAL_SCRIPT_PATTERN = re.compile(
    r"<script\b[^>]*?\bsrc\s*=\s*[\"']([^\"']+?\.js)(?:\?[^\"']*)?[\"'][^>]*>\s*</script>",
    re.IGNORECASE,
)


class DocumentBuildError(Exception):
    """Exception raised when a document cannot be assembled."""

    pass


def js_string(value: str) -> str:
    """Script string literal that is safe inside an inline script element."""
    return json.dumps(value, ensure_ascii=False).replace("</", "<\\/")


def inline_script(source: str) -> str:
    return "<script>" + SCRIPT_CLOSE.sub(lambda m: "<\\/" + m.group(0)[2:], source) + "</script>"


class DocumentBuilder:
    """Builds render-ready or export-ready template documents."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self.logger: Any = logger.bind(component="document_builder")
        self._setup_jinja2_environment()

    def _setup_jinja2_environment(self) -> None:
        """Setup Jinja2 environment for the injected CSS blocks."""
        template_dir = Path(__file__).parent / "templates"
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            autoescape=jinja2.select_autoescape(["html", "xml"]),
            enable_async=True,
        )

        def css_string(value: str) -> str:
            """Escape a value for a double-quoted CSS string."""
            return (
                str(value)
                .replace("\\", "\\\\")
                .replace('"', '\\"')
                .replace("\n", "\\a ")
                .replace("<", "\\3c ")
            )

        self.env.filters["css_string"] = css_string

    async def build(
        self,
        bundle: TemplateBundle,
        manifest: Manifest,
        injections: Optional[RuntimeInjections] = None,
        context: PathContext = PathContext.RENDER,
        base_url: Optional[str] = None,
        absolutize: bool = True,
    ) -> str:
        """
        Build the document for one job.

        Render and preview documents are self-contained: the manifest and
        local scripts are inlined and asset paths resolve against the
        template URL. Static export documents keep their script references
        and additionally carry palette utility classes.

        Args:
            bundle: Loaded template size folder
            manifest: Modified manifest to embed
            injections: Color and font side channel
            context: Loading context of the document
            base_url: Base URL for asset references (defaults to the template URL)
            absolutize: Also rewrite relative references in addition to the base tag

        Returns:
            HTML document text

        Raises:
            DocumentBuildError: If a CSS block cannot be rendered
        """
        injections = injections or RuntimeInjections()
        html = bundle.document

        if context != PathContext.STATIC_EXPORT:
            html = self._inline_manifest(html, manifest)
            html = self._inline_local_scripts(html, bundle)

        html = self.inject_runtime_data(html, injections)

        try:
            css_blocks = [await self.render_font_css(injections.fonts)]
            if context == PathContext.STATIC_EXPORT:
                css_blocks.append(await self.render_palette_css(injections.palette))
        except jinja2.TemplateError as e:
            raise DocumentBuildError(f"Failed to render injected CSS: {e}")

        css = "\n".join(block for block in css_blocks if block)
        if css:
            html = self._insert_before_head_close(html, css)

        if context != PathContext.STATIC_EXPORT:
            base = base_url or self.settings.template_base_url(bundle.template_path, bundle.size)
            html = resolve_paths(html, base, context, absolutize=absolutize)

        self.logger.debug(
            "Document built",
            template=bundle.template_path,
            size=bundle.size,
            context=context.value,
            html_length=len(html),
        )
        return html

    def _inline_manifest(self, html: str, manifest: Manifest) -> str:
        filename = re.escape(self.settings.manifest_filename)
        pattern = re.compile(
            rf"<script\b[^>]*?\bsrc\s*=\s*[\"'](?:\./)?{filename}(?:\?[^\"']*)?[\"'][^>]*>\s*</script>",
            re.IGNORECASE,
        )
        script = inline_script(serialize_manifest(manifest))
        html, count = pattern.subn(lambda _: script, html, count=1)
        if count == 0:
            self.logger.warning("Document does not reference the manifest script")
        return html

    def _inline_local_scripts(self, html: str, bundle: TemplateBundle) -> str:
        """Inline local scripts and swap known CDN libraries for local copies."""
        for library, filename in LOCAL_LIBRARY_FILES.items():
            local_copy = bundle.read_text(filename)
            if local_copy is None:
                continue
            pattern = re.compile(
                rf"<script\b[^>]*?\bsrc\s*=\s*[\"'](?:https?:)?//[^\"']*{re.escape(library)}[^\"']*[\"'][^>]*>\s*</script>",
                re.IGNORECASE,
            )
            html = pattern.sub(lambda _: inline_script(local_copy), html, count=1)

        def replace(match: "re.Match[str]") -> str:
            reference = match.group(1)
            if is_resolved(reference) or reference.startswith("//"):
                return match.group(0)
            source = bundle.read_text(reference)
            if source is None:
                self.logger.debug("Local script not found, left as reference", script=reference)
                return match.group(0)
            return inline_script(source)

        return LOCAL_SCRIPT_PATTERN.sub(replace, html)

    def runtime_statements(self, injections: RuntimeInjections) -> List[str]:
        statements = []
        if injections.color_override:
            statements.append(f'dynamicData["colors"] = {js_string(injections.color_override)};')
        for key, value in injections.extra_data.items():
            statements.append(f"dynamicData[{js_string(key)}] = {js_string(value)};")
        return statements

    def inject_runtime_data(self, html: str, injections: RuntimeInjections) -> str:
        """Insert color and extra data statements before the runtime picks up dynamicData."""
        statements = self.runtime_statements(injections)
        if not statements:
            return html

        runtime = re.escape(self.settings.runtime_variable)
        pattern = re.compile(rf"{runtime}\.dynamicData\s*=\s*dynamicData;")
        injection = "\n".join(statements)
        html, count = pattern.subn(lambda m: f"{injection}\n      {m.group(0)}", html, count=1)
        if count == 0:
            self.logger.warning(
                "Runtime data hook not found, colors not injected",
                runtime=self.settings.runtime_variable,
            )
        return html

    async def render_font_css(self, fonts: List[FontDetail]) -> str:
        """Render @font-face declarations and copy class rules for embeddable fonts."""
        faces: List[Dict[str, str]] = []
        for font in fonts:
            face = self._font_face(font)
            if face is not None:
                faces.append(face)
        if not faces:
            return ""

        if len(faces) == 1:
            rules = [{"selectors": ALL_COPY_SELECTORS, "family": faces[0]["family"]}]
        else:
            rules = [
                {"selectors": HEADER_FONT_SELECTORS, "family": faces[0]["family"]},
                {"selectors": BODY_FONT_SELECTORS, "family": faces[1]["family"]},
            ]

        template = self.env.get_template("fonts.css.j2")
        return await template.render_async(fonts=faces, rules=rules)

    def _font_face(self, font: FontDetail) -> Optional[Dict[str, str]]:
        if not font.is_embeddable or font.font_format is None:
            return None
        css_format, mime = FONT_FORMATS[font.font_format.value]
        if font.font_file_base64:
            data = font.font_file_base64
            source = data if data.startswith("data:") else f"data:{mime};base64,{data}"
        else:
            source = font.font_url or ""
        return {"family": font.font_family, "source": source, "format": css_format}

    async def render_palette_css(self, palette: List[str]) -> str:
        """Render palette utility classes for the valid hex colors."""
        colors = [color for color in palette if HEX_COLOR.match(color)]
        if not colors:
            return ""
        template = self.env.get_template("palette.css.j2")
        return await template.render_async(palette=colors)

    def _insert_before_head_close(self, html: str, block: str) -> str:
        html, count = HEAD_CLOSE.subn(lambda m: f"{block}\n{m.group(0)}", html, count=1)
        if count == 0:
            self.logger.warning("Document has no closing head tag, CSS not injected")
        return html
