"""
Unit Tests for Document Builder
===============================

Tests document assembly for render, preview and static export contexts.
"""

import pytest

from adrender.core.manifest import apply_dynamic_values, parse_manifest
from adrender.core.rendering import DocumentBuilder, PathContext
from adrender.models.schemas import DynamicValueData, FontDetail, RuntimeInjections, Typography

BASE = "http://assets.test/templates/social/Shopify/300x250"


@pytest.fixture
def builder():
    """Create document builder instance."""
    return DocumentBuilder()


@pytest.fixture
def bundle(template_store):
    return template_store.load("social/Shopify", "300x250")


@pytest.fixture
def manifest(bundle):
    return parse_manifest(bundle.manifest_source)


class TestRenderDocument:
    """Test self-contained render documents."""

    @pytest.mark.asyncio
    async def test_manifest_inlined(self, builder, bundle, manifest):
        applied = apply_dynamic_values(manifest, DynamicValueData(headline="Inlined headline"))
        html = await builder.build(bundle, applied.manifest)

        assert 'src="manifest.js"' not in html
        assert "window.manifest = {" in html
        assert "Inlined headline" in html

    @pytest.mark.asyncio
    async def test_local_scripts_inlined(self, builder, bundle, manifest):
        html = await builder.build(bundle, manifest)

        assert "var grid8player" in html
        assert "/* gsap local copy */" in html
        assert "cdnjs.cloudflare.com" not in html

    @pytest.mark.asyncio
    async def test_paths_resolved_against_template_url(self, builder, bundle, manifest):
        html = await builder.build(bundle, manifest)

        assert f'<base href="{BASE}/">' in html
        assert f'href="{BASE}/styles.css"' in html
        assert f'src="{BASE}/logo.png"' in html
        assert f"url('{BASE}/bg.jpg')" in html
        assert 'href="#top"' in html

    @pytest.mark.asyncio
    async def test_inlined_script_text_not_rewritten(self, builder, bundle):
        player = 'var grid8player = { start: function (p) { el.style.backgroundImage = "url(" + p + ")"; } };\n'
        (bundle.folder / "player.js").write_text(player, encoding="utf-8")
        manifest = parse_manifest(
            "window.manifest = {layers: [{name: 'bg', css: 'background: url(bg.png)', shots: [{}]}]};"
        )

        html = await builder.build(bundle, manifest)

        assert 'el.style.backgroundImage = "url(" + p + ")";' in html
        assert '"css": "background: url(bg.png)"' in html
        assert f"url('{BASE}/bg.jpg')" in html

    @pytest.mark.asyncio
    async def test_custom_base_url(self, builder, bundle, manifest):
        html = await builder.build(
            bundle, manifest, context=PathContext.PREVIEW, base_url="http://other.test/t"
        )
        assert '<base href="http://other.test/t/">' in html

    @pytest.mark.asyncio
    async def test_colors_injected_before_runtime_hook(self, builder, bundle, manifest):
        injections = RuntimeInjections(color_override="FF0000|00FF00", extra_data={"ctaColor": "4F46E5"})
        html = await builder.build(bundle, manifest, injections)

        colors = html.index('dynamicData["colors"] = "FF0000|00FF00";')
        cta = html.index('dynamicData["ctaColor"] = "4F46E5";')
        hook = html.index("grid8player.dynamicData = dynamicData;")
        assert colors < cta < hook

    @pytest.mark.asyncio
    async def test_font_css_before_head_close(self, builder, bundle, manifest):
        typography = Typography(
            header_font=FontDetail(font_family="Brand Sans", font_file_base64="AAAA", font_format="woff2")
        )
        applied = apply_dynamic_values(manifest, DynamicValueData(typography=typography))
        html = await builder.build(bundle, applied.manifest, applied.injections)

        assert '<style id="brand-fonts">' in html
        assert 'font-family: "Brand Sans";' in html
        assert 'src: url("data:font/woff2;base64,AAAA") format("woff2");' in html
        assert ".maincopy, .subcopy, .ctaCopy {" in html
        assert html.index('id="brand-fonts"') < html.index("</head>")

    @pytest.mark.asyncio
    async def test_no_palette_outside_static_export(self, builder, bundle, manifest):
        html = await builder.build(bundle, manifest, RuntimeInjections(palette=["FF0000"]))
        assert "brand-palette" not in html


class TestStaticExportDocument:
    """Test documents shipped next to their assets."""

    @pytest.mark.asyncio
    async def test_references_untouched(self, builder, bundle, manifest):
        html = await builder.build(bundle, manifest, context=PathContext.STATIC_EXPORT)

        assert '<script src="manifest.js"></script>' in html
        assert '<script src="player.js"></script>' in html
        assert "<base" not in html

    @pytest.mark.asyncio
    async def test_palette_classes(self, builder, bundle, manifest):
        injections = RuntimeInjections(palette=["FF0000", "not-a-color", "00ff00"])
        html = await builder.build(bundle, manifest, injections, context=PathContext.STATIC_EXPORT)

        assert "--brand-color-1: #FF0000;" in html
        assert "--brand-color-2: #00ff00;" in html
        assert ".brand-bg-2 { background-color: #00ff00; }" in html
        assert "not-a-color" not in html


class TestFontCss:
    """Test font declaration rendering."""

    @pytest.mark.asyncio
    async def test_header_and_body_rules(self, builder):
        fonts = [
            FontDetail(font_family="Head", font_url="https://fonts.test/h.ttf", font_format="ttf"),
            FontDetail(font_family="Body", font_file_base64="BBBB", font_format="otf"),
        ]
        css = await builder.render_font_css(fonts)

        assert 'src: url("https://fonts.test/h.ttf") format("truetype");' in css
        assert 'format("opentype")' in css
        assert '.maincopy, .ctaCopy {\n  font-family: "Head", sans-serif !important;' in css
        assert '.subcopy {\n  font-family: "Body", sans-serif !important;' in css

    @pytest.mark.asyncio
    async def test_family_is_escaped(self, builder):
        fonts = [FontDetail(font_family='Evil"</style>', font_file_base64="AAAA", font_format="woff")]
        css = await builder.render_font_css(fonts)
        assert css.count("</style>") == 1

    @pytest.mark.asyncio
    async def test_no_embeddable_fonts(self, builder):
        assert await builder.render_font_css([FontDetail(font_family="Arial")]) == ""
