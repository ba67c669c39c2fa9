"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides test settings, on-disk template folders, mock browser sessions,
and sample manifests.
"""

import os

os.environ.setdefault("ADRENDER_ENVIRONMENT", "testing")
os.environ.setdefault("ADRENDER_STORAGE_PATH", "./test_storage")

import shutil
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic_settings import SettingsConfigDict

import adrender.config.settings as settings_module
from adrender.config.settings import Settings


# Test settings override
class TestSettings(Settings):
    """Test-specific settings."""

    environment: str = "testing"
    debug: bool = True
    storage_path: Path = Path("./test_storage")
    public_base_url: str = "http://assets.test"
    playwright_headless: bool = True
    log_level: str = "DEBUG"
    fallback_delay_ms: int = 0
    settle_delay_ms: int = 0
    ready_timeout_ms: int = 50
    render_static_previews: bool = False

    model_config = SettingsConfigDict(env_file=".env.test", env_prefix="ADRENDER_")


# Installed before application modules are imported, so module-level
# get_settings() calls see the test settings.
settings_module.settings = TestSettings()

from adrender.core.manifest import parse_manifest  # noqa: E402
from adrender.core.templates import TemplateStore  # noqa: E402
from adrender.models.schemas import PNGResult  # noqa: E402
from tests.data.sample_manifests import (  # noqa: E402
    GSAP_JS,
    MULTI_SIZE_MANIFEST_JS,
    PLAYER_JS,
    STYLES_CSS,
    TEMPLATE_INDEX_HTML,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Test settings fixture."""
    return settings_module.get_settings()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp(prefix="adrender_test_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


def write_size_folder(folder: Path, manifest_js: str = MULTI_SIZE_MANIFEST_JS) -> None:
    folder.mkdir(parents=True, exist_ok=True)
    (folder / "index.html").write_text(TEMPLATE_INDEX_HTML, encoding="utf-8")
    (folder / "manifest.js").write_text(manifest_js, encoding="utf-8")
    (folder / "player.js").write_text(PLAYER_JS, encoding="utf-8")
    (folder / "gsap.min.js").write_text(GSAP_JS, encoding="utf-8")
    (folder / "styles.css").write_text(STYLES_CSS, encoding="utf-8")
    (folder / "logo.png").write_bytes(PNG_BYTES)
    (folder / ".DS_Store").write_bytes(b"hidden")


@pytest.fixture
def public_root(temp_dir: Path) -> Path:
    """
    Public folder with one template, `social/Shopify`, in three sizes.

    300x250 and 728x90 are complete; 160x600 lacks its manifest.
    """
    root = temp_dir / "public"
    template = root / "templates" / "social" / "Shopify"
    write_size_folder(template / "300x250")
    write_size_folder(template / "728x90")
    (template / "160x600").mkdir(parents=True)
    (template / "160x600" / "index.html").write_text(TEMPLATE_INDEX_HTML, encoding="utf-8")
    (template / "assets").mkdir()
    (root / "images").mkdir()
    (root / "images" / "product.png").write_bytes(PNG_BYTES)
    return root


@pytest.fixture
def templates_root(public_root: Path) -> Path:
    return public_root / "templates"


@pytest.fixture
def template_store(templates_root: Path) -> TemplateStore:
    return TemplateStore(root=templates_root)


@pytest.fixture
def sample_manifest():
    """Parsed multi-size manifest."""
    return parse_manifest(MULTI_SIZE_MANIFEST_JS)


@pytest.fixture
def png_result() -> PNGResult:
    return PNGResult(png_data=PNG_BYTES, width=300, height=250, file_size=len(PNG_BYTES))


@pytest.fixture
def mock_generator(png_result: PNGResult) -> MagicMock:
    """PNG generator whose renders return a fixed capture."""
    generator = MagicMock()
    generator.render = AsyncMock(return_value=png_result)
    generator.default_options = MagicMock(
        side_effect=lambda width, height: MagicMock(width=width, height=height)
    )
    return generator
