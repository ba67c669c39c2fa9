"""
Template Store
==============

Read access to template folders laid out as
``{templates_root}/{template}/{size}/index.html`` plus ``manifest.js`` and
the creative's local assets.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from adrender.config.logging import get_logger
from adrender.config.settings import get_settings
from adrender.models.schemas import SIZE_PATTERN, SizeInfo

logger = get_logger(__name__)

SIZE_NAMES: Dict[str, str] = {
    "300x250": "Medium Rectangle",
    "728x90": "Leaderboard",
    "160x600": "Wide Skyscraper",
    "300x600": "Half Page",
    "320x50": "Mobile Banner",
    "320x100": "Large Mobile Banner",
    "970x250": "Billboard",
    "970x90": "Large Leaderboard",
    "1080x1080": "Instagram Square",
    "1080x1920": "Instagram Story",
    "2048x2048": "High-Res Square",
}


class MissingTemplateError(Exception):
    """Exception raised when a template or one of its size folders does not exist."""

    pass


def size_display_name(size: str) -> str:
    return SIZE_NAMES.get(size, size)


@dataclass
class TemplateBundle:
    """One size folder of a template, with its document and manifest text loaded."""

    template_path: str
    size: str
    folder: Path
    document: str
    manifest_source: str
    _store: Any = field(default=None, repr=False, compare=False)

    def _resolve(self, relative: str) -> Optional[Path]:
        candidate = (self.folder / relative.split("?", 1)[0].split("#", 1)[0]).resolve()
        if not candidate.is_relative_to(self.folder.resolve()) or not candidate.is_file():
            return None
        return candidate

    def has_file(self, relative: str) -> bool:
        return self._resolve(relative) is not None

    def read_text(self, relative: str) -> Optional[str]:
        """Text of a file inside the folder, or None when absent or outside it."""
        path = self._resolve(relative)
        if path is None:
            return None
        if self._store is not None:
            return self._store.read_text(path)
        return path.read_text(encoding="utf-8")

    def read_bytes(self, relative: str) -> Optional[bytes]:
        path = self._resolve(relative)
        return path.read_bytes() if path is not None else None

    def iter_files(self) -> Iterator[Tuple[str, Path]]:
        """Non-hidden files of the folder as (posix relative name, path), sorted."""
        for path in sorted(self.folder.rglob("*")):
            relative = path.relative_to(self.folder)
            if any(part.startswith(".") for part in relative.parts) or not path.is_file():
                continue
            yield relative.as_posix(), path


class TemplateStore:
    """
    Template folder access with a text cache.

    Raw file text is cached by path and modification time, so edits on disk
    are picked up on the next load. Parsed manifests are never cached.
    """

    def __init__(self, root: Optional[Path] = None):
        self.settings = get_settings()
        self.root = Path(root) if root is not None else Path(self.settings.templates_root)
        self.logger: Any = logger.bind(component="template_store")
        self._text_cache: Dict[Path, Tuple[float, str]] = {}

    def is_available(self) -> bool:
        return self.root.is_dir()

    def template_dir(self, template_path: str) -> Path:
        """
        Resolve a template path under the templates root.

        Raises:
            MissingTemplateError: If the folder does not exist or escapes the root
        """
        root = self.root.resolve()
        folder = (root / template_path.strip("/")).resolve()
        if not folder.is_relative_to(root) or folder == root or not folder.is_dir():
            raise MissingTemplateError(f"Template not found: {template_path}")
        return folder

    def read_text(self, path: Path) -> str:
        """Read a file through the modification-time cache."""
        mtime = path.stat().st_mtime
        cached = self._text_cache.get(path)
        if cached is not None and cached[0] == mtime:
            return cached[1]

        text = path.read_text(encoding="utf-8")
        self._text_cache[path] = (mtime, text)
        return text

    def load(self, template_path: str, size: str) -> TemplateBundle:
        """
        Load one size folder of a template.

        Args:
            template_path: Template path relative to the templates root
            size: Size label, e.g. "300x250"

        Returns:
            TemplateBundle with document and manifest text

        Raises:
            MissingTemplateError: If the template, the size folder or either file is missing
        """
        folder = self.template_dir(template_path) / size
        document_path = folder / self.settings.document_filename
        manifest_path = folder / self.settings.manifest_filename

        if not document_path.is_file() or not manifest_path.is_file():
            raise MissingTemplateError(
                f"Template {template_path} has no {size} variant "
                f"({self.settings.document_filename} and {self.settings.manifest_filename} required)"
            )

        try:
            document = self.read_text(document_path)
            manifest_source = self.read_text(manifest_path)
        except (OSError, UnicodeDecodeError) as e:
            raise MissingTemplateError(f"Failed to read template {template_path}/{size}: {e}")

        self.logger.debug("Template loaded", template=template_path, size=size)
        return TemplateBundle(
            template_path=template_path,
            size=size,
            folder=folder,
            document=document,
            manifest_source=manifest_source,
            _store=self,
        )

    def list_sizes(self, template_path: str, include_unavailable: bool = False) -> List[SizeInfo]:
        """
        List the size folders of a template, smallest width first.

        Only folders named like "WxH" are considered. A size is available when
        its folder holds both the document and the manifest.
        """
        folder = self.template_dir(template_path)
        sizes: List[SizeInfo] = []

        for entry in folder.iterdir():
            match = SIZE_PATTERN.match(entry.name)
            if not entry.is_dir() or not match:
                continue

            available = (entry / self.settings.document_filename).is_file() and (
                entry / self.settings.manifest_filename
            ).is_file()
            if not available and not include_unavailable:
                continue

            width, height = int(match.group(1)), int(match.group(2))
            sizes.append(
                SizeInfo(
                    id=entry.name,
                    name=size_display_name(entry.name),
                    dimensions=f"{width} × {height}",
                    width=width,
                    height=height,
                    available=available,
                )
            )

        sizes.sort(key=lambda s: (s.width, s.height))
        return sizes
