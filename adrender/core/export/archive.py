"""
Archive Writer
==============

In-memory zip sink for export batches. Entries are added as jobs complete;
the archive bytes only exist once the batch is finalized.
"""

from typing import Any, List, Optional, Union
import io
import zipfile

from adrender.config.logging import get_logger

logger = get_logger(__name__)


class ArchiveError(Exception):
    """Exception raised when the export archive cannot be written."""

    pass


class ArchiveWriter:
    """Zip archive built in memory."""

    def __init__(self, compression_level: int = 9):
        self.compression_level = compression_level
        self.logger: Any = logger.bind(component="archive_writer")
        self._buffer = io.BytesIO()
        self._entries: List[str] = []
        self._data: Optional[bytes] = None
        try:
            self._zip: Optional[zipfile.ZipFile] = zipfile.ZipFile(
                self._buffer, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level
            )
        except (OSError, ValueError) as e:
            raise ArchiveError(f"Failed to open archive: {e}")

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    @property
    def is_finalized(self) -> bool:
        return self._data is not None

    @staticmethod
    def normalize_name(name: str) -> str:
        """Archive entry names use forward slashes and never start at the root."""
        parts = [part for part in name.replace("\\", "/").split("/") if part not in ("", ".")]
        if not parts or ".." in parts:
            raise ArchiveError(f"Invalid archive entry name: {name!r}")
        return "/".join(parts)

    def add(self, name: str, content: Union[bytes, str]) -> str:
        """
        Add one entry.

        Args:
            name: Entry path inside the archive
            content: Entry bytes, or text written as UTF-8

        Returns:
            Normalized entry name

        Raises:
            ArchiveError: If the archive is finalized, the name is invalid, or the entry exists
        """
        if self._zip is None:
            raise ArchiveError("Archive already finalized")

        entry = self.normalize_name(name)
        if entry in self._entries:
            raise ArchiveError(f"Duplicate archive entry: {entry}")

        data = content.encode("utf-8") if isinstance(content, str) else content
        try:
            self._zip.writestr(entry, data)
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            raise ArchiveError(f"Failed to write archive entry {entry}: {e}")

        self._entries.append(entry)
        return entry

    def finalize(self) -> bytes:
        """Close the archive and return its bytes."""
        if self._data is not None:
            return self._data
        if self._zip is None:
            raise ArchiveError("Archive was discarded")

        try:
            self._zip.close()
        except (OSError, ValueError) as e:
            raise ArchiveError(f"Failed to finalize archive: {e}")
        finally:
            self._zip = None

        self._data = self._buffer.getvalue()
        self.logger.info("Archive finalized", entries=len(self._entries), size=len(self._data))
        return self._data

    def discard(self) -> None:
        """Drop a partial archive."""
        if self._zip is not None:
            self._zip.close()
            self._zip = None
        self._buffer = io.BytesIO()
        self.logger.debug("Archive discarded", entries=len(self._entries))
