"""
Asset Fetcher
=============

Fetches product images, logos and other creative assets from data URIs,
files under the public folder, or remote URLs.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import unquote_to_bytes
import asyncio
import base64
import binascii
import mimetypes
import re

import aiohttp

from adrender.config.logging import get_logger
from adrender.config.settings import get_settings

logger = get_logger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:([^;,]*)((?:;[^;,]*)*?)(;base64)?,(.*)$", re.DOTALL)
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class AssetFetchError(Exception):
    """Exception raised when an asset cannot be fetched or decoded."""

    pass


@dataclass(frozen=True)
class FetchedAsset:
    """Raw bytes of a fetched asset with its media type."""

    data: bytes
    content_type: str

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


def decode_data_uri(uri: str) -> FetchedAsset:
    """
    Decode a data: URI.

    Raises:
        AssetFetchError: If the URI is malformed or its payload is not valid base64
    """
    match = DATA_URI_PATTERN.match(uri)
    if not match:
        raise AssetFetchError(f"Invalid data URI: {uri[:50]}")

    content_type = match.group(1) or "text/plain"
    payload = match.group(4)
    if match.group(3):
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AssetFetchError(f"Invalid base64 payload in data URI: {e}")
    else:
        data = unquote_to_bytes(payload)
    return FetchedAsset(data=data, content_type=content_type)


class AssetFetcher:
    """Fetches assets for one export request, sharing one HTTP session."""

    def __init__(self, public_root: Optional[Path] = None, timeout: Optional[float] = None):
        self.settings = get_settings()
        self.public_root = Path(public_root) if public_root is not None else Path(self.settings.public_root)
        self.timeout = timeout if timeout is not None else self.settings.asset_fetch_timeout
        self.logger: Any = logger.bind(component="asset_fetcher")
        self._session: Optional[aiohttp.ClientSession] = None
        self._cache: Dict[str, FetchedAsset] = {}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout, connect=min(10.0, self.timeout))
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "AssetFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def fetch(self, url: str) -> FetchedAsset:
        """
        Fetch an asset by reference.

        Supports data: URIs, paths starting with "/" (resolved under the
        public folder) and http(s) URLs. Results are cached per fetcher, so
        one asset is fetched once per export.

        Args:
            url: Asset reference

        Returns:
            FetchedAsset with bytes and media type

        Raises:
            AssetFetchError: If the asset is missing, unreachable or malformed
        """
        if not url:
            raise AssetFetchError("Empty asset reference")

        cached = self._cache.get(url)
        if cached is not None:
            return cached

        if url.startswith("data:"):
            asset = decode_data_uri(url)
        elif url.startswith("/") and not url.startswith("//"):
            asset = self._read_local(url)
        elif url.startswith(("http://", "https://", "//")):
            asset = await self._download("https:" + url if url.startswith("//") else url)
        else:
            raise AssetFetchError(f"Unsupported asset reference: {url[:80]}")

        self._cache[url] = asset
        self.logger.debug("Asset fetched", source=url[:80], size=len(asset.data), content_type=asset.content_type)
        return asset

    async def fetch_data_uri(self, url: str) -> str:
        """Fetch an asset and return it inlined as a base64 data URI."""
        if url.startswith("data:"):
            return url
        return (await self.fetch(url)).data_uri

    def _read_local(self, url: str) -> FetchedAsset:
        root = self.public_root.resolve()
        relative = url.split("?", 1)[0].lstrip("/")
        path = (root / relative).resolve()
        if not path.is_relative_to(root) or not path.is_file():
            raise AssetFetchError(f"Local asset not found: {url}")
        try:
            data = path.read_bytes()
        except OSError as e:
            raise AssetFetchError(f"Failed to read local asset {url}: {e}")
        content_type = mimetypes.guess_type(path.name)[0] or DEFAULT_CONTENT_TYPE
        return FetchedAsset(data=data, content_type=content_type)

    async def _download(self, url: str) -> FetchedAsset:
        try:
            session = await self._get_session()
            async with session.get(url) as response:
                if response.status != 200:
                    raise AssetFetchError(f"Failed to download {url}: HTTP {response.status}")
                data = await response.read()
                content_type = (
                    response.headers.get("Content-Type", "").split(";", 1)[0].strip()
                    or mimetypes.guess_type(url.split("?", 1)[0])[0]
                    or DEFAULT_CONTENT_TYPE
                )
        except AssetFetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            error_msg = f"Failed to download {url}: {e or type(e).__name__}"
            self.logger.warning("Asset download failed", url=url, error=error_msg)
            raise AssetFetchError(error_msg)

        return FetchedAsset(data=data, content_type=content_type)
