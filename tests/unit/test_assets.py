"""
Unit Tests for Asset Fetcher
============================
"""

import base64
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from adrender.core.export.assets import AssetFetchError, AssetFetcher, decode_data_uri
from tests.conftest import PNG_BYTES


def mock_http_session(status=200, body=b"image-bytes", content_type="image/jpeg; charset=binary"):
    response = MagicMock()
    response.status = status
    response.headers = {"Content-Type": content_type} if content_type else {}
    response.read = AsyncMock(return_value=body)

    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    session.get.return_value.__aenter__ = AsyncMock(return_value=response)
    session.get.return_value.__aexit__ = AsyncMock(return_value=False)
    return session


@pytest.fixture
def fetcher(public_root):
    """Create asset fetcher rooted at the test public folder."""
    return AssetFetcher(public_root=public_root, timeout=1.0)


class TestDecodeDataUri:
    """Test data URI decoding."""

    def test_base64_payload(self):
        uri = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")
        asset = decode_data_uri(uri)
        assert asset.data == PNG_BYTES
        assert asset.content_type == "image/png"

    def test_percent_encoded_payload(self):
        asset = decode_data_uri("data:,hello%20world")
        assert asset.data == b"hello world"
        assert asset.content_type == "text/plain"

    def test_invalid_base64(self):
        with pytest.raises(AssetFetchError):
            decode_data_uri("data:image/png;base64,@@@")

    def test_not_a_data_uri(self):
        with pytest.raises(AssetFetchError):
            decode_data_uri("data-image")

    def test_data_uri_round_trip(self):
        asset = decode_data_uri("data:image/gif;base64,R0lG")
        assert asset.data_uri == "data:image/gif;base64,R0lG"


class TestAssetFetcher:
    """Test fetching by reference kind."""

    @pytest.mark.asyncio
    async def test_local_file(self, fetcher):
        asset = await fetcher.fetch("/images/product.png?v=3")
        assert asset.data == PNG_BYTES
        assert asset.content_type == "image/png"

    @pytest.mark.asyncio
    async def test_local_traversal_rejected(self, fetcher):
        with pytest.raises(AssetFetchError, match="not found"):
            await fetcher.fetch("/../../etc/passwd")

    @pytest.mark.asyncio
    async def test_missing_local_file(self, fetcher):
        with pytest.raises(AssetFetchError):
            await fetcher.fetch("/images/missing.png")

    @pytest.mark.asyncio
    async def test_remote_download(self, fetcher):
        session = mock_http_session()
        fetcher._get_session = AsyncMock(return_value=session)

        asset = await fetcher.fetch("https://cdn.test/p.jpg")

        assert asset.data == b"image-bytes"
        assert asset.content_type == "image/jpeg"
        session.get.assert_called_once_with("https://cdn.test/p.jpg")

    @pytest.mark.asyncio
    async def test_protocol_relative_uses_https(self, fetcher):
        session = mock_http_session()
        fetcher._get_session = AsyncMock(return_value=session)

        await fetcher.fetch("//cdn.test/p.jpg")

        session.get.assert_called_once_with("https://cdn.test/p.jpg")

    @pytest.mark.asyncio
    async def test_content_type_guessed_from_extension(self, fetcher):
        fetcher._get_session = AsyncMock(return_value=mock_http_session(content_type=None))
        asset = await fetcher.fetch("https://cdn.test/p.png?w=200")
        assert asset.content_type == "image/png"

    @pytest.mark.asyncio
    async def test_http_error_status(self, fetcher):
        fetcher._get_session = AsyncMock(return_value=mock_http_session(status=404))
        with pytest.raises(AssetFetchError, match="HTTP 404"):
            await fetcher.fetch("https://cdn.test/missing.jpg")

    @pytest.mark.asyncio
    async def test_connection_error(self, fetcher):
        session = mock_http_session()
        session.get.side_effect = aiohttp.ClientConnectionError("refused")
        fetcher._get_session = AsyncMock(return_value=session)

        with pytest.raises(AssetFetchError, match="refused"):
            await fetcher.fetch("https://cdn.test/p.jpg")

    @pytest.mark.asyncio
    async def test_results_cached(self, fetcher):
        session = mock_http_session()
        fetcher._get_session = AsyncMock(return_value=session)

        first = await fetcher.fetch("https://cdn.test/p.jpg")
        second = await fetcher.fetch("https://cdn.test/p.jpg")

        assert first is second
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_unsupported_reference(self, fetcher):
        with pytest.raises(AssetFetchError, match="Unsupported"):
            await fetcher.fetch("images/relative.png")

    @pytest.mark.asyncio
    async def test_fetch_data_uri(self, fetcher):
        uri = await fetcher.fetch_data_uri("/images/product.png")
        assert uri.startswith("data:image/png;base64,")
        assert await fetcher.fetch_data_uri("data:,x") == "data:,x"

    @pytest.mark.asyncio
    async def test_close_session(self, fetcher):
        session = mock_http_session()
        fetcher._session = session
        async with fetcher:
            pass
        session.close.assert_awaited_once()
        assert fetcher._session is None
