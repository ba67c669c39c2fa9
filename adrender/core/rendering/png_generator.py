"""
PNG Generator
=============

Playwright-based still capture of ad documents. One browser session is
launched per export request; every render gets its own browser context,
sized to the creative and closed when the capture is done.
"""

from typing import Any, AsyncGenerator, Dict, List, Optional
from contextlib import asynccontextmanager
import asyncio
import io
import json
import time

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)
from PIL import Image  # type: ignore

from adrender.config.logging import get_logger
from adrender.config.settings import get_settings
from adrender.models.schemas import PNGResult, RenderOptions

logger = get_logger(__name__)


class PNGGenerationError(Exception):
    """Exception raised when PNG generation fails."""

    pass


class RenderTimeoutError(Exception):
    """Raised when a creative never signals that its first frame is composed."""

    pass


class BrowserSession:
    """A single Chromium instance with a bounded number of concurrent pages."""

    def __init__(self, concurrency: Optional[int] = None):
        self.settings = get_settings()
        self.concurrency = concurrency or self.settings.render_concurrency
        self.browser: Optional[Browser] = None
        self._playwright = None
        self._semaphore = asyncio.Semaphore(self.concurrency)
        self.logger: Any = logger.bind(component="browser_session")

    @property
    def is_started(self) -> bool:
        return self.browser is not None

    async def start(self) -> None:
        """Launch the browser."""
        if self.browser is not None:
            return
        try:
            self._playwright = await async_playwright().start()
            self.browser = await self._playwright.chromium.launch(
                headless=self.settings.playwright_headless,
                args=[
                    "--no-sandbox",
                    "--disable-setuid-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-web-security",
                    "--font-render-hinting=none",
                ],
            )
            self.logger.info("Browser session started", concurrency=self.concurrency)
        except Exception as e:
            self.logger.error("Failed to start browser session", error=str(e))
            await self.close()
            raise PNGGenerationError(f"Browser launch failed: {e}")

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        try:
            if self.browser is not None:
                await self.browser.close()
        finally:
            self.browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
        self.logger.info("Browser session closed")

    @asynccontextmanager
    async def slot(self) -> AsyncGenerator[Browser, None]:
        """Acquire one of the session's page slots."""
        async with self._semaphore:
            if self.browser is None:
                raise PNGGenerationError("Browser session not started")
            yield self.browser

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class PlaywrightPNGGenerator:
    """Renders documents to PNG, waiting for the ad runtime's ready flag."""

    def __init__(self, session: Optional[BrowserSession] = None):
        self.settings = get_settings()
        self.logger: Any = logger.bind(generator="playwright")
        self.session = session or BrowserSession()
        self._own_session = session is None

    async def initialize(self) -> None:
        """Start the browser session if this generator owns it."""
        if self._own_session:
            await self.session.start()
        self.logger.info("PNG generator initialized")

    async def close(self) -> None:
        """Close the browser session if this generator owns it."""
        if self._own_session:
            await self.session.close()
        self.logger.info("PNG generator closed")

    def default_options(self, width: int, height: int) -> RenderOptions:
        return RenderOptions(
            width=width,
            height=height,
            transparent_background=self.settings.transparent_background,
            optimize_png=self.settings.optimize_png,
        )

    async def render(self, html_content: str, options: RenderOptions) -> PNGResult:
        """
        Render a document to PNG.

        The page loads until the network is idle, waits for web fonts, then
        polls the ready flag. A creative that never sets the flag is
        captured after the fallback delay instead of failing the job.

        Args:
            html_content: Self-contained document to render
            options: Rendering options

        Returns:
            PNGResult containing PNG data and metadata

        Raises:
            PNGGenerationError: If loading or capture fails
        """
        start_time = time.time()
        page_errors: List[str] = []

        try:
            async with self.session.slot() as browser:
                context = await self._create_browser_context(browser, options)
                try:
                    page = await context.new_page()
                    page.set_default_timeout(self.settings.page_load_timeout_ms)
                    page.on("pageerror", lambda error: page_errors.append(str(error)))

                    await page.set_content(
                        html_content,
                        wait_until="networkidle",
                        timeout=self.settings.page_load_timeout_ms,
                    )
                    await self._wait_for_fonts(page)

                    ready_observed = True
                    try:
                        await self._wait_for_ready(page)
                    except RenderTimeoutError as e:
                        ready_observed = False
                        self.logger.warning(
                            "Ready flag not observed, using fallback delay",
                            error=str(e),
                            page_errors=page_errors,
                            fallback_delay_ms=self.settings.fallback_delay_ms,
                        )
                        await asyncio.sleep(self.settings.fallback_delay_ms / 1000)

                    await asyncio.sleep(self.settings.settle_delay_ms / 1000)

                    screenshot_bytes = await page.screenshot(
                        type="png",
                        clip={"x": 0, "y": 0, "width": options.width, "height": options.height},
                        omit_background=options.transparent_background,
                    )
                finally:
                    await context.close()

            if options.optimize_png:
                screenshot_bytes = await self._optimize_png(screenshot_bytes)

            result = PNGResult(
                png_data=screenshot_bytes,
                width=options.width,
                height=options.height,
                file_size=len(screenshot_bytes),
                ready_observed=ready_observed,
                page_errors=page_errors,
                metadata={
                    "generator": "playwright",
                    "optimization": options.optimize_png,
                    "transparent": options.transparent_background,
                    "render_time": time.time() - start_time,
                },
            )

            self.logger.info(
                "PNG generation completed",
                width=options.width,
                height=options.height,
                file_size=result.file_size,
                ready_observed=ready_observed,
            )
            return result

        except PNGGenerationError:
            raise
        except Exception as e:
            error_msg = f"PNG generation failed: {e}"
            self.logger.error("PNG generation error", error=error_msg, page_errors=page_errors)
            raise PNGGenerationError(error_msg)

    async def _create_browser_context(self, browser: Browser, options: RenderOptions) -> BrowserContext:
        """Create a browser context sized to the creative."""
        context_options: Dict[str, Any] = {
            "viewport": {"width": options.width, "height": options.height},
            "device_scale_factor": options.device_scale_factor,
        }
        return await browser.new_context(**context_options)

    async def _wait_for_fonts(self, page: Page) -> None:
        try:
            await asyncio.wait_for(
                page.evaluate("() => document.fonts.ready.then(() => true)"),
                timeout=self.settings.font_load_timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            self.logger.warning("Font loading timed out", timeout_ms=self.settings.font_load_timeout_ms)

    async def _wait_for_ready(self, page: Page) -> None:
        """
        Poll the ready flag.

        Raises:
            RenderTimeoutError: If the flag is not true within the ready timeout
        """
        flag = json.dumps(self.settings.ready_flag)
        try:
            await page.wait_for_function(
                f"() => window[{flag}] === true",
                timeout=self.settings.ready_timeout_ms,
                polling=self.settings.ready_poll_interval_ms,
            )
        except PlaywrightTimeoutError as e:
            raise RenderTimeoutError(
                f"window.{self.settings.ready_flag} not set within {self.settings.ready_timeout_ms} ms: {e}"
            )

    async def _optimize_png(self, png_bytes: bytes) -> bytes:
        """
        Re-encode PNG image using PIL.

        Args:
            png_bytes: Original PNG bytes

        Returns:
            Optimized PNG bytes, or the original when re-encoding fails
        """
        try:
            image = Image.open(io.BytesIO(png_bytes))
            output = io.BytesIO()
            image.save(output, format="PNG", optimize=True, compress_level=9)
            optimized_bytes = output.getvalue()

            reduction = (1 - len(optimized_bytes) / len(png_bytes)) * 100 if png_bytes else 0
            self.logger.debug(
                "PNG optimization completed",
                original_size=len(png_bytes),
                optimized_size=len(optimized_bytes),
                reduction_percent=round(reduction, 2),
            )
            return optimized_bytes if len(optimized_bytes) < len(png_bytes) else png_bytes

        except Exception as e:
            self.logger.warning("PNG optimization failed, using original", error=str(e))
            return png_bytes
