"""
Chromium renderers - HTML in, PDF bytes out.

Both variants drive Chromium through Playwright and share the render flow;
they differ only in how the browser binary is launched:

- local: the Chromium build managed by Playwright
- packaged: an explicit executable (e.g. a serverless Chromium bundle)
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import async_playwright

from .config import ConverterSettings


logger = logging.getLogger(__name__)

PDF_OPTIONS: Dict[str, Any] = {
    "format": "Legal",
    "print_background": True,
    "margin": {"top": "20px", "right": "20px", "bottom": "20px", "left": "20px"},
}

VALIDATION_HTML = "<html><body><h1>Test</h1></body></html>"


class RenderError(Exception):
    """Chromium failed to launch, load the page or produce a PDF."""


class RenderTimeoutError(RenderError):
    """Rendering did not finish within the configured timeout."""


class ChromiumRenderer:
    """Base renderer: one browser process per render, always closed."""

    name = "chromium"

    def __init__(self, timeout_seconds: float = 60, headless: bool = True):
        self.timeout_seconds = timeout_seconds
        self.headless = headless

    def launch_options(self) -> Dict[str, Any]:
        raise NotImplementedError

    def context_options(self) -> Dict[str, Any]:
        return {}

    async def render(self, html: str) -> bytes:
        """
        Render an HTML document to PDF bytes.

        Raises:
            RenderTimeoutError: render exceeded timeout_seconds (browser is closed)
            RenderError: any other launch/navigation/export failure
        """
        try:
            return await asyncio.wait_for(self._render(html), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise RenderTimeoutError(
                f"Rendering timed out after {self.timeout_seconds}s"
            ) from e
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"Rendering failed: {e}") from e

    async def _render(self, html: str) -> bytes:
        async with async_playwright() as p:
            browser = await p.chromium.launch(**self.launch_options())
            try:
                context = await browser.new_context(**self.context_options())
                page = await context.new_page()
                await page.set_content(html, wait_until="networkidle")
                pdf_bytes = await page.pdf(**PDF_OPTIONS)
            finally:
                await browser.close()

        logger.debug(f"[{self.name}] rendered {len(pdf_bytes)} byte PDF")
        return pdf_bytes

    async def validate(self) -> Optional[str]:
        """
        Render a tiny test page.

        Returns:
            None when Chromium works, otherwise the error message
        """
        try:
            test_pdf = await self.render(VALIDATION_HTML)
        except RenderError as e:
            return str(e)
        if not test_pdf:
            return "Test PDF generation returned empty result"
        logger.info(f"[{self.name}] Playwright validation successful - generated {len(test_pdf)} byte test PDF")
        return None


class LocalChromiumRenderer(ChromiumRenderer):
    """Chromium installed by `playwright install chromium`."""

    name = "local"

    def launch_options(self) -> Dict[str, Any]:
        return {
            "headless": self.headless,
            "args": ["--no-sandbox", "--disable-setuid-sandbox"],
        }


class PackagedChromiumRenderer(ChromiumRenderer):
    """Chromium binary shipped alongside the deployment."""

    name = "packaged"

    def __init__(self, executable_path: str, timeout_seconds: float = 60,
                 headless: bool = True, extra_args: Optional[List[str]] = None):
        super().__init__(timeout_seconds=timeout_seconds, headless=headless)
        self.executable_path = executable_path
        self.extra_args = extra_args or []

    def launch_options(self) -> Dict[str, Any]:
        return {
            "executable_path": self.executable_path,
            "headless": self.headless,
            "args": [
                "--no-sandbox",
                "--hide-scrollbars",
                "--disable-web-security",
                *self.extra_args,
            ],
        }

    def context_options(self) -> Dict[str, Any]:
        return {"ignore_https_errors": True}


def build_renderer(settings: ConverterSettings) -> ChromiumRenderer:
    """Select the renderer variant named by settings.renderer."""
    if settings.renderer == "packaged":
        return PackagedChromiumRenderer(
            executable_path=settings.chromium_executable_path,
            timeout_seconds=settings.render_timeout_seconds,
            headless=settings.playwright_headless,
            extra_args=settings.chromium_extra_args_list,
        )
    return LocalChromiumRenderer(
        timeout_seconds=settings.render_timeout_seconds,
        headless=settings.playwright_headless,
    )
