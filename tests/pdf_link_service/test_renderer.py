"""
Unit tests for the Chromium renderers.

Playwright is mocked; the tests check launch options, PDF options and that
the browser is closed on every exit path.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pdf_link_service.config import ConverterSettings
from pdf_link_service.renderer import (
    PDF_OPTIONS,
    LocalChromiumRenderer,
    PackagedChromiumRenderer,
    RenderError,
    RenderTimeoutError,
    build_renderer,
)


def _mock_playwright(mock_playwright, page):
    """Wire async_playwright() -> chromium.launch() -> browser -> context -> page."""
    mock_browser = AsyncMock()
    mock_context = AsyncMock()
    mock_context.new_page = AsyncMock(return_value=page)
    mock_browser.new_context = AsyncMock(return_value=mock_context)
    launch = AsyncMock(return_value=mock_browser)
    mock_playwright.return_value.__aenter__ = AsyncMock(
        return_value=MagicMock(chromium=MagicMock(launch=launch))
    )
    mock_playwright.return_value.__aexit__ = AsyncMock(return_value=False)
    return launch, mock_browser


class TestRender:

    @pytest.mark.asyncio
    @patch("pdf_link_service.renderer.async_playwright")
    async def test_render_returns_pdf_bytes(self, mock_playwright):
        mock_page = AsyncMock()
        mock_page.pdf = AsyncMock(return_value=b"%PDF-1.4 fake pdf content")
        launch, browser = _mock_playwright(mock_playwright, mock_page)

        result = await LocalChromiumRenderer().render("<h1>Hi</h1>")

        assert result.startswith(b"%PDF")
        mock_page.set_content.assert_awaited_once_with("<h1>Hi</h1>", wait_until="networkidle")
        mock_page.pdf.assert_awaited_once_with(**PDF_OPTIONS)
        browser.close.assert_awaited_once()

    def test_pdf_options_legal_with_background_and_margins(self):
        assert PDF_OPTIONS["format"] == "Legal"
        assert PDF_OPTIONS["print_background"] is True
        assert set(PDF_OPTIONS["margin"].values()) == {"20px"}

    @pytest.mark.asyncio
    @patch("pdf_link_service.renderer.async_playwright")
    async def test_browser_closed_when_pdf_fails(self, mock_playwright):
        mock_page = AsyncMock()
        mock_page.pdf = AsyncMock(side_effect=Exception("Target closed"))
        _, browser = _mock_playwright(mock_playwright, mock_page)

        with pytest.raises(RenderError) as exc_info:
            await LocalChromiumRenderer().render("<h1>Hi</h1>")

        assert not isinstance(exc_info.value, RenderTimeoutError)
        assert "Target closed" in str(exc_info.value)
        browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    @patch("pdf_link_service.renderer.async_playwright")
    async def test_launch_failure_wrapped(self, mock_playwright):
        mock_playwright.return_value.__aenter__ = AsyncMock(
            return_value=MagicMock(
                chromium=MagicMock(launch=AsyncMock(side_effect=Exception("Executable doesn't exist")))
            )
        )
        mock_playwright.return_value.__aexit__ = AsyncMock(return_value=False)

        with pytest.raises(RenderError, match="Executable doesn't exist"):
            await LocalChromiumRenderer().render("<p>x</p>")

    @pytest.mark.asyncio
    @patch("pdf_link_service.renderer.async_playwright")
    async def test_hung_page_times_out_and_closes_browser(self, mock_playwright):
        async def never_idle(*args, **kwargs):
            await asyncio.sleep(3600)

        mock_page = AsyncMock()
        mock_page.set_content = AsyncMock(side_effect=never_idle)
        _, browser = _mock_playwright(mock_playwright, mock_page)

        with pytest.raises(RenderTimeoutError, match="timed out"):
            await LocalChromiumRenderer(timeout_seconds=0.05).render("<img src='http://slow'>")

        browser.close.assert_awaited_once()
        mock_page.pdf.assert_not_awaited()


class TestVariants:

    def test_local_launch_options(self):
        options = LocalChromiumRenderer(headless=False).launch_options()

        assert options["headless"] is False
        assert "--no-sandbox" in options["args"]
        assert "executable_path" not in options

    def test_packaged_launch_options(self):
        renderer = PackagedChromiumRenderer("/opt/chromium/chrome", extra_args=["--single-process"])
        options = renderer.launch_options()

        assert options["executable_path"] == "/opt/chromium/chrome"
        assert "--hide-scrollbars" in options["args"]
        assert "--disable-web-security" in options["args"]
        assert "--single-process" in options["args"]
        assert renderer.context_options() == {"ignore_https_errors": True}

    @pytest.mark.asyncio
    @patch("pdf_link_service.renderer.async_playwright")
    async def test_packaged_passes_executable_to_launch(self, mock_playwright):
        mock_page = AsyncMock()
        mock_page.pdf = AsyncMock(return_value=b"%PDF")
        launch, browser = _mock_playwright(mock_playwright, mock_page)

        await PackagedChromiumRenderer("/opt/chromium/chrome").render("<h1>Hi</h1>")

        assert launch.await_args.kwargs["executable_path"] == "/opt/chromium/chrome"
        browser.new_context.assert_awaited_once_with(ignore_https_errors=True)

    def test_build_renderer_selects_variant(self, tmp_path):
        local = build_renderer(ConverterSettings(
            bearer_token="test-secret-key-1234", pdf_dir=tmp_path, render_timeout_seconds=12,
        ))
        packaged = build_renderer(ConverterSettings(
            bearer_token="test-secret-key-1234", pdf_dir=tmp_path,
            renderer="packaged", chromium_executable_path="/opt/chromium/chrome",
        ))

        assert isinstance(local, LocalChromiumRenderer)
        assert local.timeout_seconds == 12
        assert isinstance(packaged, PackagedChromiumRenderer)
        assert packaged.executable_path == "/opt/chromium/chrome"

    def test_build_renderer_passes_extra_args(self, tmp_path):
        renderer = build_renderer(ConverterSettings(
            bearer_token="test-secret-key-1234", pdf_dir=tmp_path,
            renderer="packaged", chromium_executable_path="/opt/chromium/chrome",
            chromium_extra_args="--single-process,--no-zygote",
        ))

        args = renderer.launch_options()["args"]
        assert args[-2:] == ["--single-process", "--no-zygote"]


class TestValidate:

    @pytest.mark.asyncio
    async def test_validate_success(self):
        renderer = LocalChromiumRenderer()
        with patch.object(renderer, "render", AsyncMock(return_value=b"%PDF-1.4")):
            assert await renderer.validate() is None

    @pytest.mark.asyncio
    async def test_validate_reports_error(self):
        renderer = LocalChromiumRenderer()
        with patch.object(renderer, "render", AsyncMock(side_effect=RenderError("no chromium"))):
            assert await renderer.validate() == "no chromium"

    @pytest.mark.asyncio
    async def test_validate_empty_pdf(self):
        renderer = LocalChromiumRenderer()
        with patch.object(renderer, "render", AsyncMock(return_value=b"")):
            assert "empty" in await renderer.validate()
