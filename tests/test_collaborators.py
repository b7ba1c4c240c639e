"""
Test the browser session, diagram renderers and document renderers with
their external tools mocked out.
"""

import asyncio
import io
from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from docx import Document
from playwright.async_api import Error as PlaywrightError

from md_converter.core.browser import BrowserSession
from md_converter.core.diagrams.renderer import (
    DiagramRenderer, MermaidCLIRenderer, PlaywrightDiagramRenderer, create_diagram_renderer
)
from md_converter.core.documents import DocxLayout, PandocDocxRenderer, PdfLayout, PlaywrightPdfRenderer
from md_converter.core.exceptions import DependencyError, RenderError, TimeoutError
from md_converter.core.models import ConversionOptions
from md_converter.core.templates import render_docx_header
from md_converter.utils.config import DiagramConfig


def _fake_playwright():
    page = MagicMock()
    page.is_closed.return_value = False
    page.close = AsyncMock()
    browser = MagicMock()
    browser.is_connected.return_value = True
    browser.new_page = AsyncMock(return_value=page)
    browser.close = AsyncMock()
    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()
    driver = MagicMock()
    driver.start = AsyncMock(return_value=playwright)
    return driver, playwright, browser, page


class FakeSession:
    """Browser session handing out one prepared page."""

    def __init__(self, page):
        self._page = page

    @asynccontextmanager
    async def page(self):
        yield self._page


class TestBrowserSession:
    """Test lazy browser launch and teardown."""

    @pytest.mark.asyncio
    async def test_launches_once_and_closes_pages(self):
        driver, playwright, browser, page = _fake_playwright()
        session = BrowserSession()

        with patch("md_converter.core.browser.async_playwright", return_value=driver):
            async with session.page() as first:
                assert first is page
            async with session.page():
                pass

        playwright.chromium.launch.assert_awaited_once_with(
            headless=True, args=["--no-sandbox", "--disable-setuid-sandbox"]
        )
        assert page.close.await_count == 2
        assert session.is_running

        await session.close()

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
        assert not session.is_running

    @pytest.mark.asyncio
    async def test_launch_failure(self):
        driver, playwright, _, _ = _fake_playwright()
        playwright.chromium.launch = AsyncMock(side_effect=Exception("Executable doesn't exist"))
        session = BrowserSession()

        with patch("md_converter.core.browser.async_playwright", return_value=driver):
            with pytest.raises(DependencyError) as exc_info:
                async with session.page():
                    pass

        assert exc_info.value.error_code == "browser_unavailable"
        playwright.stop.assert_awaited_once()

    def test_lock_created_inside_running_loop(self):
        driver, playwright, _, page = _fake_playwright()
        session = BrowserSession()
        assert session._lock is None

        async def render_twice():
            async def use_page():
                async with session.page():
                    await asyncio.sleep(0)

            await asyncio.gather(use_page(), use_page())
            await session.close()

        with patch("md_converter.core.browser.async_playwright", return_value=driver):
            asyncio.run(render_twice())

        assert session._lock is not None
        playwright.chromium.launch.assert_awaited_once()
        assert page.close.await_count == 2


class TestPlaywrightDiagramRenderer:
    """Test in-browser diagram rendering."""

    def setup_method(self):
        self.element = MagicMock()
        self.element.screenshot = AsyncMock(return_value=b"\x89PNG")
        self.page = MagicMock()
        self.page.set_viewport_size = AsyncMock()
        self.page.set_content = AsyncMock()
        self.page.wait_for_selector = AsyncMock()
        self.page.query_selector = AsyncMock(return_value=self.element)
        self.renderer = PlaywrightDiagramRenderer(FakeSession(self.page), DiagramConfig(render_timeout=2.0))

    def test_build_page_escapes_code(self):
        page = self.renderer.build_page("graph TD; A-->B<script>")

        assert "A--&gt;B&lt;script&gt;" in page
        assert '<div class="mermaid">' in page
        assert DiagramConfig().mermaid_script_url in page

    @pytest.mark.asyncio
    async def test_render_returns_screenshot(self):
        assert await self.renderer.render("graph TD; A-->B") == b"\x89PNG"

        self.page.wait_for_selector.assert_awaited_once_with(".mermaid svg", timeout=2000.0)
        self.element.screenshot.assert_awaited_once_with(type="png")

    @pytest.mark.asyncio
    async def test_render_timeout(self):
        self.page.wait_for_selector = AsyncMock(side_effect=PlaywrightError("Timeout 2000ms exceeded"))

        with pytest.raises(TimeoutError) as exc_info:
            await self.renderer.render("not a diagram")

        assert exc_info.value.error_code == "render_timeout"

    @pytest.mark.asyncio
    async def test_missing_container(self):
        self.page.query_selector = AsyncMock(return_value=None)

        with pytest.raises(RenderError):
            await self.renderer.render("graph TD; A-->B")


class TestMermaidCLIRenderer:
    """Test the mermaid-cli backend."""

    def setup_method(self):
        self.renderer = MermaidCLIRenderer(DiagramConfig(backend="mmdc", render_timeout=0.05))

    @pytest.mark.asyncio
    async def test_render_reads_output(self):
        seen = {}

        async def fake_exec(*args, **kwargs):
            seen["args"] = args
            Path(args[args.index("-o") + 1]).write_bytes(b"\x89PNG mmdc")
            process = MagicMock()
            process.returncode = 0
            process.communicate = AsyncMock(return_value=(b"", b""))
            return process

        with patch("md_converter.core.diagrams.renderer.asyncio.create_subprocess_exec", new=fake_exec):
            image = await self.renderer.render("graph LR; A-->B")

        assert image == b"\x89PNG mmdc"
        assert seen["args"][0] == "mmdc"
        assert "-t" in seen["args"] and "-b" in seen["args"]

    @pytest.mark.asyncio
    async def test_mmdc_missing(self):
        with patch(
            "md_converter.core.diagrams.renderer.asyncio.create_subprocess_exec",
            new=AsyncMock(side_effect=FileNotFoundError("mmdc")),
        ):
            with pytest.raises(DependencyError) as exc_info:
                await self.renderer.render("graph LR; A-->B")

        assert exc_info.value.error_code == "mmdc_missing"

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        process = MagicMock()
        process.returncode = 1
        process.communicate = AsyncMock(return_value=(b"", b"Parse error on line 1"))

        with patch(
            "md_converter.core.diagrams.renderer.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            with pytest.raises(RenderError) as exc_info:
                await self.renderer.render("graph LR; A-->")

        assert exc_info.value.details["stderr"] == "Parse error on line 1"

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        async def hang():
            await asyncio.sleep(1)

        process = MagicMock()
        process.communicate = hang
        process.wait = AsyncMock()

        with patch(
            "md_converter.core.diagrams.renderer.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            with pytest.raises(TimeoutError):
                await self.renderer.render("graph LR; A-->B")

        process.kill.assert_called_once()


class TestCreateDiagramRenderer:
    """Test backend selection."""

    def test_backends(self):
        session = BrowserSession()

        playwright_renderer = create_diagram_renderer(DiagramConfig(), session)
        mmdc_renderer = create_diagram_renderer(DiagramConfig(backend="mmdc"), session)

        assert isinstance(playwright_renderer, PlaywrightDiagramRenderer)
        assert playwright_renderer.session is session
        assert isinstance(mmdc_renderer, MermaidCLIRenderer)
        assert isinstance(mmdc_renderer, DiagramRenderer)


class TestPlaywrightPdfRenderer:
    """Test PDF printing."""

    @pytest.mark.asyncio
    async def test_prints_with_layout(self):
        page = MagicMock()
        page.set_content = AsyncMock()
        page.pdf = AsyncMock(return_value=b"%PDF")
        renderer = PlaywrightPdfRenderer(FakeSession(page), wait_until="load")
        layout = PdfLayout.from_options("doc", ConversionOptions(header_text="Top"))

        assert await renderer.render("<p>x</p>", layout) == b"%PDF"

        page.set_content.assert_awaited_once_with("<p>x</p>", wait_until="load")
        kwargs = page.pdf.await_args.kwargs
        assert kwargs["format"] == "A4"
        assert kwargs["margin"]["top"] == "25mm"
        assert kwargs["print_background"] is True
        assert kwargs["display_header_footer"] is True


class TestPandocDocxRenderer:
    """Test DOCX generation and header/footer finishing."""

    @staticmethod
    def _fake_pandoc(source, to, format, outputfile, extra_args):
        document = Document()
        document.add_paragraph("Body text")
        document.save(outputfile)
        return ""

    @pytest.mark.asyncio
    async def test_adds_header_and_page_number(self):
        header = render_docx_header("Report", ConversionOptions(include_date=True), "2024-01-02")

        with patch("md_converter.core.documents.pypandoc.convert_text", side_effect=self._fake_pandoc) as convert:
            content = await PandocDocxRenderer().render("<p>Body text</p>", header, DocxLayout())

        assert convert.call_args.kwargs["to"] == "docx"
        document = Document(io.BytesIO(content))
        section = document.sections[0]
        assert section.header.paragraphs[0].text == "Report 2024-01-02"
        footer_xml = section.footer.paragraphs[0]._p.xml
        assert "PAGE" in footer_xml
        assert "NUMPAGES" in footer_xml
        assert document.paragraphs[0].text == "Body text"

    @pytest.mark.asyncio
    async def test_no_footer_without_page_numbers(self):
        with patch("md_converter.core.documents.pypandoc.convert_text", side_effect=self._fake_pandoc):
            content = await PandocDocxRenderer().render(
                "<p>Body text</p>", None, DocxLayout(footer=False, page_number=False)
            )

        footer_xml = Document(io.BytesIO(content)).sections[0].footer.paragraphs[0]._p.xml
        assert "NUMPAGES" not in footer_xml

    @pytest.mark.asyncio
    async def test_pandoc_missing(self):
        with patch(
            "md_converter.core.documents.pypandoc.convert_text",
            side_effect=OSError("No pandoc was found"),
        ):
            with pytest.raises(DependencyError) as exc_info:
                await PandocDocxRenderer().render("<p>x</p>", None, DocxLayout())

        assert exc_info.value.error_code == "pandoc_missing"
