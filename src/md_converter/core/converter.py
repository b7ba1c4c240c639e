"""
Conversion orchestration.

Drives one Markdown document through diagram rendering, Markdown
parsing and the format-specific document renderer, reporting progress
to the job registry along the way.

Progress checkpoints::

    html   1 Starting -> [5-50 diagrams] -> 5/60 Parsing markdown
           -> 70 Building navigation -> 85 Generating HTML -> 95 Finalizing
    pdf    1 Starting -> [5-60 diagrams] -> 70 Preparing PDF
           -> 85 Rendering PDF -> 95 Finalizing
    docx   1 Starting -> [5-60 diagrams] -> 70 Preparing DOCX -> 95 Finalizing

and finally 100 Done (or 100 Error).
"""

import asyncio
from datetime import date
from typing import Callable, List, Optional, Tuple, Union

from md_converter.core.browser import BrowserSession
from md_converter.core.diagrams.extractor import extract_diagrams
from md_converter.core.diagrams.renderer import DiagramRenderer, create_diagram_renderer
from md_converter.core.diagrams.rewriter import Replacement, image_markup, rewrite_document
from md_converter.core.documents import (
    DocxLayout, DocxRenderer, PandocDocxRenderer, PdfLayout,
    PdfRenderer, PlaywrightPdfRenderer
)
from md_converter.core.exceptions import ConversionError, ValidationError
from md_converter.core.markdown import MarkdownRenderer, build_table_of_contents
from md_converter.core.models import (
    ConversionOptions, ConversionResult, DiagramMode, DiagramOccurrence,
    OutputFormat, document_title, output_filename
)
from md_converter.core.progress import JobRegistry
from md_converter.core.templates import (
    render_docx_header, render_docx_html, render_html_page, render_pdf_html
)
from md_converter.utils.config import Config
from md_converter.utils.logging import get_logger

logger = get_logger(__name__)

DIAGRAM_PHASE = (5, 60)
HTML_DIAGRAM_PHASE = (5, 50)


class DocumentConverter:
    """Converts Markdown documents to HTML, PDF or DOCX."""

    def __init__(
        self,
        registry: JobRegistry,
        diagram_renderer: DiagramRenderer,
        pdf_renderer: PdfRenderer,
        docx_renderer: DocxRenderer,
        config: Optional[Config] = None,
        markdown_renderer: Optional[MarkdownRenderer] = None,
        browser: Optional[BrowserSession] = None,
        today: Callable[[], date] = date.today,
    ):
        self.config = config or Config()
        self.registry = registry
        self.diagram_renderer = diagram_renderer
        self.pdf_renderer = pdf_renderer
        self.docx_renderer = docx_renderer
        self.fence_tag = self.config.diagrams.fence_tag
        self.markdown = markdown_renderer or MarkdownRenderer(self.fence_tag)
        self.browser = browser
        self._today = today

        self._pipelines = {
            OutputFormat.HTML: self._to_html,
            OutputFormat.PDF: self._to_pdf,
            OutputFormat.DOCX: self._to_docx,
        }

    @staticmethod
    def validate_request(markdown: Optional[str], output_format: Union[str, OutputFormat]) -> OutputFormat:
        """
        Check a request before any job state is touched.

        Raises:
            ValidationError: Missing document or unsupported format
        """
        if markdown is None:
            raise ValidationError("No document provided", error_code="missing_document")
        if isinstance(output_format, OutputFormat):
            return output_format
        try:
            return OutputFormat(str(output_format or "").strip().lower())
        except ValueError:
            raise ValidationError(
                "Invalid format",
                error_code="invalid_format",
                details={"format": output_format, "allowed": [f.value for f in OutputFormat]},
            ) from None

    async def convert(
        self,
        markdown: Optional[str],
        output_format: Union[str, OutputFormat],
        options: Optional[ConversionOptions] = None,
        job_id: Optional[str] = None,
        source_name: Optional[str] = None,
    ) -> ConversionResult:
        """
        Convert a Markdown document.

        Args:
            markdown: Document text
            output_format: ``html``, ``pdf`` or ``docx``
            options: Layout and theme options
            job_id: Progress tracking id; ``None`` disables tracking
            source_name: Uploaded filename, used for the title and output name

        Returns:
            The converted document

        Raises:
            ValidationError: The request was rejected before conversion started
            ConversionError: The pipeline failed; no partial output is returned
        """
        fmt = self.validate_request(markdown, output_format)
        options = options or ConversionOptions(page_size=self.config.pdf.page_size)
        title = document_title(source_name)

        self.registry.ensure_job(job_id)
        logger.info("Starting conversion", extra={
            "title": title,
            "format": fmt.value,
            "size": len(markdown),
            "job_id": job_id,
        })

        try:
            content = await self._pipelines[fmt](markdown, title, options, job_id)
        except Exception as e:
            logger.error("Conversion failed", extra={
                "title": title,
                "format": fmt.value,
                "job_id": job_id,
                "error": str(e),
                "error_type": type(e).__name__,
            }, exc_info=True)
            self.registry.fail(job_id)
            raise ConversionError(str(e), details={"format": fmt.value}) from e

        self.registry.complete(job_id)
        filename = output_filename(source_name, fmt)
        logger.info("Conversion complete", extra={"output_name": filename, "bytes": len(content)})

        return ConversionResult(content=content, content_type=fmt.content_type, filename=filename)

    async def _to_html(self, markdown: str, title: str, options: ConversionOptions, job_id: Optional[str]) -> bytes:
        self.registry.update(job_id, 1, "Starting")

        if options.html_diagrams is DiagramMode.IMAGE:
            processed = await self.render_diagrams(markdown, job_id, *HTML_DIAGRAM_PHASE)
            self.registry.update(job_id, 60, "Parsing markdown")
            script_url = None
        else:
            processed = markdown
            self.registry.update(job_id, 5, "Parsing markdown")
            script_url = self.config.diagrams.mermaid_script_url

        body = self.markdown.render(processed)

        nav_html = None
        if options.table_of_contents:
            self.registry.update(job_id, 70, "Building navigation")
            body, nav_html = build_table_of_contents(body)

        self.registry.update(job_id, 85, "Generating HTML")
        page = render_html_page(
            title,
            body,
            options,
            nav_html=nav_html,
            mermaid_script_url=script_url,
            mermaid_theme=self.config.diagrams.mermaid_theme,
        )
        self.registry.update(job_id, 95, "Finalizing")
        return page.encode("utf-8")

    async def _to_pdf(self, markdown: str, title: str, options: ConversionOptions, job_id: Optional[str]) -> bytes:
        self.registry.update(job_id, 1, "Starting")
        processed = await self.render_diagrams(markdown, job_id, *DIAGRAM_PHASE)
        body = self.markdown.render(processed)
        self.registry.update(job_id, 70, "Preparing PDF")

        page = render_pdf_html(title, body, options)
        layout = PdfLayout.from_options(title, options, self._today().isoformat())

        self.registry.update(job_id, 85, "Rendering PDF")
        pdf = await self.pdf_renderer.render(page, layout)
        self.registry.update(job_id, 95, "Finalizing")
        return pdf

    async def _to_docx(self, markdown: str, title: str, options: ConversionOptions, job_id: Optional[str]) -> bytes:
        self.registry.update(job_id, 1, "Starting")
        processed = await self.render_diagrams(markdown, job_id, *DIAGRAM_PHASE)
        body = self.markdown.render(processed)
        self.registry.update(job_id, 70, "Preparing DOCX")

        page = render_docx_html(title, body)
        header = render_docx_header(title, options, self._today().isoformat())
        docx = await self.docx_renderer.render(page, header, DocxLayout.from_options(options))
        self.registry.update(job_id, 95, "Finalizing")
        return docx

    async def render_diagrams(self, markdown: str, job_id: Optional[str], start: int, end: int) -> str:
        """
        Replace every diagram fence in ``markdown`` with an inline image.

        Renders are started last-diagram-first, at most
        ``diagrams.concurrency`` at a time. Progress moves from ``start`` to
        ``end`` as attempts finish. A failed render keeps its fenced block.
        """
        occurrences = extract_diagrams(markdown, self.fence_tag)
        if not occurrences:
            return markdown

        total = len(occurrences)
        span = max(0, end - start)
        semaphore = asyncio.Semaphore(self.config.diagrams.concurrency)

        async def attempt(occurrence: DiagramOccurrence) -> Tuple[DiagramOccurrence, Optional[str]]:
            async with semaphore:
                return occurrence, await self._render_one(occurrence, total)

        tasks = [asyncio.ensure_future(attempt(o)) for o in reversed(occurrences)]
        replacements: List[Replacement] = []
        try:
            for done, future in enumerate(asyncio.as_completed(tasks), start=1):
                occurrence, markup = await future
                replacements.append((occurrence, markup))
                progress = min(start + (span * done) // total, end)
                if markup is not None:
                    self.registry.update(job_id, progress, f"Rendered diagram {done}/{total}")
                else:
                    self.registry.update(job_id, progress, f"Diagram {done}/{total} failed")
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        return rewrite_document(markdown, replacements)

    async def _render_one(self, occurrence: DiagramOccurrence, total: int) -> Optional[str]:
        try:
            image = await self.diagram_renderer.render(occurrence.code)
        except Exception as e:
            logger.warning("Diagram render failed, keeping source block", extra={
                "diagram": f"{occurrence.sequence_index + 1}/{total}",
                "error": str(e),
                "error_type": type(e).__name__,
            })
            return None
        return image_markup(image)

    async def aclose(self) -> None:
        """Release the shared browser, if this converter owns one."""
        if self.browser is not None:
            await self.browser.close()


def create_converter(config: Config, registry: Optional[JobRegistry] = None) -> DocumentConverter:
    """Build a converter wired to the real browser, mermaid and pandoc collaborators."""
    registry = registry or JobRegistry(
        close_delay=config.progress.close_delay,
        retention=config.progress.retention,
    )
    browser = BrowserSession()
    return DocumentConverter(
        registry=registry,
        diagram_renderer=create_diagram_renderer(config.diagrams, browser),
        pdf_renderer=PlaywrightPdfRenderer(browser, wait_until=config.pdf.wait_until),
        docx_renderer=PandocDocxRenderer(),
        config=config,
        browser=browser,
    )
