"""
Document renderers for paginated formats.

PDF pages are printed by headless Chromium; DOCX files are produced by
pandoc and finished with python-docx (header text, page-number footer).
"""

import asyncio
import html
import io
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

import pypandoc
from bs4 import BeautifulSoup
from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt
from pydantic import BaseModel, Field

from md_converter.core.browser import BrowserSession
from md_converter.core.exceptions import DependencyError
from md_converter.core.models import Alignment, ConversionOptions
from md_converter.utils.logging import get_logger

logger = get_logger(__name__)

_JUSTIFY = {
    Alignment.LEFT: "flex-start",
    Alignment.CENTER: "center",
    Alignment.RIGHT: "flex-end",
}

_DOCX_ALIGN = {
    Alignment.LEFT: WD_ALIGN_PARAGRAPH.LEFT,
    Alignment.CENTER: WD_ALIGN_PARAGRAPH.CENTER,
    Alignment.RIGHT: WD_ALIGN_PARAGRAPH.RIGHT,
}


class PdfLayout(BaseModel):
    """Page setup passed to the PDF renderer."""

    page_size: str = Field(default="A4")
    margins: Dict[str, str] = Field(default_factory=lambda: {
        "top": "20mm", "right": "20mm", "bottom": "20mm", "left": "20mm",
    })
    display_header_footer: bool = Field(default=False)
    header_template: str = Field(default="<div></div>")
    footer_template: str = Field(default="<div></div>")

    @classmethod
    def from_options(cls, title: str, options: ConversionOptions, date_text: str = "") -> "PdfLayout":
        """Build page setup, header and footer templates from request options."""
        header_str = html.escape(options.header_text or title)
        date_span = f'<span style="opacity:.85">{html.escape(date_text)}</span>' if options.include_date else ""
        header_template = (
            '<div style="font-size:10px; width:100%; padding:0 10mm; display:flex; '
            f'justify-content:{_JUSTIFY[options.header_align]}; color:#555; gap:8px;">'
            f"<span>{header_str}</span>{date_span}</div>"
        )
        if options.page_numbers:
            footer_template = (
                '<div style="font-size:10px; width:100%; padding:0 10mm; color:#555; display:flex; '
                f'justify-content:{_JUSTIFY[options.footer_align]};">'
                '<span class="pageNumber"></span>&nbsp;/&nbsp;<span class="totalPages"></span></div>'
            )
        else:
            footer_template = "<div></div>"

        return cls(
            page_size=options.page_size,
            margins={
                "top": "25mm" if options.header_text else "20mm",
                "right": "20mm",
                "bottom": "25mm" if options.page_numbers else "20mm",
                "left": "20mm",
            },
            display_header_footer=bool(options.header_text or options.page_numbers),
            header_template=header_template,
            footer_template=footer_template,
        )


class DocxLayout(BaseModel):
    """Header and footer flags passed to the DOCX renderer."""

    header: bool = Field(default=True)
    footer: bool = Field(default=True)
    page_number: bool = Field(default=True)
    header_align: Alignment = Field(default=Alignment.LEFT)

    @classmethod
    def from_options(cls, options: ConversionOptions) -> "DocxLayout":
        return cls(
            header=True,
            footer=options.page_numbers,
            page_number=options.page_numbers,
            header_align=options.header_align,
        )


class PdfRenderer(Protocol):
    async def render(self, html_text: str, layout: PdfLayout) -> bytes:
        ...


class DocxRenderer(Protocol):
    async def render(self, html_text: str, header_html: Optional[str], layout: DocxLayout) -> bytes:
        ...


class PlaywrightPdfRenderer:
    """Print HTML to PDF with headless Chromium."""

    def __init__(self, session: BrowserSession, wait_until: str = "networkidle"):
        self.session = session
        self.wait_until = wait_until

    async def render(self, html_text: str, layout: PdfLayout) -> bytes:
        async with self.session.page() as page:
            await page.set_content(html_text, wait_until=self.wait_until)
            return await page.pdf(
                format=layout.page_size,
                margin=layout.margins,
                print_background=True,
                display_header_footer=layout.display_header_footer,
                header_template=layout.header_template,
                footer_template=layout.footer_template,
            )


class PandocDocxRenderer:
    """Convert HTML to DOCX with pandoc, then add header and footer with python-docx."""

    def __init__(self, extra_args: Optional[list] = None):
        self.extra_args = extra_args if extra_args is not None else ["--standalone"]

    async def render(self, html_text: str, header_html: Optional[str], layout: DocxLayout) -> bytes:
        return await asyncio.to_thread(self._render_sync, html_text, header_html, layout)

    def _render_sync(self, html_text: str, header_html: Optional[str], layout: DocxLayout) -> bytes:
        with tempfile.TemporaryDirectory(prefix="md-converter-") as tmp:
            output = Path(tmp) / "document.docx"
            try:
                pypandoc.convert_text(
                    html_text,
                    to="docx",
                    format="html",
                    outputfile=str(output),
                    extra_args=self.extra_args,
                )
            except OSError as e:
                raise DependencyError(
                    f"pandoc is not available: {e}",
                    error_code="pandoc_missing",
                ) from e

            document = Document(io.BytesIO(output.read_bytes()))

        for section in document.sections:
            if layout.header and header_html:
                self._write_header(section, header_html, layout.header_align)
            if layout.footer and layout.page_number:
                self._write_page_number(section)

        buffer = io.BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    @staticmethod
    def _write_header(section, header_html: str, alignment: Alignment) -> None:
        text = BeautifulSoup(header_html, "html.parser").get_text(" ", strip=True)
        paragraph = section.header.paragraphs[0]
        paragraph.clear()
        paragraph.alignment = _DOCX_ALIGN[alignment]
        run = paragraph.add_run(text)
        run.font.size = Pt(10)

    @classmethod
    def _write_page_number(cls, section) -> None:
        paragraph = section.footer.paragraphs[0]
        paragraph.clear()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        cls._add_field(paragraph, "PAGE")
        paragraph.add_run(" / ")
        cls._add_field(paragraph, "NUMPAGES")

    @staticmethod
    def _add_field(paragraph, instruction: str) -> None:
        run = OxmlElement("w:r")

        begin = OxmlElement("w:fldChar")
        begin.set(qn("w:fldCharType"), "begin")
        run.append(begin)

        instr = OxmlElement("w:instrText")
        instr.set(qn("xml:space"), "preserve")
        instr.text = instruction
        run.append(instr)

        end = OxmlElement("w:fldChar")
        end.set(qn("w:fldCharType"), "end")
        run.append(end)

        paragraph._p.append(run)
