"""
Data models for md-converter.

Defines the diagram occurrence record, conversion options and results,
and the progress event shape pushed to subscribers.
"""

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Any, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from md_converter.core.themes import CODE_THEMES, FONTS, THEMES

MAX_HEADER_TEXT = 200

PAGE_SIZES = ["A3", "A4", "A5", "Legal", "Letter", "Tabloid"]


class OutputFormat(str, Enum):
    """Supported conversion targets."""

    HTML = "html"
    PDF = "pdf"
    DOCX = "docx"

    @property
    def content_type(self) -> str:
        """MIME type of the produced document."""
        return {
            OutputFormat.HTML: "text/html; charset=utf-8",
            OutputFormat.PDF: "application/pdf",
            OutputFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        }[self]

    @property
    def extension(self) -> str:
        return self.value


class JobStatus(str, Enum):
    """Conversion job status."""

    PENDING = "pending"
    DONE = "done"


class Alignment(str, Enum):
    """Horizontal alignment for headers and footers."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class DiagramMode(str, Enum):
    """How diagrams are delivered in HTML output."""

    LIVE = "live"    # Left as markup for the client-side Mermaid script
    IMAGE = "image"  # Pre-rendered to inline PNG images


@dataclass(frozen=True)
class DiagramOccurrence:
    """One fenced diagram block located in a Markdown document.

    ``start``/``end`` is the half-open character range of the whole
    fenced block, fence markers included.
    """

    start: int
    end: int
    code: str
    sequence_index: int
    source: str

    @property
    def span(self) -> Tuple[int, int]:
        return (self.start, self.end)


def _coerce_choice(value: Any, allowed, default: str) -> str:
    """Return ``value`` if it is an allowed choice, otherwise ``default``."""
    if value is None:
        return default
    if isinstance(value, Enum):
        value = value.value
    value = str(value).strip()
    return value if value in allowed else default


class ConversionOptions(BaseModel):
    """Layout and theme options for a conversion request.

    Unknown enumerated values fall back to their defaults instead of
    rejecting the request.
    """

    header_text: str = Field(default="", description="Page header text")
    page_numbers: bool = Field(default=True, description="Show page numbers")
    header_align: Alignment = Field(default=Alignment.LEFT, description="Header alignment")
    footer_align: Alignment = Field(default=Alignment.CENTER, description="Footer alignment")
    include_date: bool = Field(default=False, description="Show the current date in the header")
    output_theme: str = Field(default="default", description="Colour theme")
    font_family: str = Field(default="system", description="Body font family")
    code_theme: str = Field(default="github", description="Code block theme")
    page_size: str = Field(default="A4", description="PDF page size")
    custom_css: str = Field(default="", description="Extra CSS appended to the theme")
    html_diagrams: DiagramMode = Field(default=DiagramMode.LIVE, description="HTML diagram delivery")
    table_of_contents: bool = Field(default=True, description="Add a navigation sidebar to HTML output")

    @field_validator("header_text", mode="before")
    @classmethod
    def truncate_header_text(cls, v: Any) -> str:
        """Limit header text length."""
        return str(v or "")[:MAX_HEADER_TEXT]

    @field_validator("custom_css", mode="before")
    @classmethod
    def default_custom_css(cls, v: Any) -> str:
        return str(v or "")

    @field_validator("header_align", mode="before")
    @classmethod
    def validate_header_align(cls, v: Any) -> str:
        return _coerce_choice(v, [a.value for a in Alignment], Alignment.LEFT.value)

    @field_validator("footer_align", mode="before")
    @classmethod
    def validate_footer_align(cls, v: Any) -> str:
        return _coerce_choice(v, [a.value for a in Alignment], Alignment.CENTER.value)

    @field_validator("html_diagrams", mode="before")
    @classmethod
    def validate_html_diagrams(cls, v: Any) -> str:
        return _coerce_choice(v, [m.value for m in DiagramMode], DiagramMode.LIVE.value)

    @field_validator("output_theme", mode="before")
    @classmethod
    def validate_output_theme(cls, v: Any) -> str:
        return _coerce_choice(v, THEMES, "default")

    @field_validator("font_family", mode="before")
    @classmethod
    def validate_font_family(cls, v: Any) -> str:
        return _coerce_choice(v, FONTS, "system")

    @field_validator("code_theme", mode="before")
    @classmethod
    def validate_code_theme(cls, v: Any) -> str:
        return _coerce_choice(v, CODE_THEMES, "github")

    @field_validator("page_size", mode="before")
    @classmethod
    def validate_page_size(cls, v: Any) -> str:
        return _coerce_choice(v, PAGE_SIZES, "A4")


class ConversionResult(BaseModel):
    """Converted document ready to be returned to the caller."""

    content: bytes = Field(description="Document bytes")
    content_type: str = Field(description="MIME type")
    filename: str = Field(description="Suggested download filename")


class ProgressEvent(BaseModel):
    """A job progress update as seen by subscribers."""

    progress: int = Field(ge=0, le=100, description="Progress percentage")
    message: str = Field(default="", description="Human-readable status")

    def to_sse(self) -> str:
        """Format as a server-sent event frame."""
        payload = json.dumps({"progress": self.progress, "message": self.message})
        return f"data: {payload}\n\n"


def document_title(source_name: Optional[str]) -> str:
    """Derive a document title from an uploaded filename."""
    if not source_name:
        return "document"
    name = PurePath(source_name).name
    for suffix in (".md", ".markdown"):
        if name.lower().endswith(suffix):
            name = name[: -len(suffix)]
            break
    return name or "document"


def output_filename(source_name: Optional[str], output_format: OutputFormat) -> str:
    """Swap the Markdown extension of ``source_name`` for the output format's."""
    return f"{document_title(source_name)}.{output_format.extension}"
