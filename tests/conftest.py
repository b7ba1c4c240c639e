"""
Pytest configuration and fixtures for md-converter testing.

Every external collaborator (browser, mermaid, pandoc) is replaced by an
in-memory fake so the suite runs without Chromium or pandoc installed.
"""

from datetime import date
from typing import List, Optional, Set

import pytest

from md_converter.core.converter import DocumentConverter
from md_converter.core.documents import DocxLayout, PdfLayout
from md_converter.core.models import ProgressEvent
from md_converter.core.progress import JobRegistry
from md_converter.utils.config import Config


class FakeDiagramRenderer:
    """Returns deterministic bytes per diagram; fails for listed sources."""

    def __init__(self, failing: Optional[Set[str]] = None):
        self.failing = failing or set()
        self.calls: List[str] = []

    async def render(self, code: str) -> bytes:
        self.calls.append(code)
        if code in self.failing:
            raise RuntimeError(f"Parse error in diagram: {code}")
        return b"PNG:" + code.encode("utf-8")


class FakePdfRenderer:
    """Records the page and layout it was asked to print."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[tuple] = []

    async def render(self, html_text: str, layout: PdfLayout) -> bytes:
        self.calls.append((html_text, layout))
        if self.error is not None:
            raise self.error
        return b"%PDF-1.4 fake"


class FakeDocxRenderer:
    """Records the page, header and layout it was asked to convert."""

    def __init__(self):
        self.calls: List[tuple] = []

    async def render(self, html_text: str, header_html: Optional[str], layout: DocxLayout) -> bytes:
        self.calls.append((html_text, header_html, layout))
        return b"PK\x03\x04 fake docx"


class RecordingSubscriber:
    """Subscriber that keeps every event it receives."""

    def __init__(self, fail_on_send: bool = False):
        self.events: List[ProgressEvent] = []
        self.closed = False
        self.fail_on_send = fail_on_send

    def send(self, event: ProgressEvent) -> None:
        if self.fail_on_send:
            raise ConnectionResetError("client went away")
        self.events.append(event)

    def close(self) -> None:
        self.closed = True

    @property
    def pairs(self) -> List[tuple]:
        return [(e.progress, e.message) for e in self.events]


@pytest.fixture
def config():
    """Default configuration, independent of the environment."""
    return Config()


@pytest.fixture
def registry():
    """Registry with short teardown delays."""
    reg = JobRegistry(close_delay=0.01, retention=5.0)
    yield reg
    reg.shutdown()


@pytest.fixture
def diagram_renderer():
    return FakeDiagramRenderer()


@pytest.fixture
def pdf_renderer():
    return FakePdfRenderer()


@pytest.fixture
def docx_renderer():
    return FakeDocxRenderer()


@pytest.fixture
def converter(registry, diagram_renderer, pdf_renderer, docx_renderer, config):
    """Converter wired to fake collaborators and a fixed date."""
    return DocumentConverter(
        registry=registry,
        diagram_renderer=diagram_renderer,
        pdf_renderer=pdf_renderer,
        docx_renderer=docx_renderer,
        config=config,
        today=lambda: date(2024, 5, 17),
    )


@pytest.fixture
def two_diagram_markdown():
    return (
        "# Architecture\n\n"
        "```mermaid\nbad syntax\n```\n\n"
        "Some text between.\n\n"
        "```mermaid\ngraph TD; A-->B\n```\n"
    )
