"""
Diagram renderers.

Turn one diagram's source into PNG bytes, either in the shared headless
browser or through the mermaid-cli executable.
"""

import asyncio
import html
import tempfile
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from playwright.async_api import Error as PlaywrightError

from md_converter.core.browser import BrowserSession
from md_converter.core.exceptions import DependencyError, RenderError, TimeoutError
from md_converter.utils.config import DiagramConfig
from md_converter.utils.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class DiagramRenderer(Protocol):
    """Renders diagram source code to a raster image."""

    async def render(self, code: str) -> bytes:
        """Return PNG bytes for ``code``; raise on failure."""
        ...


class PlaywrightDiagramRenderer:
    """Render diagrams with the Mermaid script inside headless Chromium."""

    def __init__(self, session: BrowserSession, config: Optional[DiagramConfig] = None):
        self.session = session
        self.config = config or DiagramConfig()

    def build_page(self, code: str) -> str:
        """HTML page that renders ``code`` on load."""
        return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <script src="{html.escape(self.config.mermaid_script_url)}"></script>
  <style>body {{ margin: 0; background: {html.escape(self.config.background)}; }}</style>
</head>
<body>
  <div class="mermaid">
{html.escape(code, quote=False)}
  </div>
  <script>mermaid.initialize({{ startOnLoad: true, theme: '{html.escape(self.config.mermaid_theme)}' }});</script>
</body>
</html>"""

    async def render(self, code: str) -> bytes:
        timeout_ms = self.config.render_timeout * 1000
        async with self.session.page() as page:
            await page.set_viewport_size({"width": self.config.width, "height": 800})
            await page.set_content(self.build_page(code))
            try:
                await page.wait_for_selector(".mermaid svg", timeout=timeout_ms)
            except PlaywrightError as e:
                raise TimeoutError(
                    f"Diagram did not render within {self.config.render_timeout}s",
                    error_code="render_timeout",
                ) from e

            element = await page.query_selector(".mermaid")
            if element is None:
                raise RenderError("Diagram container disappeared", error_code="render_failed")
            return await element.screenshot(type="png")


class MermaidCLIRenderer:
    """Render diagrams with mermaid-cli (``mmdc``) in a subprocess."""

    def __init__(self, config: Optional[DiagramConfig] = None):
        self.config = config or DiagramConfig()

    async def render(self, code: str) -> bytes:
        with tempfile.TemporaryDirectory(prefix="md-converter-") as tmp:
            source = Path(tmp) / "diagram.mmd"
            target = Path(tmp) / "diagram.png"
            source.write_text(code, encoding="utf-8")

            try:
                process = await asyncio.create_subprocess_exec(
                    self.config.mmdc_path,
                    "-i", str(source),
                    "-o", str(target),
                    "-t", self.config.mermaid_theme,
                    "-b", self.config.background,
                    "-w", str(self.config.width),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as e:
                raise DependencyError(
                    "mermaid-cli (mmdc) not found. Install with: npm install -g @mermaid-js/mermaid-cli",
                    error_code="mmdc_missing",
                ) from e

            try:
                _, stderr = await asyncio.wait_for(
                    process.communicate(), timeout=self.config.render_timeout
                )
            except asyncio.TimeoutError as e:
                process.kill()
                await process.wait()
                raise TimeoutError(
                    f"mmdc did not finish within {self.config.render_timeout}s",
                    error_code="render_timeout",
                ) from e

            if process.returncode != 0 or not target.exists():
                raise RenderError(
                    f"mmdc exited with status {process.returncode}",
                    error_code="render_failed",
                    details={"stderr": stderr.decode("utf-8", errors="replace").strip()},
                )

            return target.read_bytes()


def create_diagram_renderer(
    config: DiagramConfig,
    session: Optional[BrowserSession] = None,
) -> DiagramRenderer:
    """Build the renderer selected by ``config.backend``."""
    if config.backend == "mmdc":
        return MermaidCLIRenderer(config)
    return PlaywrightDiagramRenderer(session or BrowserSession(), config)
