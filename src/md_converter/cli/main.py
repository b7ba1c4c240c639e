"""
Main CLI interface for md-converter.

Runs the HTTP service or converts Markdown files locally, using Click
with rich console output.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from md_converter import __version__
from md_converter.cli.helpers import handle_errors
from md_converter.core.converter import DocumentConverter, create_converter
from md_converter.core.diagrams import extract_diagrams
from md_converter.core.models import (
    PAGE_SIZES, ConversionOptions, ConversionResult, DiagramMode, OutputFormat
)
from md_converter.core.progress import JobRegistry
from md_converter.core.themes import CODE_THEMES, FONTS, THEMES
from md_converter.utils.config import get_config
from md_converter.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


class CLIContext:
    """CLI context for passing state between commands."""

    def __init__(self):
        self.registry: Optional[JobRegistry] = None
        self.converter: Optional[DocumentConverter] = None

    def get_registry(self) -> JobRegistry:
        if self.registry is None:
            config = get_config()
            self.registry = JobRegistry(
                close_delay=config.progress.close_delay,
                retention=config.progress.retention,
            )
        return self.registry

    def get_converter(self) -> DocumentConverter:
        """Get converter instance."""
        if self.converter is None:
            self.converter = create_converter(get_config(), self.get_registry())
        return self.converter


# Global CLI context
cli_context = CLIContext()


@click.group()
@click.option(
    "--debug", "-d",
    is_flag=True,
    help="Enable debug logging"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output"
)
@click.version_option(version=__version__, prog_name="md-converter")
def cli(debug: bool, verbose: bool):
    """
    Convert Markdown with Mermaid diagrams to HTML, PDF and DOCX.

    Run the conversion service with ``serve`` or convert a single file
    with ``convert``.
    """
    config = get_config()
    log_level = "DEBUG" if debug else "INFO" if verbose else "WARNING"
    setup_logging(
        **config.logging.model_dump(exclude={"file", "level", "console_level"}),
        level=log_level,
        console_level=log_level,
        log_file=config.get_log_file(),
    )


@cli.command("serve")
@click.option("--host", "-h", default=None, help="Bind address (defaults to config)")
@click.option("--port", "-p", type=int, default=None, help="Port (defaults to config)")
@click.option("--log-level", default="info", help="uvicorn log level")
@handle_errors
def serve(host: Optional[str], port: Optional[int], log_level: str):
    """Start the conversion HTTP service."""
    from md_converter.api.server import create_api_server

    config = get_config()
    host = host or config.server.host
    port = port or config.server.port

    console.print("[blue]Starting md-converter service...[/blue]")
    console.print(f"   Host: [cyan]{host}[/cyan]")
    console.print(f"   Port: [cyan]{port}[/cyan]")
    console.print(f"   Diagrams: [cyan]{config.diagrams.backend}[/cyan]")
    console.print("[dim]Press Ctrl+C to stop[/dim]")

    server = create_api_server(config)
    server.run(host=host, port=port, log_level=log_level)


async def _convert_with_progress(
    converter: DocumentConverter,
    markdown: str,
    output_format: OutputFormat,
    options: ConversionOptions,
    source_name: str,
    progress: Progress,
) -> ConversionResult:
    job_id = uuid.uuid4().hex
    task = progress.add_task("Starting", total=100)
    subscription = converter.registry.subscribe(job_id)

    async def follow():
        async for event in subscription:
            progress.update(task, completed=event.progress, description=event.message)

    follower = asyncio.ensure_future(follow())
    try:
        return await converter.convert(
            markdown, output_format, options, job_id=job_id, source_name=source_name
        )
    finally:
        subscription.unsubscribe()
        await follower
        await converter.aclose()


@cli.command("convert")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice([f.value for f in OutputFormat], case_sensitive=False),
    default="pdf",
    help="Output format"
)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path),
              help="Output file (defaults to the input name with the new extension)")
@click.option("--theme", type=click.Choice(list(THEMES)), default="default", help="Colour theme")
@click.option("--font", type=click.Choice(list(FONTS)), default="system", help="Body font")
@click.option("--code-theme", type=click.Choice(list(CODE_THEMES)), default="github", help="Code block theme")
@click.option("--page-size", type=click.Choice(PAGE_SIZES), default=None, help="PDF page size")
@click.option("--header-text", default="", help="Page header text")
@click.option("--no-page-numbers", is_flag=True, help="Omit page numbers")
@click.option("--include-date", is_flag=True, help="Show today's date in the header")
@click.option(
    "--html-diagrams",
    type=click.Choice([m.value for m in DiagramMode]),
    default=DiagramMode.LIVE.value,
    help="Render HTML diagrams in the browser (live) or embed images"
)
@handle_errors
def convert(
    input_file: Path,
    output_format: str,
    output: Optional[Path],
    theme: str,
    font: str,
    code_theme: str,
    page_size: Optional[str],
    header_text: str,
    no_page_numbers: bool,
    include_date: bool,
    html_diagrams: str,
):
    """Convert a Markdown file to HTML, PDF or DOCX."""
    config = get_config()
    markdown = input_file.read_text(encoding="utf-8")
    fmt = OutputFormat(output_format.lower())
    options = ConversionOptions(
        header_text=header_text,
        page_numbers=not no_page_numbers,
        include_date=include_date,
        output_theme=theme,
        font_family=font,
        code_theme=code_theme,
        page_size=page_size or config.pdf.page_size,
        html_diagrams=html_diagrams,
    )

    converter = cli_context.get_converter()
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
        transient=True,
    ) as progress:
        result = asyncio.run(_convert_with_progress(
            converter, markdown, fmt, options, input_file.name, progress
        ))

    target = output or input_file.with_name(result.filename)
    target.write_bytes(result.content)
    console.print(f"[green]Wrote {target} ({len(result.content)} bytes)[/green]")


@cli.command("diagrams")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@handle_errors
def diagrams(input_file: Path):
    """List the diagram blocks found in a Markdown file."""
    config = get_config()
    markdown = input_file.read_text(encoding="utf-8")
    occurrences = extract_diagrams(markdown, config.diagrams.fence_tag)

    if not occurrences:
        console.print("[yellow]No diagrams found[/yellow]")
        return

    table = Table(title=f"Diagrams in {input_file.name}")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("First line", style="green")

    for occurrence in occurrences:
        first_line = occurrence.code.splitlines()[0] if occurrence.code else ""
        table.add_row(
            str(occurrence.sequence_index + 1),
            str(occurrence.start),
            str(occurrence.end),
            first_line,
        )

    console.print(table)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
