"""
FastAPI server for md-converter.

Exposes the conversion endpoint, a per-job server-sent event stream of
progress updates and a health check.
"""

import time
from contextlib import asynccontextmanager
from pathlib import PurePath
from typing import AsyncIterator, Optional

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse

from md_converter import __version__
from md_converter.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from md_converter.api.models import ErrorResponse, HealthCheckResponse
from md_converter.core.converter import DocumentConverter, create_converter
from md_converter.core.exceptions import ConversionError, MDConverterError, ValidationError
from md_converter.core.models import ConversionOptions
from md_converter.core.progress import JobRegistry, Subscription
from md_converter.utils.config import Config, get_config
from md_converter.utils.logging import get_logger

logger = get_logger(__name__)


def _error_response(status_code: int, error: MDConverterError) -> JSONResponse:
    body = ErrorResponse(message=error.message, error_code=error.error_code, details=error.details or None)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _flag(value: Optional[str], default: bool) -> bool:
    """Interpret a form checkbox value."""
    if value is None or value == "":
        return default
    return value.strip().lower() not in ("false", "0", "off", "no")


class APIServer:
    """md-converter HTTP service."""

    def __init__(
        self,
        config: Optional[Config] = None,
        converter: Optional[DocumentConverter] = None,
        registry: Optional[JobRegistry] = None,
    ):
        """Initialize API server.

        ``converter`` and ``registry`` default to the real collaborators
        built from ``config``; tests inject their own.
        """
        self.config = config or get_config()
        if registry is None:
            registry = converter.registry if converter is not None else JobRegistry(
                close_delay=self.config.progress.close_delay,
                retention=self.config.progress.retention,
            )
        self.registry = registry
        self.converter = converter or create_converter(self.config, self.registry)

        self._start_time = time.time()
        self.app = self._create_app()

        logger.info("API server initialized", extra={
            "diagram_backend": self.config.diagrams.backend,
            "fence_tag": self.config.diagrams.fence_tag,
        })

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        """Manage application lifespan."""
        logger.info("API server starting up")
        yield
        logger.info("API server shutting down")
        self.registry.shutdown()
        await self.converter.aclose()

    def _create_app(self) -> FastAPI:
        """Create and configure FastAPI application."""
        app = FastAPI(
            title="md-converter",
            description="Convert Markdown with Mermaid diagrams to HTML, PDF and DOCX",
            version=__version__,
            lifespan=self.lifespan,
        )

        self._add_middleware(app)
        self._add_routes(app)

        return app

    def _add_middleware(self, app: FastAPI):
        """Add middleware stack to FastAPI app."""
        app.add_middleware(ErrorHandlingMiddleware)
        app.add_middleware(RequestLoggingMiddleware)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.server.allowed_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type"],
        )

    async def _event_stream(self, subscription: Subscription) -> AsyncIterator[str]:
        """Server-sent event frames for one subscription."""
        try:
            yield f"retry: {self.config.progress.sse_retry_ms}\n"
            async for event in subscription:
                yield event.to_sse()
        finally:
            subscription.unsubscribe()

    def _check_upload(self, upload: Optional[UploadFile]) -> str:
        if upload is None or not upload.filename:
            raise ValidationError("No file uploaded", error_code="missing_document")

        filename = PurePath(upload.filename).name
        allowed = [ext.lower() for ext in self.config.server.allowed_extensions]
        if PurePath(filename).suffix.lower() not in allowed:
            raise ValidationError(
                f"Only {', '.join(allowed)} files are allowed",
                error_code="invalid_extension",
                details={"filename": filename},
            )
        return filename

    def _add_routes(self, app: FastAPI):
        """Add API routes to FastAPI app."""

        @app.get("/health", response_model=HealthCheckResponse)
        async def health_check():
            """Health check endpoint."""
            return HealthCheckResponse(
                success=True,
                message="Service is healthy",
                status="ok",
                version=__version__,
                uptime_seconds=time.time() - self._start_time,
                active_jobs=len(self.registry),
            )

        @app.get("/progress/{job_id}")
        async def progress_stream(job_id: str):
            """Stream progress events for a conversion job."""
            subscription = self.registry.subscribe(job_id)
            return StreamingResponse(
                self._event_stream(subscription),
                media_type="text/event-stream",
                headers={
                    "Cache-Control": "no-cache",
                    "Connection": "keep-alive",
                    "X-Accel-Buffering": "no",
                },
            )

        @app.post("/convert")
        async def convert(
            markdown: Optional[UploadFile] = File(None),
            output_format: Optional[str] = Form(None, alias="format"),
            header_text: Optional[str] = Form(None, alias="headerText"),
            page_numbers: Optional[str] = Form(None, alias="pageNumbers"),
            header_align: Optional[str] = Form(None, alias="headerAlign"),
            footer_align: Optional[str] = Form(None, alias="footerAlign"),
            include_date: Optional[str] = Form(None, alias="includeDate"),
            output_theme: Optional[str] = Form(None, alias="outputTheme"),
            font_family: Optional[str] = Form(None, alias="fontFamily"),
            code_theme: Optional[str] = Form(None, alias="codeTheme"),
            page_size: Optional[str] = Form(None, alias="pageSize"),
            custom_css: Optional[str] = Form(None, alias="customCSS"),
            html_diagrams: Optional[str] = Form(None, alias="htmlDiagrams"),
            table_of_contents: Optional[str] = Form(None, alias="tableOfContents"),
            job_id: Optional[str] = Form(None, alias="jobId"),
        ):
            """Convert an uploaded Markdown file."""
            try:
                filename = self._check_upload(markdown)
                fmt = DocumentConverter.validate_request("", output_format)

                data = await markdown.read(self.config.server.max_upload_bytes + 1)
                if len(data) > self.config.server.max_upload_bytes:
                    raise ValidationError("File too large", error_code="file_too_large")
                try:
                    text = data.decode("utf-8")
                except UnicodeDecodeError:
                    raise ValidationError("File is not valid UTF-8", error_code="invalid_encoding") from None
            except ValidationError as e:
                logger.warning("Rejected conversion request", extra={"reason": e.message})
                status = 413 if e.error_code == "file_too_large" else 400
                return _error_response(status, e)
            finally:
                if markdown is not None:
                    await markdown.close()

            options = ConversionOptions(
                header_text=header_text,
                page_numbers=_flag(page_numbers, True),
                header_align=header_align,
                footer_align=footer_align,
                include_date=_flag(include_date, False),
                output_theme=output_theme,
                font_family=font_family,
                code_theme=code_theme,
                page_size=page_size or self.config.pdf.page_size,
                custom_css=custom_css,
                html_diagrams=html_diagrams,
                table_of_contents=_flag(table_of_contents, True),
            )

            job_id = job_id or None
            if job_id:
                self.registry.ensure_job(job_id)
                self.registry.update(job_id, 1, "Upload received")

            try:
                result = await self.converter.convert(
                    text, fmt, options, job_id=job_id, source_name=filename
                )
            except ConversionError as e:
                return _error_response(500, e)

            return Response(
                content=result.content,
                media_type=result.content_type,
                headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
            )

    def run(self, host: Optional[str] = None, port: Optional[int] = None, log_level: str = "info"):
        """Run the API server."""
        import uvicorn

        host = host or self.config.server.host
        port = port or self.config.server.port

        logger.info("Starting API server", extra={
            "host": host,
            "port": port,
            "docs_url": f"http://{host}:{port}/docs"
        })

        uvicorn.run(
            self.app,
            host=host,
            port=port,
            log_level=log_level
        )


def create_api_server(config: Optional[Config] = None) -> APIServer:
    """Factory function to create API server."""
    return APIServer(config)


def create_app() -> FastAPI:
    """ASGI application factory (``uvicorn --factory md_converter.api.server:create_app``)."""
    return create_api_server().app
