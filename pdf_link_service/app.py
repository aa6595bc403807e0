"""
PDF Link Service - FastAPI application.

POST /convert renders an HTML document with Chromium, stores the PDF in the
artifact directory and returns its public URL. Stored PDFs are served from
/pdfs without authentication and expire after the configured TTL.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .auth import verify_token
from .config import ConverterSettings, get_settings
from .models import ConvertRequest, ConvertResponse, ErrorResponse, HealthResponse
from .renderer import ChromiumRenderer, RenderError, RenderTimeoutError, build_renderer
from .store import PUBLIC_PREFIX, ArtifactStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

HTML_REQUIRED = "HTML content is required"
OVERLOADED = "Service overloaded. Too many concurrent PDF operations."
RENDER_FAILED = "Failed to generate PDF"
RENDER_TIMED_OUT = "PDF rendering timed out"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate Chromium, start the sweeper; cancel timers on shutdown."""
    settings: ConverterSettings = app.state.settings
    store: ArtifactStore = app.state.store

    if settings.validate_renderer_on_startup:
        logger.info("PDF link service starting - validating Playwright installation...")
        error = await app.state.renderer.validate()
        app.state.renderer_ready = error is None
        app.state.renderer_error = error
        if error:
            logger.error(f"❌ Playwright validation failed: {error}")
            logger.error("PDF generation will not work until this is resolved.")

    # Files left behind by a previous process have no deferred timer
    await asyncio.to_thread(store.sweep, settings.pdf_ttl_seconds)
    sweeper = asyncio.create_task(
        store.run_sweeper(settings.sweep_interval_seconds, settings.pdf_ttl_seconds)
    )

    yield

    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    await store.close()
    logger.info("PDF link service stopped")


def create_app(
    settings: Optional[ConverterSettings] = None,
    renderer: Optional[ChromiumRenderer] = None,
    store: Optional[ArtifactStore] = None,
) -> FastAPI:
    """
    Build the application around one settings object.

    Args:
        settings: Validated configuration (defaults to get_settings())
        renderer: Rendering capability (defaults to the configured variant)
        store: Artifact store (defaults to one rooted at settings.pdf_dir)
    """
    settings = settings or get_settings()
    store = store or ArtifactStore(settings.pdf_dir)
    renderer = renderer or build_renderer(settings)

    app = FastAPI(
        title="PDF Link Service",
        version=__version__,
        description="Renders HTML to PDF with Chromium and returns a short-lived download URL",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.renderer = renderer
    app.state.render_semaphore = asyncio.Semaphore(settings.max_concurrent_pdfs)
    app.state.renderer_ready = None
    app.state.renderer_error = None

    register_exception_handlers(app)

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """
        Health check endpoint for container orchestration.

        Returns HTTP 503 if Chromium validation ran at startup and failed.
        """
        state = request.app.state
        semaphore: asyncio.Semaphore = state.render_semaphore
        ready = state.renderer_ready
        health = HealthResponse(
            status="OK" if ready is not False else "UNAVAILABLE",
            message="Server is running" if ready is not False
            else "PDF rendering unavailable - Playwright/Chromium not working",
            timestamp=datetime.utcnow(),
            renderer=state.renderer.name,
            active_renders=settings.max_concurrent_pdfs - semaphore._value,
            max_concurrent=settings.max_concurrent_pdfs,
            stored_artifacts=len(state.store.list_artifacts()),
            renderer_ready=ready,
            renderer_error=state.renderer_error,
        )
        if ready is False:
            return JSONResponse(status_code=503, content=health.model_dump(mode="json"))
        return health

    @app.post(
        "/convert",
        response_model=ConvertResponse,
        responses={
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
            504: {"model": ErrorResponse},
        },
    )
    async def convert(
        payload: ConvertRequest,
        request: Request,
        _credentials: HTTPAuthorizationCredentials = Depends(verify_token),
    ) -> ConvertResponse:
        """
        Render HTML to a stored PDF and return its public URL.

        Raises:
            HTTPException: 400 missing html, 503 overload, 504 timeout, 500 render failure
        """
        if not payload.html or not payload.html.strip():
            raise HTTPException(status_code=400, detail=HTML_REQUIRED)

        state = request.app.state
        semaphore: asyncio.Semaphore = state.render_semaphore
        if semaphore.locked():
            logger.warning("PDF service overloaded, rejecting request")
            raise HTTPException(status_code=503, detail=OVERLOADED)

        async with semaphore:
            try:
                logger.info(f"Starting PDF render ({len(payload.html)} chars, renderer={state.renderer.name})")
                pdf_bytes = await state.renderer.render(payload.html)

                name = state.store.new_name()
                path = await state.store.write(name, pdf_bytes)
            except RenderTimeoutError as e:
                logger.error(f"PDF rendering timed out: {e}")
                raise HTTPException(status_code=504, detail=RENDER_TIMED_OUT)
            except (RenderError, OSError) as e:
                logger.exception(f"Error generating PDF: {e}")
                raise HTTPException(status_code=500, detail=RENDER_FAILED)

        state.store.schedule_deletion(path, settings.pdf_ttl_seconds)

        base_url = settings.public_base_url or str(request.base_url)
        pdf_url = ArtifactStore.url_for(name, base_url)
        logger.info(f"PDF ready: {pdf_url}")
        return ConvertResponse(pdfUrl=pdf_url)

    app.mount(f"/{PUBLIC_PREFIX}", StaticFiles(directory=store.directory), name=PUBLIC_PREFIX)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as {"error": "<message>"}."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected invalid body on {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})
