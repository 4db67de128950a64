from contextlib import asynccontextmanager
import logging

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from mememe.api.metrics import router as metrics_router
from mememe.api.v1.routes import router as api_router
from mememe.api.v1.shared.rate_limit import install_rate_limit_middleware
from mememe.core.config import Settings, get_settings
from mememe.core.telemetry import configure_tracing, instrument_app
from mememe.jobs.template_refresh import TemplateRefreshJob, TemplateRefreshScheduler
from mememe.services.rate_limiter import get_rate_limiter

logger = logging.getLogger(__name__)
REQUEST_ID_HEADER = "X-Request-Id"


def _configure_logging(settings: Settings) -> None:
    """
    Apply LOG_LEVEL to the application loggers.

    httpx and httpcore log every outbound request at INFO; community feed
    fan-out makes that noisy, so they stay at WARNING unless debugging.
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.getLogger("mememe").setLevel(level)

    client_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(client_level)


def _install_request_id_middleware(app: FastAPI) -> None:
    """Ensure each response includes a stable X-Request-Id header."""

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER, str(uuid4()))
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    settings = get_settings()
    configure_tracing(settings)

    if settings.template_cache_warmup_on_startup:
        summary = await TemplateRefreshJob().run()
        logger.info("Template warmup finished: %s", summary.to_dict())

    scheduler: TemplateRefreshScheduler | None = None
    if settings.template_refresh_scheduler_enabled:
        scheduler = TemplateRefreshScheduler(settings)
        scheduler.start()

    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()


def create_app() -> FastAPI:
    """Application factory for FastAPI."""
    settings = get_settings()
    app = FastAPI(
        title="MemeMe API",
        description="Trending meme template catalog with shared caching and rate limiting.",
        version="0.1.0",
        lifespan=lifespan,
    )

    _configure_logging(settings)
    instrument_app(app, settings)

    app.state.rate_limiter = get_rate_limiter()
    if settings.rate_limit_enabled:
        install_rate_limit_middleware(app, settings)
    _install_request_id_middleware(app)

    allow_origins = settings.cors_allow_origins
    allow_origin_regex = settings.cors_allow_origin_regex
    if allow_origins or allow_origin_regex:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allow_origins,
            allow_origin_regex=allow_origin_regex,
            allow_credentials=bool(allow_origins),
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=[
                "X-RateLimit-Limit",
                "X-RateLimit-Remaining",
                "X-RateLimit-Reset",
            ],
        )

    app.include_router(metrics_router)
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()
