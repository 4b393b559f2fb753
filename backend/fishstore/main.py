"""
FishStore Backend with OpenTelemetry Instrumentation

Usage:
    uvicorn fishstore.main:create_app --factory --host 0.0.0.0 --port 5000
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from fishstore.config import Settings
from fishstore.database import build_engine, build_session_factory, create_tables
from fishstore.errors import register_handlers
from fishstore.headers import SecurityHeadersMiddleware
from fishstore.images import CloudinaryImageHost, FakeImageHost, ImageHost
from fishstore.logging import add_context, clear_context, configure_logging
from fishstore.mail import FakeMailer, MailSender, SmtpMailer
from fishstore.metrics import MetricsMiddleware
from fishstore.offers import OfferScheduler
from fishstore.ratelimit import build_limiter, exempt_unlimited_routes, rate_limit_exceeded_handler
from fishstore.routes import ALL_ROUTERS

logger = structlog.get_logger(__name__)


def build_mailer(settings: Settings) -> MailSender:
    if not settings.smtp_configured:
        logger.warning("SMTP_HOST not set, outgoing mail is only recorded in memory")
        return FakeMailer()
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        use_ssl=settings.smtp_secure,
        sender=settings.smtp_from,
    )


def build_image_host(settings: Settings) -> ImageHost:
    if not settings.cloudinary_configured:
        logger.warning("Cloudinary credentials not set, uploaded images are kept in memory")
        return FakeImageHost()
    return CloudinaryImageHost(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        folder=settings.cloudinary_folder,
    )


def create_app(
    settings: Optional[Settings] = None,
    mailer: Optional[MailSender] = None,
    image_host: Optional[ImageHost] = None,
) -> FastAPI:
    """Build the application; clients are created here, not at import time."""
    settings = settings or Settings.from_env()
    configure_logging(settings.environment, settings.log_level)

    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        create_tables(engine)
        scheduler = None
        if settings.scheduler_enabled:
            scheduler = OfferScheduler(session_factory)
            scheduler.start()
        logger.info("FishStore backend started", environment=settings.environment)
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown()
            app.state.mailer.close()
            engine.dispose()
            logger.info("FishStore backend stopped")

    app = FastAPI(
        title="FishStore API",
        description="Seafood storefront: catalog, checkout, accounts and back-office",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.mailer = mailer or build_mailer(settings)
    app.state.image_host = image_host or build_image_host(settings)

    limiter = build_limiter(settings)
    app.state.limiter = limiter

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        clear_context()
        add_context(request_id=request.headers.get("x-request-id") or uuid4().hex[:12], path=request.url.path)
        return await call_next(request)

    # Added last runs first: CORS, security headers, metrics, rate limit
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_handlers(app, debug=settings.is_development)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.get("/api/health")
    def health_check():
        return {
            "status": "OK",
            "message": "Fish E-commerce API is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
        }

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    for router in ALL_ROUTERS:
        app.include_router(router)
    exempt_unlimited_routes(app, limiter)

    FastAPIInstrumentor.instrument_app(app)

    return app

