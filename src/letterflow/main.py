"""FastAPI application factory and lifespan management."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from letterflow.collaborators.activity import SqlActivityLogger
from letterflow.collaborators.base import DocumentStore, NotificationDispatcher
from letterflow.collaborators.directory import SqlTemplateProvider, SqlUserDirectory
from letterflow.collaborators.images import ImageFetcher
from letterflow.collaborators.notifications import DatabaseNotificationDispatcher
from letterflow.collaborators.qr import QrCodeEncoder
from letterflow.collaborators.renderer import TemplatePdfRenderer
from letterflow.collaborators.storage import LocalDocumentStore, S3DocumentStore
from letterflow.config import Settings, settings
from letterflow.db.engine import create_all, create_db_engine, create_session_factory
from letterflow.events.webhook_config import WebhookRegistry, WebhookSubscription
from letterflow.logging_config import configure_logging
from letterflow.services.letter_base import LetterDependencies
from letterflow.services.pdf_manipulator import PdfManipulator

# Configure logging at import time
configure_logging(log_level=settings.log_level, json_output=not settings.local_mode)

logger = logging.getLogger(__name__)


def build_document_store(app_settings: Settings) -> DocumentStore:
    if app_settings.local_mode:
        return LocalDocumentStore(
            Path(app_settings.local_storage_dir),
            base_url=f"http://{app_settings.host}:{app_settings.port}/local-storage",
        )
    return S3DocumentStore(
        bucket=app_settings.s3_bucket,
        endpoint_url=app_settings.s3_endpoint_url,
        access_key=app_settings.s3_access_key,
        secret_key=app_settings.s3_secret_key,
        region=app_settings.s3_region,
    )


def build_webhook_registry(app_settings: Settings) -> WebhookRegistry:
    """Register the configured webhook endpoint, if any."""
    registry = WebhookRegistry()
    if app_settings.webhook_url:
        registry.register(
            WebhookSubscription(
                url=app_settings.webhook_url,
                secret=app_settings.webhook_secret,
                event_types=list(app_settings.webhook_event_types),
            )
        )
        logger.info("Webhook subscriber registered: %s", app_settings.webhook_url)
    return registry


def build_letter_dependencies(
    app_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    document_store: DocumentStore,
    notifier: NotificationDispatcher | None = None,
) -> LetterDependencies:
    """Wire the letter services' collaborators from settings."""
    fetcher = ImageFetcher(document_store, timeout=app_settings.image_fetch_timeout_seconds)
    return LetterDependencies(
        session_factory=session_factory,
        document_store=document_store,
        template_provider=SqlTemplateProvider(),
        user_directory=SqlUserDirectory(),
        notifier=notifier or DatabaseNotificationDispatcher(
            session_factory, app_settings.client_url, build_webhook_registry(app_settings)
        ),
        activity_logger=SqlActivityLogger(),
        qr_encoder=QrCodeEncoder(),
        renderer=TemplatePdfRenderer(),
        pdf=PdfManipulator(
            fetcher,
            qr_default_size=app_settings.qr_default_size,
            qr_default_margin=app_settings.qr_default_margin,
        ),
        public_base_url=app_settings.public_base_url,
        signed_url_ttl=app_settings.signed_url_ttl_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    app_settings: Settings = app.state.settings
    db_url = app_settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no Alembic migrations)
    if "sqlite" in db_url:
        await create_all(engine)
        logger.info("SQLite tables created (local mode)")

    session_factory = create_session_factory(engine)
    notifier = DatabaseNotificationDispatcher(
        session_factory, app_settings.client_url, build_webhook_registry(app_settings)
    )
    app.state.db_engine = engine
    app.state.db_session_factory = session_factory
    app.state.letter_deps = build_letter_dependencies(
        app_settings, session_factory, build_document_store(app_settings), notifier
    )

    logger.info("Letterflow API started (db=%s)", "sqlite" if "sqlite" in db_url else "postgresql")
    yield

    # Shutdown
    await notifier.drain()
    await engine.dispose()
    logger.info("Letterflow API shutdown complete")


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = app_settings or settings
    app = FastAPI(
        title="Letterflow API",
        version="0.4.0",
        description="Sequential review and approval of letters with signed, QR-verifiable PDF artifacts.",
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    # CORS middleware for the web client
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting sits inside auth so limits key on the authenticated user
    from letterflow.api.middleware.rate_limit import setup_rate_limiter
    setup_rate_limiter(app, app_settings)

    # Add middleware (order matters: last added = first executed)
    from letterflow.api.middleware.auth import AuthMiddleware
    from letterflow.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(AuthMiddleware)
    app.add_middleware(TraceIdMiddleware)

    # Register error handlers
    from letterflow.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    # Prometheus metrics (internal endpoint)
    if app_settings.metrics_enabled:
        Instrumentator(
            should_group_status_codes=True,
            should_respect_env_var=False,
            excluded_handlers=["/api/v1/health.*", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    from letterflow.api.router import api_router
    app.include_router(api_router)

    # Serve the filesystem document store so signed URLs resolve in local mode
    if app_settings.local_mode:
        app.mount(
            "/local-storage",
            StaticFiles(directory=app_settings.local_storage_dir, check_dir=False),
            name="local-storage",
        )

    return app


app = create_app()
