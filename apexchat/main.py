import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apexchat.core.config import (
    CORS_ALLOW_ORIGIN_REGEX,
    CORS_ORIGINS,
    DATABASE_ECHO,
    DATABASE_URL,
)
from apexchat.core.database import Database
from apexchat.core.logging_setup import configure_logging
from apexchat.core.startup_checks import (
    apply_migrations,
    ensure_migrations_applied,
    validate_database_environment,
)
from apexchat.middleware.observability import ObservabilityMiddleware
import apexchat.models  # noqa: F401  registers the tables before create_all

from apexchat.routers.internal_metrics import router as internal_metrics_router
from apexchat.routers.webhook import router as webhook_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


def _startup_tasks(database: Database) -> None:
    try:
        validate_database_environment(database)
        database.open()
        if database.is_sqlite:
            database.create_all()
        else:
            apply_migrations(database, alembic_config_path=ALEMBIC_CONFIG_PATH)
        ensure_migrations_applied(database, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    database: Database = app.state.database
    _startup_tasks(database)
    try:
        yield
    finally:
        database.close()


def create_app(database: Database | None = None) -> FastAPI:
    application = FastAPI(
        title="ApexChat WhatsApp API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    application.state.database = database or Database(DATABASE_URL, echo=DATABASE_ECHO)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_origin_regex=CORS_ALLOW_ORIGIN_REGEX,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(ObservabilityMiddleware)

    application.include_router(webhook_router)
    application.include_router(internal_metrics_router)

    @application.get("/")
    def root():
        return {"status": "ok"}

    @application.get("/health")
    def health():
        return {"status": "healthy"}

    return application


app = create_app()
