"""ASGI entrypoint: REST webhooks and admin API under /api, GraphQL admin under /graphql."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from alembic import command
from alembic.config import Config
from fastapi import FastAPI
from sqlalchemy.engine import make_url
from strawberry.fastapi import GraphQLRouter

from closer_ledger.api.router import router as api_router
from closer_ledger.core.database import ENGINE, create_database_schema
from closer_ledger.core.settings import Settings, get_settings
from closer_ledger.graphql.context import context_getter
from closer_ledger.graphql.schema import schema

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
MIGRATIONS_DIR = Path(__file__).resolve().parent / "db" / "migrations"


def _alembic_config(settings: Settings) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", settings.database_url.replace("%", "%%"))
    return config


def _run_migrations() -> None:
    """Upgrade to the latest revision; build tables from metadata if Alembic cannot run."""

    try:
        command.upgrade(_alembic_config(get_settings()), "head")
    except Exception:
        logger.exception("Alembic upgrade failed, creating schema from metadata")
        create_database_schema()


def _ensure_sqlite_directory(settings: Settings) -> None:
    url = make_url(settings.database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Prepare storage on startup and release the engine pool on shutdown."""

    settings = get_settings()
    _ensure_sqlite_directory(settings)
    _run_migrations()
    app.state.settings = settings
    logger.info("%s started (%s)", settings.app_name, settings.environment)
    try:
        yield
    finally:
        ENGINE.dispose()


def create_app() -> FastAPI:
    settings = get_settings()
    _configure_logging(settings)

    application = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    application.include_router(api_router, prefix="/api")
    application.include_router(
        GraphQLRouter(schema, path="/graphql", context_getter=context_getter),
        prefix="",
    )
    return application


app = create_app()


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run("closer_ledger.main:app", host="0.0.0.0", port=8000, reload=True)
