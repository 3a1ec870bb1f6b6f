"""FastAPI application entry point."""

from fastapi import FastAPI

from .config import AppConfig, load_config
from .dependencies import include_routers
from .ingest.ingest_service import IngestService
from .logging import configure_logging


def create_app(
    config: AppConfig | None = None,
    *,
    ingest_service: IngestService | None = None,
) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    configure_logging()
    cfg = config or load_config()
    app = FastAPI(title="Review Media")
    include_routers(app, cfg, ingest_service=ingest_service)
    return app
