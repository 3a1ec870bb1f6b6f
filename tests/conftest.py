from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.reviewmedia.config import (
    AppConfig,
    ConcurrencyLimits,
    ImageLimits,
    IngestLimits,
    StorageConfig,
    VideoLimits,
)
from src.reviewmedia.db.db_init import init_db
from src.reviewmedia.dependencies import build_ingest_service
from src.reviewmedia.ingest.ingest_service import IngestService
from src.reviewmedia.main import create_app
from tests.mocks.storage import InMemoryS3Client
from tests.mocks.video import FakeToolchain

os.environ.setdefault("REVIEWMEDIA_DATABASE_URL", "sqlite://")

TEST_BUCKET = "review-media-test"


@pytest.fixture()
def engine() -> Engine:
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture()
def storage_config() -> StorageConfig:
    return StorageConfig(bucket=TEST_BUCKET, region="eu-central-1")


@pytest.fixture()
def s3_client() -> InMemoryS3Client:
    return InMemoryS3Client()


@pytest.fixture()
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture()
def app_config(
    engine: Engine,
    session_factory: sessionmaker[Session],
    storage_config: StorageConfig,
) -> AppConfig:
    return AppConfig(
        ingest_limits=IngestLimits(),
        image_limits=ImageLimits(),
        video_limits=VideoLimits(),
        storage=storage_config,
        concurrency=ConcurrencyLimits(),
        database_url="sqlite://",
        engine=engine,
        session_factory=session_factory,
    )


@pytest.fixture()
def make_service(
    app_config: AppConfig,
    s3_client: InMemoryS3Client,
    toolchain: FakeToolchain,
) -> Callable[..., IngestService]:
    """Build an ``IngestService`` with optional overrides of the injected config."""

    def factory(
        *,
        client: InMemoryS3Client | None = None,
        video_toolchain: FakeToolchain | None = None,
        **overrides: Any,
    ) -> IngestService:
        config = AppConfig(
            ingest_limits=overrides.pop("ingest_limits", app_config.ingest_limits),
            image_limits=overrides.pop("image_limits", app_config.image_limits),
            video_limits=overrides.pop("video_limits", app_config.video_limits),
            storage=overrides.pop("storage", app_config.storage),
            concurrency=overrides.pop("concurrency", app_config.concurrency),
            database_url=app_config.database_url,
            engine=app_config.engine,
            session_factory=app_config.session_factory,
        )
        assert not overrides, f"unknown overrides: {sorted(overrides)}"
        return build_ingest_service(
            config,
            s3_client=client or s3_client,
            toolchain=video_toolchain or toolchain,
        )

    return factory


@pytest.fixture()
def ingest_service(make_service: Callable[..., IngestService]) -> IngestService:
    return make_service()


@pytest.fixture()
def client(app_config: AppConfig, ingest_service: IngestService) -> TestClient:
    app = create_app(app_config, ingest_service=ingest_service)
    with TestClient(app) as test_client:
        yield test_client
