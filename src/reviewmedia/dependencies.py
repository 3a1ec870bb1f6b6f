"""Dependency wiring helpers."""

from fastapi import FastAPI

from .api_errors import (
    ApiError,
    api_error_handler,
    ingest_error_handler,
    repository_error_handler,
)
from .config import AppConfig
from .exceptions import RepositoryError
from .infrastructure.object_storage import ObjectStorage, S3Client, build_s3_client
from .ingest.ingest_api import router as ingest_router
from .ingest.ingest_errors import IngestError
from .ingest.ingest_service import IngestService
from .ingest.validation import UploadValidator
from .media.ffmpeg_toolchain import FfmpegToolchain
from .media.image_variants import ImageVariantGenerator
from .media.video_variants import VideoVariantGenerator
from .repositories.media_record_repository import MediaRecordRepository


def build_ingest_service(
    config: AppConfig,
    *,
    s3_client: S3Client | None = None,
    toolchain: FfmpegToolchain | None = None,
) -> IngestService:
    """Assemble the pipeline; tests pass in an S3 double and a fake toolchain."""
    video_limits = config.video_limits
    storage = ObjectStorage(
        config=config.storage,
        client=s3_client if s3_client is not None else build_s3_client(config.storage),
    )
    return IngestService(
        validator=UploadValidator(config.ingest_limits),
        image_generator=ImageVariantGenerator(config.image_limits),
        video_generator=VideoVariantGenerator(
            video_limits,
            toolchain
            or FfmpegToolchain(
                ffmpeg_binary=video_limits.ffmpeg_binary,
                ffprobe_binary=video_limits.ffprobe_binary,
                timeout_seconds=video_limits.command_timeout_seconds,
            ),
        ),
        storage=storage,
        media_repo=MediaRecordRepository(config.session_factory),
        concurrency=config.concurrency,
    )


def include_routers(
    app: FastAPI,
    config: AppConfig,
    *,
    ingest_service: IngestService | None = None,
) -> None:
    """Mount module routers and attach services."""
    service = ingest_service or build_ingest_service(config)

    app.state.config = config
    app.state.ingest_service = service
    app.state.media_repo = service.media_repo

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(IngestError, ingest_error_handler)
    app.add_exception_handler(RepositoryError, repository_error_handler)
    app.include_router(ingest_router)
