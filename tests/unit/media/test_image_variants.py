import io

import pytest
from PIL import Image

from src.reviewmedia.config import MIB, ImageLimits
from src.reviewmedia.ingest.ingest_errors import (
    ImageDimensionsTooLargeError,
    ImageDimensionsTooSmallError,
    ImageTooLargeError,
    UnsupportedImageFormatError,
)
from src.reviewmedia.media.image_variants import ImageVariantGenerator, compression_ratio
from src.reviewmedia.media.media_models import VariantRole
from tests.helpers.images import CORRUPT_PNG, encode_image, jpeg_of_size


def open_variant(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def test_two_mib_jpeg_produces_smaller_compressed_and_square_thumbnail() -> None:
    data = jpeg_of_size(2 * MIB)
    generator = ImageVariantGenerator(ImageLimits())

    result = generator.generate(data, "image/jpeg")

    assert result.compressed.role is VariantRole.COMPRESSED
    assert result.compressed.size < len(data)
    assert result.compression_ratio is not None and result.compression_ratio > 0
    assert (result.compressed.width, result.compressed.height) == (1620, 1080)
    assert result.compressed.mime_type == "image/webp"
    assert (result.original_width, result.original_height) == (2400, 1600)
    assert result.source_format == "JPEG"

    thumbnail = open_variant(result.thumbnail.data)
    assert thumbnail.format == "WEBP"
    assert thumbnail.size == (300, 300)


@pytest.mark.parametrize(
    ("width", "height", "fmt", "mode"),
    [
        (1000, 120, "PNG", "RGB"),
        (90, 1400, "JPEG", "RGB"),
        (40, 40, "GIF", "P"),
        (640, 480, "PNG", "RGBA"),
        (333, 777, "BMP", "L"),
    ],
)
def test_thumbnail_is_always_target_size(width: int, height: int, fmt: str, mode: str) -> None:
    data = encode_image(width, height, fmt=fmt, mode=mode)

    result = ImageVariantGenerator(ImageLimits()).generate(data, f"image/{fmt.lower()}")

    assert (result.thumbnail.width, result.thumbnail.height) == (300, 300)
    assert open_variant(result.thumbnail.data).size == (300, 300)


def test_compressed_never_enlarges_small_images() -> None:
    data = encode_image(200, 100, fmt="PNG")

    result = ImageVariantGenerator(ImageLimits()).generate(data, "image/png")

    assert (result.compressed.width, result.compressed.height) == (200, 100)


def test_rejects_byte_size_over_image_limit() -> None:
    data = encode_image(64, 64, fmt="PNG")
    generator = ImageVariantGenerator(ImageLimits(max_bytes=len(data) - 1))

    with pytest.raises(ImageTooLargeError):
        generator.generate(data, "image/png")


def test_rejects_decoded_dimensions_over_limit() -> None:
    data = encode_image(600, 200, fmt="PNG")
    generator = ImageVariantGenerator(ImageLimits(max_width=500, max_height=500))

    with pytest.raises(ImageDimensionsTooLargeError) as excinfo:
        generator.generate(data, "image/png")

    assert excinfo.value.details == {"width": 600, "height": 200}


def test_rejects_tiny_images() -> None:
    data = encode_image(5, 50, fmt="PNG")

    with pytest.raises(ImageDimensionsTooSmallError):
        ImageVariantGenerator(ImageLimits()).generate(data, "image/png")


def test_rejects_undecodable_buffer() -> None:
    with pytest.raises(UnsupportedImageFormatError):
        ImageVariantGenerator(ImageLimits()).generate(CORRUPT_PNG, "image/png")


def test_rejects_format_outside_supported_list() -> None:
    data = encode_image(64, 64, fmt="PNG")
    generator = ImageVariantGenerator(ImageLimits(supported_formats=("JPEG",)))

    with pytest.raises(UnsupportedImageFormatError):
        generator.generate(data, "image/png")


def test_compression_ratio() -> None:
    assert compression_ratio(1000, 250) == 0.75
    assert compression_ratio(100, 150) == -0.5
    assert compression_ratio(0, 10) == 0.0
