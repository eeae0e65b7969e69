"""
Chart image validation and compression (Pillow).

Screenshots come in as PNG/JPEG/WebP. They are downscaled to a bounded
size and re-encoded: opaque PNGs become JPEG, transparent PNGs stay PNG,
large files go to WebP when the encoder is available.
"""

import io
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from PIL import Image, UnidentifiedImageError, features

from tradejournal.schemas.chart_image import ChartImage, ImageDimensions, ImageValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartImageConfig:
    max_file_size: int = 10 * 1024 * 1024
    inline_threshold: int = 0  # always blob storage
    compression_quality: float = 0.85
    webp_quality: float = 0.8
    aggressive_quality: float = 0.75
    max_dimension: int = 2048
    aggressive_compression_threshold: int = 500 * 1024
    allowed_types: Tuple[str, ...] = ("image/png", "image/jpeg", "image/webp")
    allowed_extensions: Tuple[str, ...] = (".png", ".jpg", ".jpeg", ".webp")
    progressive_jpeg: bool = True


CHART_IMAGE_CONFIG = ChartImageConfig()

_PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}


class ChartImageError(ValueError):
    """Raised when an uploaded chart image is invalid or unreadable."""


@dataclass
class CompressionResult:
    data: bytes
    original_size: int
    compressed_size: int
    compression_ratio: float
    output_format: str


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = 0
    while size >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    value = ("%.2f" % (size / 1024**i)).rstrip("0").rstrip(".")
    return f"{value} {units[i]}"


def validate_image_file(filename: str, mime_type: str, size: int) -> ImageValidationResult:
    cfg = CHART_IMAGE_CONFIG
    result = ImageValidationResult()

    if size > cfg.max_file_size:
        result.is_valid = False
        result.error = (
            f"File size ({format_file_size(size)}) exceeds maximum allowed size "
            f"({format_file_size(cfg.max_file_size)})"
        )
        return result

    if mime_type not in cfg.allowed_types:
        result.is_valid = False
        result.error = (
            f'File type "{mime_type}" is not supported. '
            f"Allowed types: {', '.join(cfg.allowed_types)}"
        )
        return result

    extension = os.path.splitext(filename.lower())[1]
    if extension not in cfg.allowed_extensions:
        result.is_valid = False
        result.error = (
            f'File extension "{extension}" is not supported. '
            f"Allowed extensions: {', '.join(cfg.allowed_extensions)}"
        )
        return result

    if size > cfg.inline_threshold:
        result.warnings.append(
            f"Large file ({format_file_size(size)}) will be stored separately for better performance"
        )

    return result


def _open(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ChartImageError("Failed to load image") from exc
    return img


def has_transparency(img: Image.Image) -> bool:
    if img.mode == "P":
        return "transparency" in img.info
    if img.mode in ("RGBA", "LA", "PA"):
        alpha_min, _ = img.getchannel("A").getextrema()
        return alpha_min < 255
    return False


def supports_webp() -> bool:
    return bool(features.check("webp"))


def get_image_dimensions(data: bytes) -> ImageDimensions:
    with _open(data) as img:
        return ImageDimensions(width=img.width, height=img.height)


def compress_image(
    data: bytes,
    mime_type: str,
    max_dimension: int = CHART_IMAGE_CONFIG.max_dimension,
    quality: Optional[float] = None,
) -> CompressionResult:
    cfg = CHART_IMAGE_CONFIG
    original_size = len(data)

    with _open(data) as img:
        width, height = img.size
        if width > max_dimension or height > max_dimension:
            ratio = min(max_dimension / width, max_dimension / height)
            width = max(1, round(width * ratio))
            height = max(1, round(height * ratio))
            work = img.resize((width, height), Image.Resampling.LANCZOS)
        else:
            work = img.copy()

    is_large = original_size > cfg.aggressive_compression_threshold
    default_quality = cfg.aggressive_quality if is_large else cfg.compression_quality

    if mime_type == "image/png" and not has_transparency(work):
        output_format = "image/jpeg"
        q = quality if quality is not None else default_quality
    elif mime_type == "image/png":
        output_format = "image/png"
        q = 1.0
    elif is_large and supports_webp():
        output_format = "image/webp"
        q = quality if quality is not None else cfg.webp_quality
    else:
        output_format = "image/jpeg"
        q = quality if quality is not None else default_quality

    save_kwargs: Dict[str, Any] = {}
    if output_format == "image/jpeg":
        if work.mode != "RGB":
            work = work.convert("RGB")
        save_kwargs = {"quality": int(q * 100), "optimize": True, "progressive": cfg.progressive_jpeg}
    elif output_format == "image/webp":
        save_kwargs = {"quality": int(q * 100)}
    else:
        save_kwargs = {"optimize": True}

    buf = io.BytesIO()
    try:
        work.save(buf, format=_PIL_FORMATS[output_format], **save_kwargs)
    except (OSError, ValueError) as exc:
        raise ChartImageError("Failed to compress image") from exc
    finally:
        work.close()

    compressed = buf.getvalue()
    return CompressionResult(
        data=compressed,
        original_size=original_size,
        compressed_size=len(compressed),
        compression_ratio=original_size / len(compressed) if compressed else 0.0,
        output_format=output_format,
    )


def generate_id() -> str:
    return uuid.uuid4().hex


def create_chart_image(
    filename: str,
    mime_type: str,
    data: bytes,
    should_compress: bool = True,
) -> Tuple[ChartImage, bytes]:
    """
    Validate + optionally compress an upload.

    Returns the attachment descriptor and the bytes to store. Compression
    failures fall back to the original bytes.
    """
    validation = validate_image_file(filename, mime_type, len(data))
    if not validation.is_valid:
        raise ChartImageError(validation.error)

    processed = data
    processed_type = mime_type
    compressed = False
    original_size = len(data)

    if should_compress and (original_size > CHART_IMAGE_CONFIG.inline_threshold or mime_type != "image/webp"):
        try:
            result = compress_image(data, mime_type)
            processed = result.data
            processed_type = result.output_format
            compressed = True
            logger.info(
                "Image optimized: %s -> %s (%.2fx) [%s]",
                format_file_size(original_size),
                format_file_size(result.compressed_size),
                result.compression_ratio,
                result.output_format,
            )
        except ChartImageError as exc:
            logger.warning("Image compression failed, using original: %s", exc)

    dimensions = get_image_dimensions(processed)

    chart_image = ChartImage(
        id=generate_id(),
        filename=filename,
        mime_type=processed_type,
        size=len(processed),
        uploaded_at=datetime.now(timezone.utc),
        storage="blob",
        dimensions=dimensions,
        compressed=compressed,
        original_size=original_size if compressed else None,
        blob_id=str(uuid.uuid4()),
    )
    return chart_image, processed


def get_image_data_url(chart_image: ChartImage) -> Optional[str]:
    if chart_image.storage == "inline" and chart_image.data:
        return f"data:{chart_image.mime_type};base64,{chart_image.data}"
    return None


def calculate_chart_attachments_size(chart_attachments: Optional[Dict[str, Any]]) -> int:
    if not chart_attachments:
        return 0
    total = 0
    for key in ("beforeEntry", "afterExit"):
        attachment = chart_attachments.get(key)
        if attachment:
            total += attachment.get("size") or 0
    return total
