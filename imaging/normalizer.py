"""
Image normalization applied before any upload to the model and before storing
a session thumbnail.

The longer edge is clamped to ``max_edge`` (never upscaled), the aspect ratio
is kept, and the result is re-encoded as JPEG at the requested quality.
Everything happens in memory.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from errors import ImageDecodeError, ImageEncodeError, ImageReadError

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, str, Path, BinaryIO]

DEFAULT_MAX_EDGE = 1024
DEFAULT_QUALITY = 0.7
THUMBNAIL_MAX_EDGE = 800
JPEG_MIME = "image/jpeg"


@dataclass(frozen=True)
class NormalizedImage:
    """A re-encoded JPEG ready for upload or inline storage."""

    data: bytes
    width: int
    height: int
    filename: str = "image.jpeg"
    mime_type: str = JPEG_MIME

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


def compute_target_size(width: int, height: int, max_edge: int) -> Tuple[int, int]:
    """
    Return the output size for an image of ``width`` x ``height``.

    Only the longer edge is clamped; the other one is scaled proportionally and
    rounded half-up. Images already within bounds keep their size.
    """
    if max_edge < 1:
        raise ValueError(f"max_edge must be >= 1, got {max_edge}")
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size {width}x{height}")

    if width > height:
        if width > max_edge:
            height = max(1, int(height * max_edge / width + 0.5))
            width = max_edge
    else:
        if height > max_edge:
            width = max(1, int(width * max_edge / height + 0.5))
            height = max_edge
    return width, height


def normalize_image(
    source: ImageSource,
    max_edge: int = DEFAULT_MAX_EDGE,
    quality: float = DEFAULT_QUALITY,
    filename: Optional[str] = None,
) -> NormalizedImage:
    """
    Decode ``source``, downscale it to fit ``max_edge`` and re-encode as JPEG.

    Args:
        source:   raw bytes, a filesystem path, or a binary file-like object
                  (a Streamlit ``UploadedFile`` works as-is).
        max_edge: maximum length of the longer edge, in pixels.
        quality:  JPEG quality in (0, 1], as in the browser canvas API.
        filename: name used to derive the output name; defaults to the
                  source's own name when it has one.

    Raises:
        ImageReadError:   the source cannot be read or is empty.
        ImageDecodeError: the bytes are not a decodable image.
        ImageEncodeError: JPEG re-encoding failed.
    """
    if not 0.0 < quality <= 1.0:
        raise ValueError(f"quality must be in (0, 1], got {quality}")
    if max_edge < 1:
        raise ValueError(f"max_edge must be >= 1, got {max_edge}")

    raw = _read_source(source)
    name = filename or _source_name(source) or "image"

    img = _decode(raw)
    target = compute_target_size(img.width, img.height, max_edge)
    if target != img.size:
        img = img.resize(target, Image.Resampling.LANCZOS)

    data = _encode_jpeg(img, quality)
    logger.debug(
        "Normalized %s: %d bytes -> %d bytes at %dx%d",
        name, len(raw), len(data), img.width, img.height,
    )
    return NormalizedImage(
        data=data,
        width=img.width,
        height=img.height,
        filename=f"{Path(name).stem or 'image'}.jpeg",
    )


def to_data_url(
    source: ImageSource,
    max_edge: int = THUMBNAIL_MAX_EDGE,
    quality: float = DEFAULT_QUALITY,
) -> str:
    """Compressed ``data:image/jpeg;base64,...`` URL, used for session thumbnails."""
    return normalize_image(source, max_edge=max_edge, quality=quality).to_data_url()


def decode_data_url(data_url: str) -> bytes:
    """Inverse of ``to_data_url``; used to display stored thumbnails."""
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ImageReadError(detail="not a base64 data URL")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageReadError(detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_source(source: ImageSource) -> bytes:
    try:
        if isinstance(source, (bytes, bytearray)):
            raw = bytes(source)
        elif isinstance(source, (str, Path)):
            raw = Path(source).read_bytes()
        elif hasattr(source, "read"):
            if hasattr(source, "seek"):
                source.seek(0)
            raw = source.read()
        else:
            raise ImageReadError(detail=f"Unsupported image source type: {type(source).__name__}")
    except OSError as exc:
        raise ImageReadError(detail=str(exc)) from exc

    if not raw:
        raise ImageReadError(detail="empty image data")
    return raw


def _source_name(source: ImageSource) -> Optional[str]:
    if isinstance(source, (str, Path)):
        return Path(source).name
    name = getattr(source, "name", None)
    return name if isinstance(name, str) else None


def _decode(raw: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as exc:
        raise ImageDecodeError(detail=f"{type(exc).__name__}: {exc}") from exc
    return _flatten_to_rgb(img)


def _flatten_to_rgb(img: Image.Image) -> Image.Image:
    """JPEG has no alpha: composite transparent images onto white."""
    has_alpha = img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)
    if not has_alpha:
        return img.convert("RGB")
    rgba = img.convert("RGBA")
    background = Image.new("RGB", rgba.size, (255, 255, 255))
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background


def _encode_jpeg(img: Image.Image, quality: float) -> bytes:
    buf = io.BytesIO()
    try:
        img.save(buf, format="JPEG", quality=max(1, round(quality * 100)), optimize=True)
    except (OSError, ValueError) as exc:
        raise ImageEncodeError(detail=str(exc)) from exc
    return buf.getvalue()
