"""
Image codec for scan inputs.

Turns a user-supplied image handle into a transport-safe payload shared by
the inference call and the OCR pass, and re-frames payloads as data URIs
for embedding.
"""

import base64
import binascii
import io
import logging
from pathlib import Path
from typing import Optional, Tuple

import httpx
from PIL import ExifTags, Image, UnidentifiedImageError

from dishscan.core.exceptions import ImageReadError
from dishscan.models.internal_models import EncodedImage, ImageHandle

# Pillow format name -> MIME type
_FORMAT_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
    "MPO": "image/jpeg",
}

# EXIF orientations that rotate by 90 or 270 degrees
_TRANSPOSED_ORIENTATIONS = {5, 6, 7, 8}


class ImageCodec:
    """
    Reads image handles into ``EncodedImage`` payloads.

    The payload is the source's own bytes, never re-compressed, so encoding
    is deterministic and lossless relative to the source.
    """

    DEFAULT_FETCH_TIMEOUT = 10.0

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, fetch_timeout: float = DEFAULT_FETCH_TIMEOUT):
        self.http_client = http_client
        self.fetch_timeout = fetch_timeout
        self.logger = logging.getLogger(__name__)

    async def encode(self, handle: ImageHandle) -> EncodedImage:
        """
        Encode an image handle.

        Args:
            handle: Raw bytes, filesystem path, data: URI or http(s) URL

        Returns:
            EncodedImage with raw payload bytes, MIME type and pixel size

        Raises:
            ImageReadError: If the source cannot be read or is not an image
        """
        raw = await self._read_source(handle)
        if not raw:
            raise ImageReadError("Source image is empty")

        mime_type, width, height = self._inspect(raw)
        self.logger.debug(f"Encoded {len(raw)} byte {mime_type} image ({width}x{height})")
        return EncodedImage(data=raw, mime_type=mime_type, width=width, height=height)

    async def _read_source(self, handle: ImageHandle) -> bytes:
        if isinstance(handle, (bytes, bytearray, memoryview)):
            return bytes(handle)

        if isinstance(handle, Path):
            return self._read_file(handle)

        if isinstance(handle, str):
            if handle.startswith("data:"):
                return decode_data_uri(handle)
            if handle.startswith(("http://", "https://")):
                return await self._fetch(handle)
            return self._read_file(Path(handle))

        raise ImageReadError(
            f"Unsupported image handle type: {type(handle).__name__}",
            details={"handle_type": type(handle).__name__}
        )

    def _read_file(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise ImageReadError(f"Cannot read image file {path}: {e}", details={"path": str(path)})

    async def _fetch(self, url: str) -> bytes:
        try:
            if self.http_client is not None:
                response = await self.http_client.get(url)
            else:
                async with httpx.AsyncClient(timeout=self.fetch_timeout, follow_redirects=True) as client:
                    response = await client.get(url)
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as e:
            raise ImageReadError(f"Cannot fetch image from {url}: {e}", details={"url": url})

    def _inspect(self, raw: bytes) -> Tuple[str, int, int]:
        try:
            with Image.open(io.BytesIO(raw)) as image:
                width, height = image.size
                # Report the upright frame, matching what OCR sees after exif_transpose
                if image.getexif().get(ExifTags.Base.Orientation) in _TRANSPOSED_ORIENTATIONS:
                    width, height = height, width
                mime_type = _FORMAT_MIME_TYPES.get(image.format or "", Image.MIME.get(image.format or ""))
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageReadError(f"Source is not a readable image: {e}")

        if not mime_type:
            raise ImageReadError("Unsupported image format")
        return mime_type, width, height


def to_data_uri(encoded: EncodedImage) -> str:
    """Frame an encoded payload as an embeddable ``data:`` URI."""
    payload = base64.b64encode(encoded.data).decode("ascii")
    return f"data:{encoded.mime_type};base64,{payload}"


def decode_data_uri(uri: str) -> bytes:
    """
    Strip the ``data:<mime>;base64,`` framing and return the raw payload.

    Raises:
        ImageReadError: If the URI is not a base64 data URI
    """
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ImageReadError("Not a base64 data URI")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageReadError(f"Invalid base64 payload in data URI: {e}")
