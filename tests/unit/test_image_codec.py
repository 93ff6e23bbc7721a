import httpx
import pytest

from dishscan.core.exceptions import ImageReadError
from dishscan.services.image_codec import ImageCodec, decode_data_uri, to_data_uri
from dishscan.services.ocr_service import TesseractOCREngine
from tests.conftest import make_image_bytes, make_oriented_jpeg


@pytest.mark.asyncio
async def test_encode_bytes_reports_mime_and_size(png_bytes):
    encoded = await ImageCodec().encode(png_bytes)
    assert encoded.mime_type == "image/png"
    assert (encoded.width, encoded.height) == (1000, 500)
    assert encoded.data == png_bytes


@pytest.mark.asyncio
async def test_encode_is_deterministic_and_keeps_source_bytes():
    jpeg = make_image_bytes(64, 48, fmt="JPEG")
    codec = ImageCodec()
    first = await codec.encode(jpeg)
    second = await codec.encode(jpeg)
    assert first == second
    assert first.data == jpeg
    assert first.mime_type == "image/jpeg"


@pytest.mark.asyncio
async def test_encode_file_path(tmp_path, png_bytes):
    path = tmp_path / "menu.png"
    path.write_bytes(png_bytes)
    encoded = await ImageCodec().encode(str(path))
    assert encoded.data == png_bytes


@pytest.mark.asyncio
async def test_data_uri_round_trip_strips_framing(png_bytes):
    codec = ImageCodec()
    encoded = await codec.encode(png_bytes)
    uri = to_data_uri(encoded)
    assert uri.startswith("data:image/png;base64,")
    assert decode_data_uri(uri) == png_bytes
    assert (await codec.encode(uri)).data == png_bytes


@pytest.mark.asyncio
async def test_encode_fetches_http_urls(png_bytes):
    def handler(request):
        return httpx.Response(200, content=png_bytes)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        encoded = await ImageCodec(http_client=client).encode("https://blob.example.com/photo.png")
    assert encoded.data == png_bytes


@pytest.mark.asyncio
async def test_http_error_is_image_read_error():
    def handler(request):
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ImageReadError):
            await ImageCodec(http_client=client).encode("https://blob.example.com/revoked.png")


@pytest.mark.asyncio
@pytest.mark.parametrize("handle", [b"", b"not-an-image", "/nonexistent/dir/photo.jpg", "data:image/png;base64,@@@"])
async def test_unreadable_sources_raise_image_read_error(handle):
    with pytest.raises(ImageReadError):
        await ImageCodec().encode(handle)


def test_decode_rejects_non_data_uri():
    with pytest.raises(ImageReadError):
        decode_data_uri("https://example.com/a.png")


@pytest.mark.asyncio
@pytest.mark.parametrize("orientation", [6, 8])
async def test_rotated_photo_reports_upright_size(orientation):
    raw = make_oriented_jpeg(400, 100, orientation)

    encoded = await ImageCodec().encode(raw)

    assert (encoded.width, encoded.height) == (100, 400)
    assert encoded.data == raw
    # OCR runs on the upright image, so its frame must match the reported size
    assert TesseractOCREngine()._prepare(encoded.data).size == (encoded.width, encoded.height)


@pytest.mark.asyncio
async def test_upright_orientation_keeps_stored_size():
    encoded = await ImageCodec().encode(make_oriented_jpeg(400, 100, 1))
    assert (encoded.width, encoded.height) == (400, 100)
