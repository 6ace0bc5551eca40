import asyncio
import base64

import httpx
import pytest

from imagegrid.errors import (
    DecodeError,
    EmptyInput,
    EncodingDecodeError,
    TextDecodeError,
    TransportError,
)
from imagegrid.grid import GridShape
from imagegrid.service import GridService, decode_payload, parse_source_list

from conftest import make_image_bytes

URLS = ["http://img.test/a.png", "http://img.test/b.png", "http://img.test/c.png"]


def std(text):
    return base64.b64encode(text.encode()).decode()


def url_safe(text, pad=True):
    encoded = base64.urlsafe_b64encode(text.encode()).decode()
    return encoded if pad else encoded.rstrip("=")


def run(routes, method, *args):
    async def handler(request):
        url = str(request.url)
        if url not in routes:
            return httpx.Response(404)
        return httpx.Response(200, content=routes[url])

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            service = GridService(client, decode_workers=2)
            return await getattr(service, method)(*args)

    return asyncio.run(go())


def test_parse_standard():
    assert parse_source_list(std(",".join(URLS))) == URLS


def test_parse_trims_and_drops_empty_pieces():
    payload = std(" http://img.test/a.png , ,http://img.test/b.png,, ")
    assert parse_source_list(payload) == ["http://img.test/a.png", "http://img.test/b.png"]


def test_parse_url_safe_unpadded_matches_standard():
    # a run of "?" always encodes to at least one "_"
    text = "http://img.test/a.png??????,http://img.test/b.png"
    unpadded = url_safe(text, pad=False)
    assert "=" not in unpadded
    assert "_" in unpadded

    assert parse_source_list(unpadded) == parse_source_list(std(text))


def test_parse_url_safe_padded():
    text = "http://img.test/a.png?x=~~~~"
    payload = url_safe(text)
    assert payload.endswith("=")

    assert parse_source_list(payload) == [text]


def test_decode_payload_prefers_standard():
    assert decode_payload("aGVsbG8=") == b"hello"


@pytest.mark.parametrize("payload", ["aGVsbG9=", "aGVsbG9", "aGVsbB=="])
def test_decode_payload_rejects_nonzero_trailing_bits(payload):
    with pytest.raises(EncodingDecodeError):
        decode_payload(payload)


def test_decode_payload_url_safe_unpadded():
    assert decode_payload("aGVsbG8") == b"hello"


def test_decode_payload_rejects_garbage():
    with pytest.raises(EncodingDecodeError) as exc_info:
        decode_payload("not*base64!")

    assert str(exc_info.value).startswith("Failed to decode base64: ")


def test_parse_rejects_invalid_utf8():
    payload = base64.b64encode(b"\xff\xfe\xfd").decode()

    with pytest.raises(TextDecodeError):
        parse_source_list(payload)


def test_parse_comma_only_is_empty_list():
    assert parse_source_list(std(" , ,, ")) == []


def test_process_urls_empty():
    with pytest.raises(EmptyInput):
        run({}, "process_urls", [])


def test_encoded_comma_only_fails_in_fetch():
    with pytest.raises(EmptyInput):
        run({}, "process_encoded_source_list", std(",,,"))


def test_process_urls_grid():
    routes = {url: make_image_bytes(40, 40, (i * 60, 0, 0, 255)) for i, url in enumerate(URLS)}

    canvas = run(routes, "process_urls", URLS)

    assert canvas.shape == GridShape(2, 2)
    assert canvas.size == (80, 80)
    assert (canvas.pixels[0:40, 40:80] == [60, 0, 0, 255]).all()
    assert (canvas.pixels[40:80, 40:80] == [255, 255, 255, 255]).all()


def test_process_encoded_source_list():
    routes = {url: make_image_bytes(10, 20) for url in URLS}
    payload = url_safe(",".join(URLS), pad=False)

    canvas = run(routes, "process_encoded_source_list", payload)

    assert canvas.size == (20, 40)


def test_one_missing_source_fails_request():
    routes = {URLS[0]: make_image_bytes(10, 10), URLS[2]: make_image_bytes(10, 10)}

    with pytest.raises(TransportError) as exc_info:
        run(routes, "process_urls", URLS)

    assert exc_info.value.url == URLS[1]


def test_undecodable_source_fails_request():
    routes = {URLS[0]: make_image_bytes(10, 10), URLS[1]: b"<html>nope</html>"}

    with pytest.raises(DecodeError):
        run(routes, "process_urls", URLS[:2])


def test_process_bytes():
    buffers = [make_image_bytes(30, 30) for _ in range(5)]

    canvas = run({}, "process_bytes", buffers)

    assert canvas.shape == GridShape(3, 2)
    assert canvas.size == (90, 60)


def test_process_bytes_empty():
    with pytest.raises(EmptyInput):
        run({}, "process_bytes", [])
