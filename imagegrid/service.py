import asyncio
import base64
import binascii
import logging
import re
from functools import partial
from typing import List, Optional, Sequence

import httpx

from imagegrid import fetcher
from imagegrid.decoder import decode_all
from imagegrid.errors import EmptyInput, EncodingDecodeError, TextDecodeError
from imagegrid.grid import Canvas, composite

logger = logging.getLogger(__name__)

_URL_SAFE_ALPHABET = re.compile(r"[A-Za-z0-9\-_]*={0,2}")


def _check_canonical(raw: bytes, reencoded: bytes, payload: str) -> bytes:
    # unused low bits of the last symbol must be zero
    if reencoded.decode("ascii") != payload:
        raise binascii.Error("invalid last symbol")
    return raw


def _b64_standard(payload: str) -> bytes:
    raw = base64.b64decode(payload, validate=True)
    return _check_canonical(raw, base64.b64encode(raw), payload)


def _b64_url_safe_no_pad(payload: str) -> bytes:
    if "=" in payload:
        raise binascii.Error("padding not allowed")
    if not _URL_SAFE_ALPHABET.fullmatch(payload):
        raise binascii.Error("invalid character for URL-safe alphabet")
    padded = payload + "=" * (-len(payload) % 4)
    raw = base64.b64decode(padded, altchars=b"-_", validate=True)
    return _check_canonical(raw, base64.urlsafe_b64encode(raw).rstrip(b"="), payload)


def _b64_url_safe(payload: str) -> bytes:
    if not _URL_SAFE_ALPHABET.fullmatch(payload):
        raise binascii.Error("invalid character for URL-safe alphabet")
    raw = base64.b64decode(payload, altchars=b"-_", validate=True)
    return _check_canonical(raw, base64.urlsafe_b64encode(raw), payload)


# Tried in order; the first variant that decodes wins.
_B64_VARIANTS = (_b64_standard, _b64_url_safe_no_pad, _b64_url_safe)


def decode_payload(encoded: str) -> bytes:
    error = None
    for variant in _B64_VARIANTS:
        try:
            return variant(encoded)
        except (binascii.Error, ValueError) as e:
            error = e
    raise EncodingDecodeError(error) from error


def parse_source_list(encoded: str) -> List[str]:
    """
    Turn an encoded, comma-joined URL list into URLs.

    Empty pieces are dropped, so the result may be empty; rejecting that is
    left to the fetch stage.

    Raises:
        EncodingDecodeError: no base64 variant accepted the payload.
        TextDecodeError: the decoded bytes are not UTF-8.
    """
    raw = decode_payload(encoded)
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise TextDecodeError(e) from e
    return [piece.strip() for piece in text.split(",") if piece.strip()]


class GridService:
    """Runs fetch, decode and compositing for one request at a time.

    The HTTP client is owned by the caller and shared across requests.
    """

    def __init__(self, client: httpx.AsyncClient, decode_workers: Optional[int] = None):
        self.client = client
        self.decode_workers = decode_workers

    async def _decode_and_composite(self, buffers: Sequence[bytes]) -> Canvas:
        loop = asyncio.get_running_loop()
        images = await loop.run_in_executor(None, partial(decode_all, buffers, self.decode_workers))
        return composite(images)

    async def process_urls(self, urls: Sequence[str]) -> Canvas:
        buffers = await fetcher.fetch(self.client, urls)
        return await self._decode_and_composite(buffers)

    async def process_encoded_source_list(self, encoded: str) -> Canvas:
        urls = parse_source_list(encoded)
        logger.info(f"Decoded source list with {len(urls)} URLs")
        return await self.process_urls(urls)

    async def process_bytes(self, buffers: Sequence[bytes]) -> Canvas:
        """Composite images that were uploaded rather than fetched."""
        if not buffers:
            raise EmptyInput()
        return await self._decode_and_composite(buffers)
