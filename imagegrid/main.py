from contextlib import asynccontextmanager
from typing import List
import asyncio
import logging

import httpx
from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import PlainTextResponse, Response

from imagegrid import __version__, config
from imagegrid.errors import GridError
from imagegrid.grid import Canvas
from imagegrid.service import GridService

# Setup logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One client for the whole process, shared by every request
    async with httpx.AsyncClient(
        timeout=config.FETCH_TIMEOUT,
        follow_redirects=True,
        headers={"User-Agent": config.USER_AGENT},
    ) as client:
        app.state.service = GridService(client, decode_workers=config.DECODE_WORKERS)
        yield


app = FastAPI(title="Image Grid Service", version=__version__, lifespan=lifespan)


@app.exception_handler(GridError)
async def grid_error_handler(request: Request, exc: GridError):
    logger.warning(f"❌ {request.method} {request.url.path}: {exc}")
    return PlainTextResponse(str(exc), status_code=400)


async def _jpeg_response(canvas: Canvas) -> Response:
    loop = asyncio.get_running_loop()
    try:
        body = await loop.run_in_executor(None, canvas.to_jpeg, config.JPEG_QUALITY)
    except (OSError, ValueError) as e:
        logger.error(f"❌ JPEG encoding failed: {e}")
        return PlainTextResponse(f"Failed to encode image: {e}", status_code=500)

    logger.info(
        f"✅ Grid ready: {canvas.shape.columns}x{canvas.shape.rows} cells, "
        f"{canvas.width}x{canvas.height}px, {len(body)} bytes"
    )
    return Response(content=body, media_type="image/jpeg")


@app.get('/health')
def health():
    """Health check endpoint."""
    return {'status': 'ok', 'service': 'imagegrid', 'version': __version__}


@app.post('/grid')
async def grid_from_uploads(request: Request, files: List[UploadFile] = File(...)):
    """
    Build a grid from uploaded image files, in upload order.

    Returns:
        The grid as ``image/jpeg``, or a plain-text 400 if any file is not an image.
    """
    buffers = [await f.read() for f in files]
    logger.info(f"Processing {len(buffers)} uploaded images")
    canvas = await request.app.state.service.process_bytes(buffers)
    return await _jpeg_response(canvas)


@app.get('/{encoded:path}')
async def grid_from_urls(request: Request, encoded: str):
    """
    Build a grid from a base64 encoded, comma separated list of image URLs.

    Standard, URL-safe unpadded and URL-safe padded encodings are accepted.
    """
    canvas = await request.app.state.service.process_encoded_source_list(encoded)
    return await _jpeg_response(canvas)
