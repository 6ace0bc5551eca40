import os

from imagegrid import __version__

LOG_LEVEL = os.environ.get("IMAGEGRID_LOG_LEVEL", "INFO").upper()
HOST = os.environ.get("IMAGEGRID_HOST", "0.0.0.0")
PORT = int(os.environ.get("IMAGEGRID_PORT", "3000"))

# Output encoding
JPEG_QUALITY = int(os.environ.get("IMAGEGRID_JPEG_QUALITY", "90"))
if not (1 <= JPEG_QUALITY <= 100):
    raise ValueError("IMAGEGRID_JPEG_QUALITY must be between 1 and 100")

# Outbound fetches share one client; timeouts live on it
FETCH_TIMEOUT = float(os.environ.get("IMAGEGRID_FETCH_TIMEOUT", "30"))
USER_AGENT = os.environ.get("IMAGEGRID_USER_AGENT", f"imagegrid/{__version__}")

DECODE_WORKERS = int(os.environ.get("IMAGEGRID_DECODE_WORKERS", "0")) or os.cpu_count() or 1
