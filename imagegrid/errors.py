"""Errors raised by the grid pipeline.

Every failure the core can produce is a ``GridError``. The message is meant to
be shown to the caller as-is; the underlying library exception stays reachable
through ``__cause__``.
"""


class GridError(Exception):
    """Base class for all pipeline failures."""


class EmptyInput(GridError):
    def __init__(self):
        super().__init__("No images provided")


class ImageDecodeError(GridError):
    """Bytes could not be interpreted as a supported image."""

    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"Failed to decode image: {cause}")


class DownloadError(GridError):
    """Fetching a source failed (network error, non-success status, ...)."""

    def __init__(self, cause, url=None):
        self.cause = cause
        self.url = url
        super().__init__(f"Failed to download image: {cause}")


class EncodingDecodeError(GridError):
    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"Failed to decode base64: {cause}")


class TextDecodeError(GridError):
    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"Invalid UTF-8 in decoded data: {cause}")


DecodeError = ImageDecodeError
TransportError = DownloadError
