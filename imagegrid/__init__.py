"""Contact-sheet service: fetch images, lay them out on a grid, return a JPEG."""

__version__ = "1.0"
