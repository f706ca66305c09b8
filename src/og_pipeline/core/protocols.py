"""Protocol definitions for dependency injection and testability."""

from typing import Any, Protocol


class StoragePort(Protocol):
    """Publish side of a storage backend."""

    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        """Store ``data`` under ``key``."""
        ...

    async def generate_public_url(self, key: str) -> str:
        """Public URL under which ``key`` is (or will be) served."""
        ...


class TextMeasurer(Protocol):
    """Advance width of a single line of text."""

    def measure(self, text: str, font_size: float, font_weight: int = 400) -> float:
        """Width in pixels of ``text`` at ``font_size``."""
        ...


class Rasterizer(Protocol):
    """Turns an SVG document into PNG bytes."""

    def rasterize(self, svg: str, output_width: int) -> bytes:
        """Rasterize ``svg`` scaled to ``output_width`` pixels."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...
