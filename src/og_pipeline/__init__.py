"""OG image pipeline: render and publish photo preview images."""

__version__ = "0.1.0"
