"""Figma REST API access."""

from figdigest.figma.client import FigmaClient

__all__ = ["FigmaClient"]
