"""Optional collaborators handed to the encoder and decoder."""

from __future__ import annotations

from typing import Protocol

from PIL import Image

from .errors import ConversionError


class TransparencyMask(Protocol):
    """Marks screen pixels (256x192 coordinates) that carry no image data."""

    def is_transparent(self, x: int, y: int) -> bool:
        ...


class ReferenceOverlay(Protocol):
    """An image blended over the rendered screen with ``opacity`` (0-1)."""

    opacity: float

    def overlay_image(self) -> Image.Image:
        ...


class AlphaMask:
    """Transparency taken from an alpha band: alpha below ``threshold`` is transparent."""

    def __init__(self, alpha: Image.Image, threshold: int = 128) -> None:
        self.width, self.height = alpha.size
        self._data = list(alpha.convert("L").tobytes())
        self.threshold = threshold

    def is_transparent(self, x: int, y: int) -> bool:
        return self._data[y * self.width + x] < self.threshold


class ImageOverlay:
    def __init__(self, image: Image.Image, opacity: float = 0.3) -> None:
        if not 0.0 <= opacity <= 1.0:
            raise ConversionError("Overlay opacity must be between 0 and 1")
        self.image = image
        self.opacity = opacity

    def overlay_image(self) -> Image.Image:
        return self.image
