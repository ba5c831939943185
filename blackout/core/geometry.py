"""Coordinate frames and the conversions between them.

Three frames are in play while redacting:

- display: the on-screen size of the rendered page, where pointer events land
- surface: the pixel buffer the page was rasterized into
- document: PDF user space (origin bottom-left) or the image pixel grid
  (origin top-left)

Every ``Rect`` carries its frame so values from different frames cannot be
mixed silently.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class Frame(Enum):
    DISPLAY = "display"
    SURFACE = "surface"
    DOCUMENT = "document"


class Origin(Enum):
    TOP_LEFT = "top-left"  # images
    BOTTOM_LEFT = "bottom-left"  # PDF pages


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle; ``x, y`` is the top-left corner in ``frame``."""

    x: float
    y: float
    width: float
    height: float
    frame: Frame

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Rect size must be non-negative: {self.width}x{self.height}")

    @property
    def x1(self) -> float:
        return self.x + self.width

    @property
    def y1(self) -> float:
        return self.y + self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return (x0, y0, x1, y1)."""
        return (self.x, self.y, self.x1, self.y1)

    def clip(self, size: Size) -> Optional["Rect"]:
        """Intersect with [0, width] x [0, height]; None when nothing is left."""
        x0 = max(0.0, min(size.width, self.x))
        y0 = max(0.0, min(size.height, self.y))
        x1 = max(0.0, min(size.width, self.x1))
        y1 = max(0.0, min(size.height, self.y1))
        if x1 <= x0 or y1 <= y0:
            return None
        return Rect(x0, y0, x1 - x0, y1 - y0, self.frame)


def rect_from_points(
    start: Tuple[float, float], end: Tuple[float, float], frame: Frame
) -> Rect:
    """Build a rect from two drag corners, whatever direction the drag went."""
    (sx, sy), (ex, ey) = start, end
    return Rect(min(sx, ex), min(sy, ey), abs(ex - sx), abs(ey - sy), frame)


def _expect(rect: Rect, frame: Frame):
    if rect.frame is not frame:
        raise ValueError(f"Expected a {frame.value} rect, got {rect.frame.value}")


def _scale(rect: Rect, sx: float, sy: float, frame: Frame) -> Rect:
    return Rect(rect.x * sx, rect.y * sy, rect.width * sx, rect.height * sy, frame)


def display_to_surface(rect: Rect, display_size: Size, surface_size: Size) -> Rect:
    """Scale a display-space rect into the surface's pixel buffer."""
    _expect(rect, Frame.DISPLAY)
    return _scale(
        rect,
        surface_size.width / display_size.width,
        surface_size.height / display_size.height,
        Frame.SURFACE,
    )


def surface_to_display(rect: Rect, surface_size: Size, display_size: Size) -> Rect:
    """Inverse of :func:`display_to_surface`."""
    _expect(rect, Frame.SURFACE)
    return _scale(
        rect,
        display_size.width / surface_size.width,
        display_size.height / surface_size.height,
        Frame.DISPLAY,
    )


def surface_to_document(
    rect: Rect, surface_size: Size, doc_size: Size, origin: Origin
) -> Rect:
    """Map a surface rect into document space.

    With ``Origin.BOTTOM_LEFT`` the result's ``y`` is the rect's lower edge,
    measured up from the bottom of the page. Out-of-page input is mapped
    as-is; callers clip when burning.

    Args:
        rect: Surface-space rectangle
        surface_size: Surface size the rect was drawn against
        doc_size: Native page size (PDF points or image pixels)
        origin: Document origin convention

    Returns:
        Document-space rectangle
    """
    _expect(rect, Frame.SURFACE)
    x_scale = doc_size.width / surface_size.width
    y_scale = doc_size.height / surface_size.height

    x = rect.x * x_scale
    y = rect.y * y_scale
    width = rect.width * x_scale
    height = rect.height * y_scale

    if origin is Origin.BOTTOM_LEFT:
        y = doc_size.height - y - height

    return Rect(x, y, width, height, Frame.DOCUMENT)


def document_to_surface(
    rect: Rect, doc_size: Size, surface_size: Size, origin: Origin
) -> Rect:
    """Inverse of :func:`surface_to_document`."""
    _expect(rect, Frame.DOCUMENT)
    x_scale = surface_size.width / doc_size.width
    y_scale = surface_size.height / doc_size.height

    y = rect.y
    if origin is Origin.BOTTOM_LEFT:
        y = doc_size.height - rect.y - rect.height

    return Rect(
        rect.x * x_scale,
        y * y_scale,
        rect.width * x_scale,
        rect.height * y_scale,
        Frame.SURFACE,
    )
