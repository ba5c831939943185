"""Raster helpers for image documents, surfaces and overlays."""

import io
import logging
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


class ImageProcessor:
    """Decode, encode and paint RGB pixel buffers."""

    @staticmethod
    def decode(data: bytes) -> np.ndarray:
        """Decode PNG/JPEG/GIF bytes into an RGB array.

        GIFs yield their first frame. Raises OSError or ValueError for
        bytes Pillow cannot identify.
        """
        with Image.open(io.BytesIO(data)) as img:
            return np.array(img.convert("RGB"))

    @staticmethod
    def encode(pixels: np.ndarray, lossless: bool, quality: int = 92) -> bytes:
        """Encode an RGB array as PNG (lossless) or JPEG at ``quality``."""
        img_bgr = cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR)
        if lossless:
            ok, buf = cv2.imencode(".png", img_bgr)
        else:
            ok, buf = cv2.imencode(".jpg", img_bgr, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
        if not ok:
            raise ValueError("Image encoding failed")
        return buf.tobytes()

    @staticmethod
    def resize(pixels: np.ndarray, scale: float) -> np.ndarray:
        """Resize by ``scale``; the result is at least 1x1."""
        h, w = pixels.shape[:2]
        new_w = max(1, int(round(w * scale)))
        new_h = max(1, int(round(h * scale)))
        if (new_w, new_h) == (w, h):
            return pixels.copy()
        interp = cv2.INTER_AREA if scale < 1 else cv2.INTER_LINEAR
        return cv2.resize(pixels, (new_w, new_h), interpolation=interp)

    @staticmethod
    def fill_rect(
        pixels: np.ndarray,
        box: Tuple[float, float, float, float],
        color: Tuple[int, int, int],
    ) -> bool:
        """Paint ``box`` (x0, y0, x1, y1) solid, in place.

        Edges are rounded outward so partially covered pixels are painted too.

        Returns:
            False if the box misses the image entirely
        """
        H, W = pixels.shape[:2]
        x0, y0, x1, y1 = box
        clipped = _clip_rect(np.floor(x0), np.floor(y0), np.ceil(x1), np.ceil(y1), W, H)
        if clipped is None:
            return False

        cx0, cy0, cx1, cy1 = clipped
        pixels[cy0:cy1, cx0:cx1] = color
        return True

    @staticmethod
    def blend_boxes(
        pixels: np.ndarray,
        boxes,
        color: Tuple[int, int, int],
        alpha: float,
    ) -> np.ndarray:
        """Return a copy with translucent boxes and a solid outline drawn on top."""
        if not boxes:
            return pixels.copy()

        layer = pixels.copy()
        for box in boxes:
            ImageProcessor.fill_rect(layer, box, color)

        out = cv2.addWeighted(layer, alpha, pixels, 1 - alpha, 0)
        for x0, y0, x1, y1 in boxes:
            cv2.rectangle(
                out,
                (int(round(x0)), int(round(y0))),
                (int(round(x1)), int(round(y1))),
                color,
                thickness=1,
            )
        return out


def _clip_rect(
    x1: float, y1: float, x2: float, y2: float, W: int, H: int
) -> Optional[Tuple[int, int, int, int]]:
    """Clip rectangle to image bounds."""
    x1 = max(0, min(W, int(x1)))
    x2 = max(0, min(W, int(x2)))
    y1 = max(0, min(H, int(y1)))
    y2 = max(0, min(H, int(y2)))
    if x2 <= x1 or y2 <= y1:
        return None
    return x1, y1, x2, y2
