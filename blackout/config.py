"""Configuration management for blackout redaction sessions."""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class RedactionMode(Enum):
    """How redaction regions are chosen."""

    RECTANGLE = "RECTANGLE"
    TEXT_DETECTION = "TEXT_DETECTION"  # reserved, not implemented


@dataclass
class RedactionConfig:
    """Configuration for redaction sessions and export."""

    SUPPORTED_IMAGE_FORMATS: Tuple[str, ...] = ("png", "jpg", "jpeg", "gif")

    mode: RedactionMode = RedactionMode.RECTANGLE

    # Rendering
    render_scale: float = 1.5  # surface pixels per PDF point
    image_render_scale: float = 1.0  # images are shown at their native size

    # Pointer gate, in surface pixels
    min_redaction_size: float = 5

    # Redaction styling
    redaction_fill: Tuple[float, float, float] = (0, 0, 0)  # black, 0..1 per channel
    overlay_color: Tuple[int, int, int] = (0, 0, 0)  # RGB 0..255
    overlay_alpha: float = 0.4

    # Export
    jpeg_quality: int = 92
    remove_encryption: bool = True
    verify_burn: bool = True

    # PDF serialization
    garbage: int = 4
    deflate: bool = True
