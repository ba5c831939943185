"""Document kinds, decoding and page rendering.

PDFs are handled by PyMuPDF; raster images are decoded with Pillow and kept
as RGB numpy arrays.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any, Iterable, List, Optional

import fitz
import numpy as np

from blackout.config import RedactionConfig
from blackout.core.geometry import Origin, Size
from blackout.core.store import Redaction
from blackout.errors import (
    CorruptDocument,
    DecryptionFailed,
    PasswordRequired,
    RenderFailure,
    UnsupportedFileType,
)
from blackout.utils.image import ImageProcessor

logger = logging.getLogger(__name__)


class DocumentFamily(Enum):
    PDF = "pdf"
    IMAGE = "image"


@dataclass(frozen=True)
class DocumentKind:
    """PDF, or an image together with its format."""

    family: DocumentFamily
    image_format: Optional[str] = None

    @classmethod
    def pdf(cls) -> "DocumentKind":
        return cls(DocumentFamily.PDF)

    @classmethod
    def image(cls, image_format: str) -> "DocumentKind":
        return cls(DocumentFamily.IMAGE, image_format.lower())

    @classmethod
    def from_filename(cls, name: str, config: RedactionConfig = None) -> "DocumentKind":
        """Classify a file by its extension.

        Raises:
            UnsupportedFileType: for anything but PDF and supported images
        """
        config = config or RedactionConfig()
        ext = PurePath(name).suffix.lower().lstrip(".")
        if ext == "pdf":
            return cls.pdf()
        if ext in config.SUPPORTED_IMAGE_FORMATS:
            return cls.image(ext)
        raise UnsupportedFileType(name)

    @property
    def is_pdf(self) -> bool:
        return self.family is DocumentFamily.PDF

    @property
    def origin(self) -> Origin:
        return Origin.BOTTOM_LEFT if self.is_pdf else Origin.TOP_LEFT

    @property
    def lossless(self) -> bool:
        return self.image_format == "png"


@dataclass(frozen=True)
class PageHandle:
    """A loaded page and its native document-space size."""

    index: int
    doc_width: float
    doc_height: float
    kind: DocumentKind
    source: Any = field(repr=False, compare=False)  # fitz.Document or RGB array

    @property
    def doc_size(self) -> Size:
        return Size(self.doc_width, self.doc_height)


@dataclass
class DecodedDocument:
    kind: DocumentKind
    pages: List[PageHandle]
    handle: Optional[fitz.Document] = field(default=None, repr=False)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def close(self):
        if self.handle is not None:
            self.handle.close()
            self.handle = None


@dataclass(frozen=True)
class RenderInfo:
    surface_width: int
    surface_height: int
    doc_width: float
    doc_height: float


def redacted_filename(name: str) -> str:
    """report.pdf -> report_redacted.pdf"""
    path = PurePath(name)
    if not path.suffix:
        return f"{path.name}_redacted"
    return f"{path.stem}_redacted{path.suffix}"


def open_pdf(data: bytes) -> fitz.Document:
    """Open PDF bytes with PyMuPDF, mapping parse errors to CorruptDocument."""
    try:
        doc = fitz.open(stream=bytes(data), filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise CorruptDocument(
            "Failed to load the PDF file. The file may be corrupted or in an unsupported format."
        ) from e

    if not doc.needs_pass:
        _require_pages(doc)
    return doc


def _require_pages(doc: fitz.Document):
    if doc.page_count == 0:
        doc.close()
        raise CorruptDocument("The PDF file contains no pages.")


def probe_encrypted(data: bytes) -> bool:
    """Cheap check whether a PDF needs a password before it can be decoded.

    Unreadable bytes report False; the full decode surfaces the real error.
    """
    try:
        doc = open_pdf(data)
    except CorruptDocument as e:
        logger.debug(f"Encryption probe could not open document: {e}")
        return False

    try:
        return bool(doc.needs_pass)
    finally:
        doc.close()


def decode(data: bytes, kind: DocumentKind, password: str = None) -> DecodedDocument:
    """Fully decode a document.

    Args:
        data: Document bytes (a private copy is taken)
        kind: Document kind decided at load time
        password: Password for encrypted PDFs

    Returns:
        DecodedDocument with one PageHandle per page

    Raises:
        PasswordRequired: encrypted PDF and no password given
        DecryptionFailed: the password does not open the PDF
        CorruptDocument: the bytes are not a valid document of ``kind``
    """
    if kind.is_pdf:
        return _decode_pdf(data, password)
    return _decode_image(data, kind)


def _decode_pdf(data: bytes, password: Optional[str]) -> DecodedDocument:
    doc = open_pdf(data)

    if doc.needs_pass:
        if not password:
            doc.close()
            raise PasswordRequired()
        if not doc.authenticate(password):
            doc.close()
            raise DecryptionFailed()
        _require_pages(doc)

    kind = DocumentKind.pdf()
    pages = []
    for page in doc:
        rect = page.rect
        pages.append(PageHandle(page.number, rect.width, rect.height, kind, doc))

    logger.info(f"Decoded PDF with {len(pages)} pages")
    return DecodedDocument(kind, pages, handle=doc)


def _decode_image(data: bytes, kind: DocumentKind) -> DecodedDocument:
    try:
        pixels = ImageProcessor.decode(bytes(data))
    except (OSError, ValueError) as e:
        raise CorruptDocument("Failed to load image. The file may be corrupted.") from e

    h, w = pixels.shape[:2]
    logger.info(f"Decoded {kind.image_format} image: {w}x{h}")
    return DecodedDocument(kind, [PageHandle(0, w, h, kind, pixels)])


class Surface:
    """The pixel buffer a page is rasterized into, plus its on-screen size.

    Until a display size is set the surface is shown 1:1.
    """

    def __init__(self, display_width: float = None, display_height: float = None):
        self.pixels: Optional[np.ndarray] = None
        self._display: Optional[Size] = None
        if display_width and display_height:
            self._display = Size(display_width, display_height)

    @property
    def is_blank(self) -> bool:
        return self.pixels is None

    @property
    def size(self) -> Size:
        if self.pixels is None:
            return Size(0, 0)
        h, w = self.pixels.shape[:2]
        return Size(w, h)

    @property
    def display_size(self) -> Size:
        return self._display or self.size

    def resize_display(self, width: float, height: float):
        if width <= 0 or height <= 0:
            raise ValueError(f"Display size must be positive: {width}x{height}")
        self._display = Size(width, height)

    def present(self, pixels: np.ndarray):
        self.pixels = pixels

    def clear(self):
        self.pixels = None


class PageRenderer:
    """Rasterizes PDF pages at ``config.render_scale`` and images at
    ``config.image_render_scale``."""

    def __init__(self, config: RedactionConfig = None):
        self.config = config or RedactionConfig()

    def render(self, page: PageHandle, surface: Surface) -> RenderInfo:
        try:
            if page.kind.is_pdf:
                pixels = self._rasterize_pdf_page(page, self.config.render_scale)
            else:
                pixels = ImageProcessor.resize(page.source, self.config.image_render_scale)
        except (RuntimeError, ValueError) as e:
            raise RenderFailure(page.index + 1, str(e)) from e

        surface.present(pixels)
        h, w = pixels.shape[:2]
        logger.debug(f"Rendered page {page.index + 1} at {w}x{h}")
        return RenderInfo(w, h, page.doc_width, page.doc_height)

    @staticmethod
    def _rasterize_pdf_page(page: PageHandle, scale: float) -> np.ndarray:
        pdf_page = page.source[page.index]
        pix = pdf_page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        img = np.frombuffer(pix.samples, dtype=np.uint8)
        return img.reshape(pix.height, pix.width, pix.n)[:, :, :3].copy()


def draw_overlay(
    surface: Surface, redactions: Iterable[Redaction], config: RedactionConfig = None
) -> Optional[np.ndarray]:
    """Draw redactions over a copy of the surface's raster.

    Each redaction is rescaled from the surface size it was drawn on to the
    surface's current size.
    """
    config = config or RedactionConfig()
    if surface.is_blank:
        return None

    current = surface.size
    boxes = []
    for r in redactions:
        sx = current.width / r.surface_width
        sy = current.height / r.surface_height
        x0, y0, x1, y1 = r.rect.as_tuple()
        boxes.append((x0 * sx, y0 * sy, x1 * sx, y1 * sy))

    return ImageProcessor.blend_boxes(
        surface.pixels, boxes, config.overlay_color, config.overlay_alpha
    )
