"""Burn pending redactions into a new copy of the document."""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

import fitz

from blackout.config import RedactionConfig
from blackout.core.document import DocumentKind, open_pdf
from blackout.core.geometry import Origin, Rect, Size, surface_to_document
from blackout.core.store import Redaction
from blackout.errors import BurnFailure, CorruptDocument, DecryptionFailed
from blackout.utils.image import ImageProcessor
from blackout.utils.text import find_text_in_regions

logger = logging.getLogger(__name__)


def group_by_page(redactions: Iterable[Redaction]) -> Dict[int, List[Redaction]]:
    """Group redactions by page index, keeping insertion order within a page."""
    grouped = defaultdict(list)
    for r in redactions:
        grouped[r.page_index].append(r)
    return dict(grouped)


class RedactionApplier:
    """Writes redactions into PDF content or image pixels.

    PDF regions go through PyMuPDF redaction annotations, so text, image
    pixels and vector graphics under a region are removed from the page
    content rather than painted over.
    """

    def __init__(self, config: RedactionConfig = None):
        self.config = config or RedactionConfig()

    def burn(
        self,
        data: bytes,
        redactions: Iterable[Redaction],
        kind: DocumentKind,
        password: Optional[str] = None,
        remove_encryption: bool = True,
    ) -> bytes:
        """Produce new document bytes with every redaction burnt in.

        Args:
            data: Source document bytes
            redactions: Redactions in surface space
            kind: Document kind decided at load time
            password: Password that unlocked the PDF, if any
            remove_encryption: Drop user/owner passwords from a PDF output

        Returns:
            Bytes of the redacted document

        Raises:
            DecryptionFailed: the PDF needs a password and ``password`` is missing or wrong
            BurnFailure: anything else went wrong
        """
        grouped = group_by_page(redactions)
        logger.info(f"Burning {sum(len(v) for v in grouped.values())} redactions")

        try:
            if kind.is_pdf:
                return self._burn_pdf(data, grouped, password, remove_encryption)
            return self._burn_image(data, grouped, kind)
        except (DecryptionFailed, BurnFailure):
            raise
        except CorruptDocument as e:
            raise BurnFailure(f"Failed to apply redactions. {e}") from e
        except (RuntimeError, ValueError, OSError) as e:
            raise BurnFailure(f"Failed to apply redactions: {e}") from e

    def _burn_pdf(
        self,
        data: bytes,
        grouped: Dict[int, List[Redaction]],
        password: Optional[str],
        remove_encryption: bool,
    ) -> bytes:
        doc = open_pdf(data)
        try:
            if doc.needs_pass and not (password and doc.authenticate(password)):
                raise DecryptionFailed(
                    "Failed to apply redactions. The password may be incorrect."
                )

            burnt: Dict[int, List[fitz.Rect]] = {}
            for page_idx, page_redactions in sorted(grouped.items()):
                if page_idx < 0 or page_idx >= doc.page_count:
                    logger.warning(f"Skipping redactions for missing page {page_idx + 1}")
                    continue

                page = doc[page_idx]
                rects = self._redact_page(page, page_redactions)
                if rects:
                    page.apply_redactions(images=fitz.PDF_REDACT_IMAGE_PIXELS)
                    burnt[page_idx] = rects

            encryption = fitz.PDF_ENCRYPT_NONE if remove_encryption else fitz.PDF_ENCRYPT_KEEP
            out = doc.tobytes(
                garbage=self.config.garbage,
                deflate=self.config.deflate,
                encryption=encryption,
            )
        finally:
            doc.close()

        if burnt and self.config.verify_burn:
            self._verify(out, burnt, password if not remove_encryption else None)

        logger.info(f"Redacted PDF: {len(burnt)} pages changed, {len(out)} bytes")
        return out

    def _redact_page(self, page, page_redactions: List[Redaction]) -> List[fitz.Rect]:
        """Add one redaction annotation per region; returns the page-space rects."""
        page_rect = page.rect
        doc_size = Size(page_rect.width, page_rect.height)

        rects = []
        for r in page_redactions:
            doc_rect = surface_to_document(r.rect, r.surface_size, doc_size, Origin.BOTTOM_LEFT)
            doc_rect = doc_rect.clip(doc_size)
            if doc_rect is None:
                continue

            page_space = self._to_page_space(doc_rect, doc_size) * page.derotation_matrix
            page.add_redact_annot(page_space, fill=self.config.redaction_fill)
            rects.append(page_space)
        return rects

    @staticmethod
    def _to_page_space(doc_rect: Rect, doc_size: Size) -> fitz.Rect:
        """PDF user space (y up) to MuPDF page space (y down)."""
        top = doc_size.height - doc_rect.y - doc_rect.height
        return fitz.Rect(doc_rect.x, top, doc_rect.x1, top + doc_rect.height)

    def _verify(self, out: bytes, burnt: Dict[int, List[fitz.Rect]], password: Optional[str]):
        leaks = find_text_in_regions(
            out, {idx: [tuple(r) for r in rects] for idx, rects in burnt.items()}, password
        )
        if leaks:
            pages = ", ".join(str(idx + 1) for idx in sorted(leaks))
            raise BurnFailure(f"Text is still present under redactions on page(s) {pages}.")

    def _burn_image(
        self, data: bytes, grouped: Dict[int, List[Redaction]], kind: DocumentKind
    ) -> bytes:
        try:
            pixels = ImageProcessor.decode(bytes(data))
        except (OSError, ValueError) as e:
            raise CorruptDocument("Failed to load image. The file may be corrupted.") from e

        ignored = [idx for idx in grouped if idx != 0]
        if ignored:
            logger.warning(f"Images have a single page; ignoring redactions on pages {ignored}")

        h, w = pixels.shape[:2]
        img_size = Size(w, h)
        fill = tuple(int(round(c * 255)) for c in self.config.redaction_fill)

        for r in grouped.get(0, []):
            doc_rect = surface_to_document(r.rect, r.surface_size, img_size, Origin.TOP_LEFT)
            doc_rect = doc_rect.clip(img_size)
            if doc_rect is not None:
                ImageProcessor.fill_rect(pixels, doc_rect.as_tuple(), fill)

        return ImageProcessor.encode(pixels, kind.lossless, self.config.jpeg_quality)
