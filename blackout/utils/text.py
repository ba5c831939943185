"""Text leak checks for redacted PDFs."""

import io
import logging
from typing import Dict, List, Tuple

import pdfplumber

logger = logging.getLogger(__name__)

Box = Tuple[float, float, float, float]


def find_text_in_regions(
    pdf_bytes: bytes,
    page_regions: Dict[int, List[Box]],
    password: str = None,
) -> Dict[int, str]:
    """Find characters that still sit inside redacted regions.

    A character counts when the center of its bbox lies inside a region, so
    glyphs that merely touch a region's edge are not reported.

    Args:
        pdf_bytes: The redacted PDF
        page_regions: page index -> list of (x0, top, x1, bottom) in PDF points
        password: Password when the PDF is still encrypted

    Returns:
        page index -> leaked text, for pages with leaks only
    """
    leaks = {}
    with pdfplumber.open(io.BytesIO(pdf_bytes), password=password or "") as pdf:
        for page_idx, regions in page_regions.items():
            if page_idx >= len(pdf.pages):
                continue
            page = pdf.pages[page_idx]
            hits = [c for c in page.chars if _center_in_any(c, regions) and c.get("text", "").strip()]
            if hits:
                text = "".join(c["text"] for c in _in_reading_order(hits))
                logger.warning(f"Page {page_idx + 1}: text left under redactions: {text!r}")
                leaks[page_idx] = text
    return leaks


def _center_in_any(char: Dict, regions: List[Box]) -> bool:
    cx = (char["x0"] + char["x1"]) / 2
    cy = (char["top"] + char["bottom"]) / 2
    return any(x0 <= cx <= x1 and y0 <= cy <= y1 for x0, y0, x1, y1 in regions)


def _in_reading_order(chars: List[Dict], y_tol: float = 3.0) -> List[Dict]:
    """Sort characters into lines by their top coordinate, then left to right."""
    chars = sorted(chars, key=lambda c: (c["top"], c["x0"]))
    lines = []
    cur = [chars[0]]
    cur_top = chars[0]["top"]

    for c in chars[1:]:
        if abs(c["top"] - cur_top) <= y_tol:
            cur.append(c)
        else:
            lines.append(cur)
            cur = [c]
            cur_top = c["top"]
    lines.append(cur)

    return [c for line in lines for c in sorted(line, key=lambda c: c["x0"])]
