"""Pending redactions, kept in insertion order across pages."""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

from blackout.config import RedactionConfig
from blackout.core.geometry import Frame, Rect, Size

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Redaction:
    """A surface-space rectangle plus the surface size it was drawn on.

    The surface size is frozen at creation so the rect stays interpretable
    after the page is re-rendered at a different size.
    """

    rect: Rect
    page_index: int
    surface_width: int
    surface_height: int
    seq: int = field(default=0, compare=False)

    @property
    def surface_size(self) -> Size:
        return Size(self.surface_width, self.surface_height)


class _PageView:
    """Restartable view over one page's redactions."""

    def __init__(self, items: List[Redaction], page_index: int):
        self._items = items
        self._page_index = page_index

    def __iter__(self) -> Iterator[Redaction]:
        return (r for r in self._items if r.page_index == self._page_index)


class RedactionStore:
    """Ordered collection of pending redactions for one document."""

    def __init__(self, config: RedactionConfig = None):
        self.config = config or RedactionConfig()
        self._items: List[Redaction] = []
        self._seq = itertools.count(1)

    def add(
        self,
        page_index: int,
        surface_rect: Rect,
        surface_width: int,
        surface_height: int,
    ) -> Optional[Redaction]:
        """Append a redaction unless it is below the minimum size.

        Returns:
            The stored redaction, or None when the rect was rejected
        """
        if surface_rect.frame is not Frame.SURFACE:
            raise ValueError(f"Redactions are stored in surface space, got {surface_rect.frame.value}")
        if page_index < 0:
            raise ValueError(f"Invalid page index: {page_index}")

        min_size = self.config.min_redaction_size
        if surface_rect.width <= min_size or surface_rect.height <= min_size:
            logger.debug(
                f"Ignoring {surface_rect.width:.1f}x{surface_rect.height:.1f} drag below {min_size}px"
            )
            return None

        redaction = Redaction(
            rect=surface_rect,
            page_index=page_index,
            surface_width=surface_width,
            surface_height=surface_height,
            seq=next(self._seq),
        )
        self._items.append(redaction)
        logger.debug(f"Added redaction #{redaction.seq} on page {page_index + 1}")
        return redaction

    def undo_last(self, page_index: int) -> Optional[Redaction]:
        """Remove the most recently added redaction on ``page_index``."""
        # Identical drags compare equal, so delete by position
        positions = [i for i, r in enumerate(self._items) if r.page_index == page_index]
        if not positions:
            return None

        idx = max(positions, key=lambda i: self._items[i].seq)
        last = self._items.pop(idx)
        logger.info(f"Removed last redaction on page {page_index + 1}")
        return last

    def for_page(self, page_index: int) -> Iterable[Redaction]:
        return _PageView(self._items, page_index)

    def count(self, page_index: int) -> int:
        return sum(1 for _ in self.for_page(page_index))

    def pages(self) -> List[int]:
        """Page indexes that hold at least one redaction, ascending."""
        return sorted({r.page_index for r in self._items})

    def clear(self):
        self._items.clear()

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Redaction]:
        return iter(list(self._items))
