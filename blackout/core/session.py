"""Document session state machine.

``DocumentSession`` is an immutable snapshot; every transition returns a new
one. ``SessionController`` owns the live snapshot together with the loaded
document, the redaction store and the render surface, and runs decoding,
rendering and burning off the event loop.

The most recent initiating call (load, clear, password submit/cancel) is
authoritative: a task that resumes after being superseded drops its result
without touching any state.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from blackout.config import RedactionConfig, RedactionMode
from blackout.core.applier import RedactionApplier
from blackout.core.document import (
    DecodedDocument,
    DocumentKind,
    PageRenderer,
    RenderInfo,
    Surface,
    decode,
    draw_overlay,
    probe_encrypted,
    redacted_filename,
)
from blackout.core.geometry import Frame, Rect, display_to_surface, rect_from_points
from blackout.core.store import Redaction, RedactionStore
from blackout.errors import (
    CorruptDocument,
    DecryptionFailed,
    PasswordRequired,
    RedactionError,
    RenderFailure,
    UnsupportedFileType,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    EMPTY = "EMPTY"
    LOADING = "LOADING"
    PASSWORD_REQUIRED = "PASSWORD_REQUIRED"
    UNLOCKING = "UNLOCKING"
    READY = "READY"


class Encryption(Enum):
    UNLOCKED = "UNLOCKED"  # no password needed
    LOCKED = "LOCKED"  # password needed, none accepted yet
    UNLOCKABLE = "UNLOCKABLE"  # encrypted; the retained password opens it


@dataclass(frozen=True)
class DocumentSession:
    """Snapshot of one loaded document and where the user is in it."""

    state: SessionState = SessionState.EMPTY
    kind: Optional[DocumentKind] = None
    name: str = ""
    source: bytes = field(default=b"", repr=False)
    page_count: int = 0
    current_page: int = 1
    encryption: Encryption = Encryption.UNLOCKED
    password: Optional[str] = field(default=None, repr=False)
    remove_encryption: bool = True
    retry: bool = False
    error: Optional[str] = None
    exported: bool = False

    @classmethod
    def empty(cls, error: str = None) -> "DocumentSession":
        return cls(error=error)

    @classmethod
    def loading(
        cls, name: str, kind: DocumentKind, data: bytes, remove_encryption: bool = True
    ) -> "DocumentSession":
        return cls(
            state=SessionState.LOADING,
            kind=kind,
            name=name,
            source=bytes(data),
            remove_encryption=remove_encryption,
        )

    def read_source(self) -> bytes:
        """A fresh copy of the source bytes for one decode/probe/burn pass."""
        return bytes(bytearray(self.source))

    def password_required(self, retry: bool = False) -> "DocumentSession":
        return replace(
            self,
            state=SessionState.PASSWORD_REQUIRED,
            encryption=Encryption.LOCKED,
            password=None,
            retry=retry,
        )

    def unlocking(self, remove_encryption: bool) -> "DocumentSession":
        return replace(self, state=SessionState.UNLOCKING, remove_encryption=remove_encryption)

    def ready(self, page_count: int, password: str = None) -> "DocumentSession":
        return replace(
            self,
            state=SessionState.READY,
            page_count=page_count,
            current_page=1,
            encryption=Encryption.UNLOCKABLE if password else Encryption.UNLOCKED,
            password=password,
            retry=False,
            error=None,
        )

    def at_page(self, page_number: int) -> "DocumentSession":
        return replace(self, current_page=page_number)

    @property
    def is_ready(self) -> bool:
        return self.state is SessionState.READY

    @property
    def page_index(self) -> int:
        return self.current_page - 1


@dataclass(frozen=True)
class ExportResult:
    filename: str
    data: bytes = field(repr=False)


class SessionController:
    """Drives one user's redaction session."""

    def __init__(
        self,
        config: RedactionConfig = None,
        surface: Surface = None,
        renderer: PageRenderer = None,
        applier: RedactionApplier = None,
    ):
        self.config = config or RedactionConfig()
        self.surface = surface or Surface()
        self.renderer = renderer or PageRenderer(self.config)
        self.applier = applier or RedactionApplier(self.config)
        self.store = RedactionStore(self.config)
        self.session = DocumentSession(remove_encryption=self.config.remove_encryption)
        self.last_render: Optional[RenderInfo] = None

        self._document: Optional[DecodedDocument] = None
        self._generation = 0
        self._render_generation = 0
        self._export_generation = 0

    # --- Supersession ---

    def _supersede(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, token: int) -> bool:
        return token == self._generation

    def _set_document(self, document: Optional[DecodedDocument]):
        if self._document is not None and self._document is not document:
            self._document.close()
        self._document = document

    def _reset(self):
        self._set_document(None)
        self.store.clear()
        self.surface.clear()
        self.last_render = None

    # --- Loading ---

    async def load(self, data: bytes, name: str) -> DocumentSession:
        """Replace the current document with ``data``.

        Raises:
            UnsupportedFileType: ``name`` is not a PDF or supported image
            CorruptDocument: the bytes could not be decoded
            RenderFailure: the document loaded but page 1 failed to render
        """
        token = self._supersede()
        self._reset()

        try:
            kind = DocumentKind.from_filename(name, self.config)
        except UnsupportedFileType as e:
            self.session = DocumentSession.empty(error=str(e))
            logger.warning(str(e))
            raise

        self.session = DocumentSession.loading(name, kind, data, self.config.remove_encryption)
        logger.info(f"Loading {name} ({kind.family.value})")

        if kind.is_pdf:
            encrypted = await asyncio.to_thread(probe_encrypted, self.session.read_source())
            if not self._is_current(token):
                logger.debug(f"Load of {name} superseded during encryption probe")
                return self.session
            if encrypted:
                self.session = self.session.password_required()
                logger.info(f"{name} is password protected")
                return self.session

        return await self._decode_and_open(token)

    async def submit_password(self, password: str, remove_encryption: bool = True) -> DocumentSession:
        """Try to unlock an encrypted PDF.

        A wrong password leaves the session in PASSWORD_REQUIRED with
        ``retry`` set.
        """
        if self.session.state is not SessionState.PASSWORD_REQUIRED:
            logger.warning(f"No password expected in state {self.session.state.value}")
            return self.session

        token = self._supersede()
        self.session = self.session.unlocking(remove_encryption)
        return await self._decode_and_open(token, password)

    def cancel_password(self) -> DocumentSession:
        if self.session.state not in (SessionState.PASSWORD_REQUIRED, SessionState.UNLOCKING):
            return self.session
        logger.info("Password entry cancelled")
        return self.clear()

    async def _decode_and_open(self, token: int, password: str = None) -> DocumentSession:
        session = self.session
        try:
            document = await asyncio.to_thread(decode, session.read_source(), session.kind, password)
        except (PasswordRequired, DecryptionFailed) as e:
            if self._is_current(token):
                self.session = session.password_required(retry=password is not None)
                logger.info(f"{session.name}: {e}")
            return self.session
        except CorruptDocument as e:
            if not self._is_current(token):
                return self.session
            self.session = DocumentSession.empty(error=str(e))
            logger.warning(f"Failed to load {session.name}: {e}")
            raise

        if not self._is_current(token):
            document.close()
            logger.debug(f"Discarding superseded decode of {session.name}")
            return self.session

        self._set_document(document)
        self.session = session.ready(document.page_count, password)
        logger.info(f"{session.name} ready: {document.page_count} page(s)")
        await self._render_current()
        return self.session

    def clear(self) -> DocumentSession:
        """Drop the document and every pending redaction."""
        self._supersede()
        self._reset()
        self.session = DocumentSession(remove_encryption=self.config.remove_encryption)
        logger.info("Session cleared")
        return self.session

    # --- Navigation and rendering ---

    async def go_to_page(self, page_number: int) -> DocumentSession:
        session = self.session
        if not session.is_ready:
            return session
        if page_number == session.current_page or not 1 <= page_number <= session.page_count:
            return session

        self.session = session.at_page(page_number)
        self.surface.clear()
        await self._render_current()
        return self.session

    async def next_page(self) -> DocumentSession:
        return await self.go_to_page(self.session.current_page + 1)

    async def previous_page(self) -> DocumentSession:
        return await self.go_to_page(self.session.current_page - 1)

    async def rerender(self) -> Optional[RenderInfo]:
        """Render the current page again, e.g. after a RenderFailure."""
        if not self.session.is_ready:
            return None
        return await self._render_current()

    async def _render_current(self) -> Optional[RenderInfo]:
        token = self._generation
        self._render_generation += 1
        render_token = self._render_generation

        page = self._document.pages[self.session.page_index]
        scratch = Surface()
        try:
            info = await asyncio.to_thread(self.renderer.render, page, scratch)
        except RenderFailure as e:
            if self._is_current(token) and render_token == self._render_generation:
                logger.warning(str(e))
                raise
            return None

        if not self._is_current(token) or render_token != self._render_generation:
            return None

        self.surface.present(scratch.pixels)
        self.last_render = info
        return info

    def resize_display(self, width: float, height: float):
        """Record a new on-screen size for the surface."""
        self.surface.resize_display(width, height)

    def overlay(self) -> Optional[np.ndarray]:
        """The current page with its pending redactions drawn on top."""
        if not self.session.is_ready:
            return None
        return draw_overlay(
            self.surface, self.store.for_page(self.session.page_index), self.config
        )

    # --- Redactions ---

    def add_redaction(
        self, start: Tuple[float, float], end: Tuple[float, float]
    ) -> Optional[Redaction]:
        """Admit a display-space drag from ``start`` to ``end`` as a redaction."""
        if self.config.mode is RedactionMode.TEXT_DETECTION:
            raise NotImplementedError("Text detection mode is not available")
        if not self.session.is_ready or self.surface.is_blank:
            return None

        display_rect = rect_from_points(start, end, Frame.DISPLAY)
        surface_rect = display_to_surface(
            display_rect, self.surface.display_size, self.surface.size
        )
        return self.add_surface_redaction(surface_rect)

    def add_surface_redaction(self, rect: Rect) -> Optional[Redaction]:
        if not self.session.is_ready or self.surface.is_blank:
            return None
        size = self.surface.size
        return self.store.add(self.session.page_index, rect, int(size.width), int(size.height))

    def undo(self) -> Optional[Redaction]:
        if not self.session.is_ready:
            return None
        return self.store.undo_last(self.session.page_index)

    # --- Export ---

    async def export(self, remove_encryption: bool = None) -> Optional[ExportResult]:
        """Burn all pending redactions into a new file.

        Returns:
            The redacted file, or None when there is nothing to export or a
            newer export/load superseded this one

        Raises:
            DecryptionFailed: the retained password no longer opens the PDF
            BurnFailure: export failed; document and redactions are unchanged
        """
        session = self.session
        if not session.is_ready:
            logger.warning("No document loaded")
            return None
        if self.store.is_empty():
            logger.warning("No redactions to apply")
            return None

        token = self._generation
        self._export_generation += 1
        export_token = self._export_generation

        if remove_encryption is None:
            remove_encryption = session.remove_encryption
        password = session.password if session.encryption is Encryption.UNLOCKABLE else None

        try:
            data = await asyncio.to_thread(
                self.applier.burn,
                session.read_source(),
                list(self.store),
                session.kind,
                password,
                remove_encryption,
            )
        except RedactionError as e:
            if self._is_current(token) and export_token == self._export_generation:
                logger.warning(str(e))
                raise
            return None

        if not self._is_current(token) or export_token != self._export_generation:
            logger.debug("Discarding superseded export")
            return None

        self.session = replace(self.session, exported=True)
        filename = redacted_filename(session.name)
        if password and remove_encryption:
            logger.info(f"Document successfully redacted and decrypted: {filename}")
        else:
            logger.info(f"Document successfully redacted: {filename}")
        return ExportResult(filename, data)
