"""Tests for the document session state machine and controller."""

import asyncio

import fitz
import numpy as np
import pytest

from blackout.config import RedactionConfig, RedactionMode
from blackout.core.document import redacted_filename
from blackout.core.session import (
    DocumentSession,
    Encryption,
    SessionController,
    SessionState,
)
from blackout.errors import CorruptDocument, UnsupportedFileType
from conftest import SECRET_BOX, page_text


def run(coro):
    return asyncio.run(coro)


def _drag_secret(controller, scale=1.5):
    x0, y0, x1, y1 = SECRET_BOX
    return controller.add_redaction((x0 * scale, y0 * scale), (x1 * scale, y1 * scale))


def test_session_transitions_return_new_values():
    session = DocumentSession()
    ready = session.ready(3)

    assert session.state is SessionState.EMPTY
    assert ready.state is SessionState.READY
    assert ready.at_page(2).current_page == 2
    assert ready.current_page == 1


def test_read_source_returns_independent_copies():
    from blackout.core.document import DocumentKind

    session = DocumentSession.loading("a.pdf", DocumentKind.pdf(), bytearray(b"%PDF-1.7"))
    first, second = session.read_source(), session.read_source()

    assert first == second == b"%PDF-1.7"
    assert first is not session.source


def test_load_plain_pdf(pdf_bytes):
    async def scenario():
        controller = SessionController()
        session = await controller.load(pdf_bytes, "report.pdf")

        assert session.state is SessionState.READY
        assert session.page_count == 3
        assert session.current_page == 1
        assert session.encryption is Encryption.UNLOCKED
        assert controller.surface.size.width == pytest.approx(918, abs=1)
        assert controller.last_render.doc_width == 612

    run(scenario())


def test_password_flow(encrypted_pdf_bytes):
    async def scenario():
        controller = SessionController()

        session = await controller.load(encrypted_pdf_bytes, "locked.pdf")
        assert session.state is SessionState.PASSWORD_REQUIRED
        assert session.encryption is Encryption.LOCKED
        assert not session.retry
        assert controller.surface.is_blank

        session = await controller.submit_password("wrong")
        assert session.state is SessionState.PASSWORD_REQUIRED
        assert session.retry

        session = await controller.submit_password("right")
        assert session.state is SessionState.READY
        assert session.page_count == 3
        assert session.encryption is Encryption.UNLOCKABLE
        assert session.password == "right"
        assert not controller.surface.is_blank

    run(scenario())


def test_cancel_password_discards_session(encrypted_pdf_bytes):
    async def scenario():
        controller = SessionController()
        await controller.load(encrypted_pdf_bytes, "locked.pdf")

        session = controller.cancel_password()

        assert session.state is SessionState.EMPTY
        assert session.source == b""

    run(scenario())


def test_corrupt_pdf_ends_empty_with_error():
    async def scenario():
        controller = SessionController()
        with pytest.raises(CorruptDocument):
            await controller.load(b"this is not a pdf", "broken.pdf")

        assert controller.session.state is SessionState.EMPTY
        assert controller.session.error

    run(scenario())


def test_unsupported_file_type():
    async def scenario():
        controller = SessionController()
        with pytest.raises(UnsupportedFileType):
            await controller.load(b"hello", "notes.txt")
        assert controller.session.state is SessionState.EMPTY

    run(scenario())


def test_page_navigation(pdf_bytes):
    async def scenario():
        controller = SessionController()
        await controller.load(pdf_bytes, "report.pdf")
        first_page = controller.surface.pixels.copy()

        session = await controller.go_to_page(2)
        assert session.current_page == 2
        assert not np.array_equal(controller.surface.pixels, first_page)

        for invalid in (2, 0, 4):
            assert (await controller.go_to_page(invalid)).current_page == 2

        assert (await controller.next_page()).current_page == 3
        assert (await controller.next_page()).current_page == 3
        assert (await controller.previous_page()).current_page == 2

    run(scenario())


def test_go_to_page_requires_ready(encrypted_pdf_bytes):
    async def scenario():
        controller = SessionController()
        await controller.load(encrypted_pdf_bytes, "locked.pdf")
        session = await controller.go_to_page(2)
        assert session.state is SessionState.PASSWORD_REQUIRED
        assert session.current_page == 1

    run(scenario())


def test_drag_gate_in_surface_pixels(pdf_bytes):
    """The display is half the surface size, so display drags are doubled."""

    async def scenario():
        controller = SessionController()
        await controller.load(pdf_bytes, "report.pdf")
        size = controller.surface.size
        controller.resize_display(size.width / 2, size.height / 2)

        assert controller.add_redaction((10, 10), (12, 12)) is None  # 4x4 surface
        added = controller.add_redaction((13, 13), (10, 10))  # 6x6 surface
        assert added is not None
        assert len(controller.store) == 1
        assert added.rect.as_tuple() == pytest.approx((20, 20, 26, 26))
        assert (added.surface_width, added.surface_height) == (size.width, size.height)

    run(scenario())


def test_redactions_follow_current_page_and_undo(pdf_bytes):
    async def scenario():
        controller = SessionController()
        await controller.load(pdf_bytes, "report.pdf")

        a = _drag_secret(controller)
        await controller.go_to_page(2)
        b = _drag_secret(controller)
        await controller.go_to_page(1)
        c = _drag_secret(controller)

        assert (a.page_index, b.page_index, c.page_index) == (0, 1, 0)
        assert controller.undo() is c
        assert [r.seq for r in controller.store] == [a.seq, b.seq]

    run(scenario())


def test_overlay_is_not_baked_into_surface(pdf_bytes):
    async def scenario():
        controller = SessionController()
        await controller.load(pdf_bytes, "report.pdf")
        raster = controller.surface.pixels.copy()

        _drag_secret(controller)
        overlay = controller.overlay()

        assert np.array_equal(controller.surface.pixels, raster)
        assert not np.array_equal(overlay, raster)

        await controller.go_to_page(2)
        assert np.array_equal(controller.overlay(), controller.surface.pixels)

    run(scenario())


def test_text_detection_mode_is_reserved(pdf_bytes):
    async def scenario():
        controller = SessionController(RedactionConfig(mode=RedactionMode.TEXT_DETECTION))
        await controller.load(pdf_bytes, "report.pdf")
        with pytest.raises(NotImplementedError):
            controller.add_redaction((0, 0), (50, 50))

    run(scenario())


def test_export_pdf(pdf_bytes):
    async def scenario():
        controller = SessionController()
        await controller.load(pdf_bytes, "report.pdf")

        assert await controller.export() is None  # nothing to apply

        _drag_secret(controller)
        result = await controller.export()

        assert result.filename == "report_redacted.pdf"
        assert "SECRET" not in page_text(result.data, 0)
        assert "SECRET 2" in page_text(result.data, 1)
        assert controller.session.exported
        # Source and pending redactions are untouched
        assert controller.session.source == pdf_bytes
        assert len(controller.store) == 1

    run(scenario())


def test_export_unlocked_pdf_removes_password(encrypted_pdf_bytes):
    async def scenario():
        controller = SessionController()
        await controller.load(encrypted_pdf_bytes, "locked.pdf")
        await controller.submit_password("right", remove_encryption=True)
        _drag_secret(controller)

        result = await controller.export()

        with fitz.open(stream=result.data, filetype="pdf") as doc:
            assert not doc.needs_pass
            assert "SECRET" not in doc[0].get_text()

    run(scenario())


def test_export_image(png_bytes):
    from blackout.utils.image import ImageProcessor

    async def scenario():
        controller = SessionController()
        session = await controller.load(png_bytes, "scan.png")
        assert session.page_count == 1
        assert controller.surface.size.width == 200

        controller.add_redaction((20, 20), (60, 60))
        result = await controller.export()

        assert result.filename == "scan_redacted.png"
        pixels = ImageProcessor.decode(result.data)
        assert (pixels[20:60, 20:60] == 0).all()

    run(scenario())


def test_loading_new_document_clears_redactions(pdf_bytes, png_bytes):
    async def scenario():
        controller = SessionController()
        await controller.load(pdf_bytes, "report.pdf")
        await controller.go_to_page(3)
        _drag_secret(controller)

        session = await controller.load(png_bytes, "scan.png")

        assert controller.store.is_empty()
        assert session.page_count == 1
        assert session.current_page == 1

    run(scenario())


def test_clear_supersedes_inflight_load(pdf_bytes):
    async def scenario():
        controller = SessionController()
        task = asyncio.create_task(controller.load(pdf_bytes, "report.pdf"))
        await asyncio.sleep(0)  # let the load reach its first await

        controller.clear()
        await task

        assert controller.session.state is SessionState.EMPTY
        assert controller.surface.is_blank

    run(scenario())


def test_newer_load_wins(pdf_bytes, png_bytes):
    async def scenario():
        controller = SessionController()
        older = asyncio.create_task(controller.load(pdf_bytes, "report.pdf"))
        await asyncio.sleep(0)

        await controller.load(png_bytes, "scan.png")
        await older

        assert controller.session.name == "scan.png"
        assert controller.session.page_count == 1
        assert controller.surface.size.width == 200

    run(scenario())


def test_clear_discards_inflight_export(pdf_bytes):
    async def scenario():
        controller = SessionController()
        await controller.load(pdf_bytes, "report.pdf")
        _drag_secret(controller)

        task = asyncio.create_task(controller.export())
        await asyncio.sleep(0)
        controller.clear()

        assert await task is None
        assert not controller.session.exported

    run(scenario())


@pytest.mark.parametrize(
    "name,expected",
    [
        ("report.pdf", "report_redacted.pdf"),
        ("photo.JPG", "photo_redacted.JPG"),
        ("archive.v2.png", "archive.v2_redacted.png"),
    ],
)
def test_redacted_filename(name, expected):
    assert redacted_filename(name) == expected


def test_render_failure_keeps_session(pdf_bytes):
    from blackout.core.document import PageRenderer
    from blackout.errors import RenderFailure

    class FlakyRenderer(PageRenderer):
        fail = False

        def render(self, page, surface):
            if self.fail:
                raise RenderFailure(page.index + 1, "boom")
            return super().render(page, surface)

    async def scenario():
        renderer = FlakyRenderer()
        controller = SessionController(renderer=renderer)
        await controller.load(pdf_bytes, "report.pdf")

        renderer.fail = True
        with pytest.raises(RenderFailure):
            await controller.go_to_page(2)

        assert controller.session.state is SessionState.READY
        assert controller.session.current_page == 2
        assert controller.surface.is_blank

        renderer.fail = False
        info = await controller.rerender()
        assert info.surface_width == controller.surface.size.width
        assert (await controller.go_to_page(3)).current_page == 3

    run(scenario())


def test_failed_leak_check_keeps_session(pdf_bytes, monkeypatch):
    from blackout.errors import BurnFailure

    monkeypatch.setattr(
        "blackout.core.applier.find_text_in_regions", lambda *args: {0: "SECRET 1"}
    )

    async def scenario():
        controller = SessionController()
        await controller.load(pdf_bytes, "report.pdf")
        redaction = _drag_secret(controller)

        with pytest.raises(BurnFailure):
            await controller.export()

        assert controller.session.state is SessionState.READY
        assert not controller.session.exported
        assert controller.session.source == pdf_bytes
        assert list(controller.store) == [redaction]

    run(scenario())


def test_stale_render_is_discarded(pdf_bytes):
    import threading

    from blackout.core.document import PageRenderer

    class GatedRenderer(PageRenderer):
        """Holds page 2 until released and records completion order."""

        def __init__(self):
            super().__init__()
            self.gate = threading.Event()
            self.finished = []

        def render(self, page, surface):
            if page.index == 1:
                self.gate.wait(timeout=10)
            info = super().render(page, surface)
            self.finished.append(page.index)
            return info

    async def scenario():
        renderer = GatedRenderer()
        controller = SessionController(renderer=renderer)
        await controller.load(pdf_bytes, "report.pdf")

        older = asyncio.create_task(controller.go_to_page(2))
        await asyncio.sleep(0)  # page 2 render is now blocked in its thread

        await controller.go_to_page(3)
        page_three = controller.surface.pixels.copy()

        renderer.gate.set()
        session = await older

        assert renderer.finished == [0, 2, 1]
        assert session.current_page == 3
        assert np.array_equal(controller.surface.pixels, page_three)

    run(scenario())


def test_newer_export_wins(pdf_bytes):
    async def scenario():
        controller = SessionController()
        await controller.load(pdf_bytes, "report.pdf")
        _drag_secret(controller)

        older = asyncio.create_task(controller.export())
        await asyncio.sleep(0)
        newer = await controller.export()

        assert await older is None
        assert newer.filename == "report_redacted.pdf"
        assert "SECRET" not in page_text(newer.data, 0)
        assert controller.session.exported

    run(scenario())
