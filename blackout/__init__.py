"""Blackout: permanently black out regions of PDFs and images.

Regions are drawn against a rendered page, collected per page during a
session, and burnt into a new copy of the file on export. For PDFs the
content under each region is removed, not just covered.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple

from blackout.config import RedactionConfig
from blackout.core.session import ExportResult, SessionController, SessionState
from blackout.errors import DecryptionFailed, PasswordRequired

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

Region = Tuple[int, Tuple[float, float, float, float]]


class RedactionPipeline:
    """Non-interactive session: load -> unlock -> mark regions -> export."""

    def __init__(self, config: RedactionConfig = None):
        self.config = config or RedactionConfig()

    async def run(
        self,
        data: bytes,
        name: str,
        regions: Iterable[Region],
        password: str = None,
    ) -> Optional[ExportResult]:
        """Redact ``regions`` in a document held in memory.

        Args:
            data: Document bytes
            name: File name, used to pick the document kind and output name
            regions: (page_number, (x, y, width, height)) in pixels of the
                page rendered at ``config.render_scale`` (``config.image_render_scale``
                for images), top-left origin
            password: Password for encrypted PDFs

        Returns:
            The redacted file, or None if no region was admitted
        """
        controller = SessionController(self.config)
        session = await controller.load(data, name)

        if session.state is SessionState.PASSWORD_REQUIRED:
            if password is None:
                raise PasswordRequired()
            session = await controller.submit_password(password, self.config.remove_encryption)
            if session.state is not SessionState.READY:
                raise DecryptionFailed()

        for page_number, (x, y, w, h) in sorted(regions, key=lambda r: r[0]):
            await controller.go_to_page(page_number)
            if controller.session.current_page != page_number:
                raise ValueError(
                    f"Page {page_number} is out of range (1-{controller.session.page_count})"
                )
            if controller.add_redaction((x, y), (x + w, y + h)) is None:
                logger.warning(f"Ignoring region on page {page_number}: {w}x{h} is too small")

        return await controller.export()

    def process(
        self,
        path: Path,
        regions: Iterable[Region],
        output_folder: Path = None,
        password: str = None,
    ) -> Optional[Path]:
        """Redact a file on disk and write ``<name>_redacted.<ext>``.

        Returns:
            Path of the written file, or None if nothing was redacted
        """
        path = Path(path)
        logger.info(f"Processing: {path}")

        result = asyncio.run(self.run(path.read_bytes(), path.name, list(regions), password))
        if result is None:
            return None

        output_folder = Path(output_folder) if output_folder else path.parent
        output_folder.mkdir(exist_ok=True, parents=True)
        output_path = output_folder / result.filename
        output_path.write_bytes(result.data)

        logger.info(f"Saved redacted file to: {output_path}")
        return output_path


# Convenience functions
def redact_file(
    path: Path, regions: Iterable[Region], output_folder: Path = None, password: str = None
) -> Optional[Path]:
    """Simple interface: redact a file with default configuration."""
    pipeline = RedactionPipeline()
    return pipeline.process(path, regions, output_folder, password)
