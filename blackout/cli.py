"""Command-line interface for blackout."""

import argparse
import logging
from pathlib import Path

from blackout import RedactionPipeline
from blackout.config import RedactionConfig
from blackout.errors import DecryptionFailed, PasswordRequired, RedactionError

logger = logging.getLogger(__name__)


def parse_region(value: str):
    """PAGE:X,Y,W,H -> (page, (x, y, w, h))"""
    try:
        page, box = value.split(":", 1)
        x, y, w, h = (float(v) for v in box.split(","))
        return int(page), (x, y, w, h)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid region {value!r}; expected PAGE:X,Y,WIDTH,HEIGHT"
        )


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Blackout: permanently black out regions of PDFs and images"
    )

    parser.add_argument(
        "file",
        type=Path,
        help="Path to a PDF, PNG, JPG or GIF file"
    )

    parser.add_argument(
        "-r", "--region",
        type=parse_region,
        action="append",
        default=[],
        metavar="PAGE:X,Y,W,H",
        help="Region to redact, in pixels of the PDF page rendered at --scale or in image pixels (top-left origin)"
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output folder (default: folder of the input file)"
    )

    parser.add_argument(
        "--password",
        type=str,
        default=None,
        help="Password for encrypted PDFs"
    )

    parser.add_argument(
        "--keep-encryption",
        action="store_true",
        help="Keep the PDF's password protection in the output"
    )

    parser.add_argument(
        "-s", "--scale",
        type=float,
        default=1.0,
        help="PDF render scale the region coordinates refer to (default: 1.0)"
    )

    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip checking the output PDF for text left under redactions"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if not args.file.exists():
        logger.error(f"File not found: {args.file}")
        return 1

    if not args.region:
        logger.error("No regions given; use -r PAGE:X,Y,W,H")
        return 1

    try:
        config = RedactionConfig(
            render_scale=args.scale,
            remove_encryption=not args.keep_encryption,
            verify_burn=not args.no_verify,
        )

        pipeline = RedactionPipeline(config)
        output = pipeline.process(args.file, args.region, args.output, args.password)

        if output is None:
            logger.error("No redactions to apply")
            return 1

        logger.info(f"✓ Redacted file: {output}")
        return 0

    except (PasswordRequired, DecryptionFailed) as e:
        logger.error(f"{e} Use --password to supply the correct password.")
        return 2

    except (RedactionError, ValueError) as e:
        logger.error(f"Redaction failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    exit(main())

__all__ = ["main"]
