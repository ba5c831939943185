"""Test that all modules import correctly."""

import pytest


def test_config_imports():
    """Test config module imports."""
    from blackout.config import RedactionConfig, RedactionMode

    config = RedactionConfig()
    assert config.render_scale == 1.5
    assert config.image_render_scale == 1.0
    assert config.min_redaction_size == 5
    assert config.jpeg_quality == 92
    assert config.remove_encryption is True
    assert config.mode is RedactionMode.RECTANGLE


def test_core_imports():
    """Test that all core modules can be imported."""
    from blackout.core.applier import RedactionApplier
    from blackout.core.document import PageRenderer, Surface
    from blackout.core.session import SessionController
    from blackout.core.store import RedactionStore

    assert RedactionApplier is not None
    assert PageRenderer is not None
    assert Surface is not None
    assert SessionController is not None
    assert RedactionStore is not None


def test_utils_imports():
    """Test that all utils can be imported."""
    from blackout.utils import ImageProcessor, find_text_in_regions

    assert ImageProcessor is not None
    assert callable(find_text_in_regions)


def test_pipeline_imports():
    """Test main pipeline import."""
    from blackout import RedactionPipeline, redact_file

    assert RedactionPipeline is not None
    assert callable(redact_file)


def test_cli_imports():
    """Test CLI module imports."""
    from blackout.cli import main

    assert callable(main)


def test_config_customization():
    """Test that config can be customized."""
    from blackout.config import RedactionConfig

    config = RedactionConfig(render_scale=2.0, jpeg_quality=80, verify_burn=False)

    assert config.render_scale == 2.0
    assert config.jpeg_quality == 80
    assert config.verify_burn is False


def test_error_hierarchy():
    """All errors share one base class and carry a user-facing message."""
    from blackout.errors import (
        BurnFailure,
        CorruptDocument,
        DecryptionFailed,
        PasswordRequired,
        RedactionError,
        RenderFailure,
        UnsupportedFileType,
    )

    for cls in (BurnFailure, CorruptDocument, DecryptionFailed, PasswordRequired, RenderFailure):
        assert issubclass(cls, RedactionError)

    err = UnsupportedFileType("notes.txt")
    assert "notes.txt" in str(err)
    assert "page 3" in str(RenderFailure(3))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
