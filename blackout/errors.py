"""Error taxonomy for redaction sessions.

Every error carries a message that can be shown to the user as-is.
"""


class RedactionError(Exception):
    """Base class for all blackout errors."""


class UnsupportedFileType(RedactionError):
    """The file is neither a PDF nor a supported image format."""

    def __init__(self, name: str):
        super().__init__(
            f"Unsupported file type: {name}. "
            "Please use a PDF or image file (JPG, PNG, GIF)."
        )
        self.name = name


class CorruptDocument(RedactionError):
    """The bytes are not a valid document of the expected kind."""


class PasswordRequired(RedactionError):
    """The PDF is encrypted and no password was supplied."""

    def __init__(self, message: str = "This PDF is password protected."):
        super().__init__(message)


class DecryptionFailed(RedactionError):
    """The supplied password does not open the document."""

    def __init__(self, message: str = "The password is incorrect."):
        super().__init__(message)


class RenderFailure(RedactionError):
    """A single page could not be rasterized."""

    def __init__(self, page_number: int, reason: str = ""):
        message = f"Failed to render page {page_number}."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)
        self.page_number = page_number


class BurnFailure(RedactionError):
    """Export failed; the loaded document and redactions are untouched."""
