"""Session engine: geometry, redaction store, documents, session and burn."""
