"""Extraction errors. Messages are shown to the user as-is."""


class ExtractionError(Exception):
    """Base exception for receipt extraction errors."""
    pass


class MissingCredentialError(ExtractionError):
    """The extraction service credential is not configured."""
    pass


class NoDataExtractedError(ExtractionError):
    """A whole batch of images produced no rows."""
    pass


class ExtractionInProgressError(ExtractionError):
    """A batch is already being processed."""
    pass
