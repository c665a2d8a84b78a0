class PdfExtractionError(Exception):
    """Raised when text cannot be read from, or a region rendered out of, a PDF."""


class InvalidRegionError(PdfExtractionError):
    """Raised when a capture rectangle does not overlap the page."""
