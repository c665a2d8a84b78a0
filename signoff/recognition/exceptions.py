class RecognitionError(Exception):
    """Raised when the optical recognition layer cannot produce a reading."""


class RecognitionNetworkError(RecognitionError):
    """Raised when the recognition service is unreachable or times out."""
