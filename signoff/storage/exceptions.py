class StorageError(Exception):
    """Raised when a document or snippet cannot be written or read."""
