"""Typed errors for blob-meta."""


class BlobMetaError(Exception):
    """Base exception for all blob-meta errors."""


class BlobNotFoundError(BlobMetaError):
    """Raised when no blob record exists for a hash."""

    def __init__(self, sha256: str) -> None:
        """Initialize with the missing blob's hash."""
        self.sha256 = sha256
        super().__init__(f"Blob not found: {sha256}")


class BlobConflictError(BlobMetaError):
    """Raised when inserting a blob whose hash is already stored."""

    def __init__(self, sha256: str) -> None:
        """Initialize with the conflicting blob's hash."""
        self.sha256 = sha256
        super().__init__(f"Blob already exists: {sha256}")


class StorageUnavailableError(BlobMetaError):
    """Raised when the backing database cannot be reached or a commit fails."""
