"""blob-meta: metadata and ownership store for content-addressed blobs."""

from blob_meta.errors import (
    BlobConflictError,
    BlobMetaError,
    BlobNotFoundError,
    StorageUnavailableError,
)
from blob_meta.schemas import BlobRecord, OwnerRecord
from blob_meta.store import MetadataStore, open_store

__version__ = "0.1.0"

__all__ = [
    "BlobConflictError",
    "BlobMetaError",
    "BlobNotFoundError",
    "BlobRecord",
    "MetadataStore",
    "OwnerRecord",
    "StorageUnavailableError",
    "__version__",
    "open_store",
]
