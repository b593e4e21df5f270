"""Database models for blob-meta."""

from blob_meta.models.base import Base
from blob_meta.models.blob import Blob
from blob_meta.models.owner import Owner

__all__ = [
    "Base",
    "Blob",
    "Owner",
]
