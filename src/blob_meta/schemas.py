"""Value types returned by the metadata store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from blob_meta.models import Blob, Owner


@dataclass(frozen=True, slots=True)
class BlobRecord:
    """Metadata for one blob, keyed by its content hash.

    ``created`` is Unix epoch seconds chosen by the caller; the store never
    fills it in. ``type`` may be ``None`` or empty.
    """

    sha256: str
    size: int
    created: int
    type: str | None = None

    def __post_init__(self) -> None:
        if self.size < 0:
            msg = f"size must be >= 0, got {self.size}"
            raise ValueError(msg)

    @classmethod
    def from_row(cls, row: Blob) -> BlobRecord:
        """Build a record from a ``blobs`` ORM row."""
        return cls(sha256=row.sha256, size=row.size, type=row.type, created=row.created)


@dataclass(frozen=True, slots=True)
class OwnerRecord:
    """One ownership claim of a blob by a public key."""

    blob: str
    pubkey: str

    @classmethod
    def from_row(cls, row: Owner) -> OwnerRecord:
        """Build a record from an ``owners`` ORM row."""
        return cls(blob=row.blob, pubkey=row.pubkey)
