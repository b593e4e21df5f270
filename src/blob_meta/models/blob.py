"""Blob model for content-addressed blob metadata."""

from __future__ import annotations

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from blob_meta.models.base import Base


class Blob(Base):
    """Metadata row for one content-addressed blob.

    Blobs are identified by their SHA256 hash. The bytes live elsewhere;
    this table only records size, media type and creation time.
    """

    __tablename__ = "blobs"
    __table_args__ = (Index("blobs_created", "created"),)

    sha256: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str | None] = mapped_column(String(255))
    size: Mapped[int] = mapped_column(BigInteger)
    created: Mapped[int] = mapped_column(BigInteger)
