"""Owner model for blob ownership claims."""

from __future__ import annotations

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from blob_meta.models.base import Base


class Owner(Base):
    """A public key's claim on a blob.

    ``blob`` holds the claimed blob's sha256 without a database-level foreign
    key: a claim may be recorded before its blob row exists.
    """

    __tablename__ = "owners"
    __table_args__ = (
        UniqueConstraint("blob", "pubkey", name="uq_owners_blob_pubkey"),
        Index("owners_pubkey", "pubkey"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    blob: Mapped[str] = mapped_column(String(64))
    pubkey: Mapped[str] = mapped_column(String(64))
