"""Metadata store for content-addressed blobs and their owners.

The store keeps two relations:
- ``blobs``: one row per content hash (size, media type, creation time)
- ``owners``: one row per (blob, pubkey) claim

Every operation runs in its own session and transaction, so multi-statement
writes (cascade delete, batch insert) are atomic through the database itself.
The store holds no state between calls beyond its engine.

Usage:
    async with open_store(settings) as store:
        await store.add_blob(BlobRecord(sha256=digest, size=12, created=now))
        await store.add_owner(digest, pubkey)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from blob_meta.db import create_engine, create_session_factory, init_db
from blob_meta.errors import BlobConflictError, BlobNotFoundError, StorageUnavailableError
from blob_meta.models import Blob, Owner
from blob_meta.schemas import BlobRecord, OwnerRecord

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncEngine

    from blob_meta.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoreStats:
    """Aggregate counts over the whole store."""

    blobs: int
    owners: int
    total_size: int


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into StorageUnavailableError.

    Integrity errors pass through untouched; callers map them to conflicts.
    """
    try:
        yield
    except IntegrityError:
        raise
    except (DBAPIError, PoolTimeoutError) as exc:
        logger.warning("Storage failure during %s: %s", operation, exc)
        msg = f"Storage unavailable during {operation}"
        raise StorageUnavailableError(msg) from exc


def _created_range(stmt: Select[Any], since: int | None, until: int | None) -> Select[Any]:
    """Apply inclusive bounds on ``blobs.created``."""
    if since is not None:
        stmt = stmt.where(Blob.created >= since)
    if until is not None:
        stmt = stmt.where(Blob.created <= until)
    return stmt


def _to_row(record: BlobRecord) -> Blob:
    return Blob(
        sha256=record.sha256,
        size=record.size,
        type=record.type,
        created=record.created,
    )


class MetadataStore:
    """Blob metadata and ownership bookkeeping over an async SQLAlchemy engine.

    Usage:
        engine = create_async_engine("sqlite+aiosqlite:///blobs.db")
        await init_db(engine)
        store = MetadataStore(engine)
        if not await store.has_blob(digest):
            await store.add_blob(record)
    """

    def __init__(self, engine: AsyncEngine, *, strict_ownership: bool = False) -> None:
        """Initialize the store.

        Args:
            engine: Engine for the backing database. Its schema must already
                exist (see ``init_db``).
            strict_ownership: When True, ``add_owner`` rejects claims on
                blobs that are not stored.
        """
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._strict_ownership = strict_ownership

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def close(self) -> None:
        """Release all pooled connections."""
        await self._engine.dispose()

    # ── Blobs ────────────────────────────────────────────────────────────────

    async def has_blob(self, sha256: str) -> bool:
        """Return True if a blob with this hash is stored."""
        stmt = select(Blob.sha256).where(Blob.sha256 == sha256)
        with _storage_errors("has_blob"):
            async with self._session_factory() as session:
                found = await session.scalar(stmt)
        return found is not None

    async def get_blob(self, sha256: str) -> BlobRecord:
        """Return the stored record for a hash.

        Raises:
            BlobNotFoundError: If no blob with this hash is stored.
        """
        with _storage_errors("get_blob"):
            async with self._session_factory() as session:
                row = await session.get(Blob, sha256)
                if row is None:
                    raise BlobNotFoundError(sha256)
                return BlobRecord.from_row(row)

    async def list_blobs(
        self,
        *,
        since: int | None = None,
        until: int | None = None,
    ) -> list[BlobRecord]:
        """List stored blobs ordered by creation time.

        Args:
            since: Only include blobs created at or after this epoch second.
            until: Only include blobs created at or before this epoch second.
        """
        stmt = _created_range(select(Blob), since, until).order_by(Blob.created, Blob.sha256)
        with _storage_errors("list_blobs"):
            async with self._session_factory() as session:
                rows = (await session.scalars(stmt)).all()
        return [BlobRecord.from_row(row) for row in rows]

    async def add_blob(self, record: BlobRecord) -> BlobRecord:
        """Insert one blob record.

        The hash is trusted: the caller is responsible for having computed it
        from the blob's bytes.

        Raises:
            BlobConflictError: If a blob with the same hash is already stored.
                The stored record is left unchanged.
        """
        with _storage_errors("add_blob"):
            try:
                async with self._session_factory() as session, session.begin():
                    session.add(_to_row(record))
            except IntegrityError as exc:
                logger.debug("Rejected duplicate blob %s", record.sha256)
                raise BlobConflictError(record.sha256) from exc

        logger.info("Added blob %s (%d bytes)", record.sha256, record.size)
        return record

    async def add_many_blobs(self, records: Iterable[BlobRecord]) -> list[BlobRecord]:
        """Insert a batch of blob records in a single transaction.

        Either every record is inserted or none is. A hash that is already
        stored, or that appears twice in the batch, aborts the whole batch.

        Raises:
            BlobConflictError: For the first conflicting hash in batch order.
        """
        batch = list(records)
        if not batch:
            return []

        with _storage_errors("add_many_blobs"):
            async with self._session_factory() as session, session.begin():
                seen: set[str] = set()
                for record in batch:
                    if record.sha256 in seen:
                        raise BlobConflictError(record.sha256)
                    seen.add(record.sha256)
                    session.add(_to_row(record))
                    try:
                        await session.flush()
                    except IntegrityError as exc:
                        logger.debug(
                            "Batch of %d aborted on duplicate blob %s", len(batch), record.sha256
                        )
                        raise BlobConflictError(record.sha256) from exc

        logger.info("Added batch of %d blobs", len(batch))
        return batch

    async def remove_blob(self, sha256: str) -> bool:
        """Remove a blob and every ownership claim on it.

        Owners are deleted before the blob inside one transaction, so no
        reader sees the blob gone while claims on it remain. Removing an
        unknown hash is a no-op.
        """
        with _storage_errors("remove_blob"):
            async with self._session_factory() as session, session.begin():
                # Row lock (where supported) so no claim is added mid-cascade
                await session.scalar(
                    select(Blob.sha256).where(Blob.sha256 == sha256).with_for_update()
                )
                owners = await session.execute(delete(Owner).where(Owner.blob == sha256))
                blobs = await session.execute(delete(Blob).where(Blob.sha256 == sha256))
                removed_owners, removed_blobs = owners.rowcount, blobs.rowcount

        if removed_blobs:
            logger.info("Removed blob %s and %d owner claim(s)", sha256, removed_owners)
        else:
            logger.debug("Remove of unknown blob %s was a no-op", sha256)
        return True

    # ── Owners ───────────────────────────────────────────────────────────────

    async def has_owner(self, sha256: str, pubkey: str) -> bool:
        """Return True if ``pubkey`` has a claim on the blob."""
        stmt = (
            select(Owner.id)
            .where(Owner.blob == sha256, Owner.pubkey == pubkey)
            .limit(1)
        )
        with _storage_errors("has_owner"):
            async with self._session_factory() as session:
                found = await session.scalar(stmt)
        return found is not None

    async def add_owner(self, sha256: str, pubkey: str) -> bool:
        """Record that ``pubkey`` claims the blob.

        Repeating a claim is a no-op. Unless the store was built with
        ``strict_ownership``, the blob does not need to be stored yet.

        Raises:
            BlobNotFoundError: In strict mode, if the blob is not stored.
        """
        with _storage_errors("add_owner"):
            try:
                async with self._session_factory() as session, session.begin():
                    if self._strict_ownership:
                        blob = await session.scalar(
                            select(Blob.sha256)
                            .where(Blob.sha256 == sha256)
                            .with_for_update(read=True)
                        )
                        if blob is None:
                            raise BlobNotFoundError(sha256)

                    existing = await session.scalar(
                        select(Owner.id).where(Owner.blob == sha256, Owner.pubkey == pubkey)
                    )
                    if existing is not None:
                        logger.debug("Owner %s already claims %s", pubkey, sha256)
                        return True

                    session.add(Owner(blob=sha256, pubkey=pubkey))
            except IntegrityError:
                # Lost a race against an identical claim
                logger.debug("Owner %s already claims %s", pubkey, sha256)
                return True

        logger.info("Added owner %s to blob %s", pubkey, sha256)
        return True

    async def remove_owner(self, sha256: str, pubkey: str) -> bool:
        """Drop ``pubkey``'s claim on the blob. No-op if there is none."""
        stmt = delete(Owner).where(Owner.blob == sha256, Owner.pubkey == pubkey)
        with _storage_errors("remove_owner"):
            async with self._session_factory() as session, session.begin():
                removed = (await session.execute(stmt)).rowcount

        if removed:
            logger.info("Removed owner %s from blob %s", pubkey, sha256)
        else:
            logger.debug("Owner %s had no claim on %s", pubkey, sha256)
        return True

    async def get_owner_blobs(
        self,
        pubkey: str,
        *,
        since: int | None = None,
        until: int | None = None,
    ) -> list[BlobRecord]:
        """Return every stored blob claimed by ``pubkey``.

        Claims on blobs that are not stored are skipped. Results are ordered
        by creation time, then hash.
        """
        stmt = (
            select(Blob)
            .join(Owner, Owner.blob == Blob.sha256)
            .where(Owner.pubkey == pubkey)
        )
        stmt = _created_range(stmt, since, until).order_by(Blob.created, Blob.sha256)
        with _storage_errors("get_owner_blobs"):
            async with self._session_factory() as session:
                rows = (await session.scalars(stmt)).all()
        return [BlobRecord.from_row(row) for row in rows]

    async def get_blob_owners(self, sha256: str) -> list[str]:
        """Return the pubkeys claiming a blob, in claim order."""
        stmt = select(Owner.pubkey).where(Owner.blob == sha256).order_by(Owner.id)
        with _storage_errors("get_blob_owners"):
            async with self._session_factory() as session:
                return list((await session.scalars(stmt)).all())

    async def list_owners(self) -> list[OwnerRecord]:
        """List every ownership claim in insertion order."""
        with _storage_errors("list_owners"):
            async with self._session_factory() as session:
                rows = (await session.scalars(select(Owner).order_by(Owner.id))).all()
        return [OwnerRecord.from_row(row) for row in rows]

    # ── Reporting ────────────────────────────────────────────────────────────

    async def stats(self) -> StoreStats:
        """Count blobs, claims and stored bytes."""
        with _storage_errors("stats"):
            async with self._session_factory() as session:
                blobs, total_size = (
                    await session.execute(
                        select(func.count(Blob.sha256), func.coalesce(func.sum(Blob.size), 0))
                    )
                ).one()
                owners = await session.scalar(select(func.count(Owner.id)))
        return StoreStats(blobs=blobs, owners=owners or 0, total_size=int(total_size))


@asynccontextmanager
async def open_store(settings: Settings) -> AsyncIterator[MetadataStore]:
    """Open a store for the configured database and close it on exit.

    The schema is created if it does not exist yet.
    """
    engine = create_engine(settings)
    store = MetadataStore(engine, strict_ownership=settings.strict_ownership)
    try:
        with _storage_errors("open_store"):
            await init_db(engine)
        yield store
    finally:
        await store.close()
