"""
Document store — read/write of JSON-like records addressed by collection/id.

Three operations are exposed, mirroring a hosted document database:

    get_document(collection, doc_id)              -> dict | None
    merge_write(collection, doc_id, fields, ...)  -> dict
    query_where(collection, field, value)         -> list[dict]

merge_write semantics:
  - fields present in `fields` overwrite the stored values
  - fields not mentioned are left untouched
  - fields in `defaults` are written only when the stored record does not
    already have them (used for createdAt, which must never be overwritten)
  - the record is created if missing; there is never a second record for
    the same (collection, doc_id)

Every call opens its own session. Database errors surface as
StoreUnavailableError; `bounded()` adds a timeout and turns an expired
timer into StoreTimeoutError so callers decide whether that is fatal.
"""

import asyncio
import logging
from typing import Any, Awaitable, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.exceptions import StoreTimeoutError, StoreUnavailableError
from app.models.document import Document

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """
    Race a store call against a timer.

    Raises:
        StoreTimeoutError: If the timer fires first. The pending call is
            cancelled.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        raise StoreTimeoutError(operation, timeout)


class DocumentStore:
    """SQL-backed JSON document store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _load(self, db: AsyncSession, collection: str, doc_id: str) -> Document | None:
        result = await db.execute(
            select(Document).where(
                Document.collection == collection,
                Document.doc_id == doc_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return a copy of the stored record, or None when absent."""
        try:
            async with self._session_factory() as db:
                document = await self._load(db, collection, doc_id)
        except SQLAlchemyError:
            logger.exception("get_document %s/%s failed", collection, doc_id)
            raise StoreUnavailableError(f"read {collection}/{doc_id}")
        if document is None:
            return None
        return dict(document.data)

    async def merge_write(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        defaults: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Merge `fields` into the record, creating it if needed.

        Returns:
            The record as stored after the merge.
        """
        try:
            try:
                return await self._merge(collection, doc_id, fields, defaults)
            except IntegrityError:
                # A concurrent writer created the record first; merge into theirs
                return await self._merge(collection, doc_id, fields, defaults)
        except SQLAlchemyError:
            logger.exception("merge_write %s/%s failed", collection, doc_id)
            raise StoreUnavailableError(f"write {collection}/{doc_id}")

    async def _merge(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        defaults: dict[str, Any] | None,
    ) -> dict[str, Any]:
        async with self._session_factory() as db:
            document = await self._load(db, collection, doc_id)
            current = dict(document.data) if document is not None else {}

            merged = {**current, **fields}
            for key, value in (defaults or {}).items():
                merged.setdefault(key, value)

            if document is None:
                db.add(Document(collection=collection, doc_id=doc_id, data=merged))
            else:
                # Reassign so SQLAlchemy sees the JSON column as changed
                document.data = merged
            await db.commit()
            return dict(merged)

    async def query_where(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        """
        Return every record in `collection` whose `field` equals `value`.

        The comparison runs in the database against the JSON column, so
        `value` must be a scalar (str, bool, int or float). Records come back
        with their document id under "id". No ordering or pagination
        guarantee.
        """
        path = Document.data[field]
        if isinstance(value, str):
            condition = path.as_string() == value
        elif isinstance(value, bool):
            condition = path.as_boolean() == value
        elif isinstance(value, int):
            condition = path.as_integer() == value
        elif isinstance(value, float):
            condition = path.as_float() == value
        else:
            raise TypeError(f"query_where cannot match on {type(value).__name__} values")

        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Document).where(Document.collection == collection, condition)
                )
                documents = result.scalars().all()
        except SQLAlchemyError:
            logger.exception("query_where %s.%s failed", collection, field)
            raise StoreUnavailableError(f"query {collection}")

        return [{"id": document.doc_id, **document.data} for document in documents]
