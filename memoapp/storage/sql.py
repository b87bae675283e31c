"""SQLite document store built on SQLAlchemy."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from memoapp.db import create_engine_with_path, make_session_factory
from memoapp.exc import PersistenceFailure
from memoapp.models.records import MemoRecord, VersionRecord
from memoapp.storage.base import MEMOS, VERSIONS, KeyValueStore

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class SQLStore(KeyValueStore):
    """
    Document store keeping each collection in its own SQLite table.

    Keyword Args:
        db_path: Path to the database file. If None, the default path is used.
        engine: An existing engine to use instead of ``db_path``.

    """

    #: Record class for each collection.
    RECORDS: Final[dict[str, type[MemoRecord] | type[VersionRecord]]] = {
        MEMOS: MemoRecord,
        VERSIONS: VersionRecord,
    }

    def __init__(
        self, db_path: Path | None = None, engine: Engine | None = None
    ) -> None:
        #: The SQLAlchemy engine.
        self.engine = engine if engine is not None else create_engine_with_path(db_path)
        #: The session factory.
        self.session_factory = make_session_factory(self.engine)

    def _record_class(self, collection: str) -> type[MemoRecord] | type[VersionRecord]:
        try:
            return self.RECORDS[collection]
        except KeyError:
            msg = f"Unknown collection: {collection}"
            raise ValueError(msg) from None

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        """
        Open a session for one store call and translate database errors.

        Args:
            operation: Description of the call, used in errors

        Yields:
            SQLAlchemy session

        Raises:
            PersistenceFailure: If the database raises

        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception(f"Store operation failed: {operation}")
            raise PersistenceFailure(operation, e) from e
        finally:
            session.close()

    def get(self, collection: str, key: int) -> dict[str, Any] | None:
        record_cls = self._record_class(collection)
        with self._session(f"get {collection}/{key}") as session:
            record = session.get(record_cls, key)
            return record.to_document() if record is not None else None

    def put(self, collection: str, key: int, document: dict[str, Any]) -> None:
        record_cls = self._record_class(collection)
        with self._session(f"put {collection}/{key}") as session:
            session.merge(record_cls.from_document(key, document))

    def add(self, collection: str, document: dict[str, Any]) -> int:
        record_cls = self._record_class(collection)
        if record_cls is not VersionRecord:
            msg = f"Collection {collection} does not assign keys"
            raise ValueError(msg)
        with self._session(f"add {collection}") as session:
            record = VersionRecord.from_document(None, document)
            session.add(record)
            session.flush()
            return record.id

    def delete(self, collection: str, key: int) -> bool:
        record_cls = self._record_class(collection)
        with self._session(f"delete {collection}/{key}") as session:
            record = session.get(record_cls, key)
            if record is None:
                return False
            session.delete(record)
            return True

    def list(self, collection: str) -> list[dict[str, Any]]:
        record_cls = self._record_class(collection)
        if record_cls is MemoRecord:
            stmt = select(MemoRecord).order_by(
                MemoRecord.created.desc(), MemoRecord.id.desc()
            )
        else:
            stmt = select(VersionRecord).order_by(
                VersionRecord.timestamp.desc(), VersionRecord.id.desc()
            )
        with self._session(f"list {collection}") as session:
            return [record.to_document() for record in session.scalars(stmt).all()]

    def clear(self, collection: str) -> None:
        record_cls = self._record_class(collection)
        with self._session(f"clear {collection}") as session:
            session.execute(delete(record_cls))

    def close(self) -> None:
        self.engine.dispose()
