"""SQLAlchemy records backing the ``memos`` and ``versions`` collections."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, BigInteger, Integer
from sqlalchemy.orm import Mapped, mapped_column

from memoapp.db import Base
from memoapp.utils import now_ms


class MemoRecord(Base):
    """
    One stored note document, keyed by note ID.
    """

    __tablename__ = "memos"

    #: The note ID.
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    #: The note creation time, used for ordering.
    created: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    #: The serialized note.
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    @classmethod
    def from_document(cls, key: int, document: dict[str, Any]) -> MemoRecord:
        """
        Build a record for a note document.

        Args:
            key: The note ID
            document: The serialized note

        Returns:
            The record

        """
        return cls(
            id=int(key),
            created=int(document.get("createdAt") or key),
            document=document,
        )

    def to_document(self) -> dict[str, Any]:
        """
        Get the stored note document.

        Returns:
            A copy of the serialized note

        """
        return dict(self.document)


class VersionRecord(Base):
    """
    One stored snapshot document, keyed by an auto-assigned ID.
    """

    __tablename__ = "versions"

    #: The snapshot ID.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    #: The snapshot time, used for ordering.
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    #: The serialized snapshot.
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    @classmethod
    def from_document(cls, key: int | None, document: dict[str, Any]) -> VersionRecord:
        """
        Build a record for a snapshot document.

        Args:
            key: The snapshot ID, or None to have one assigned
            document: The serialized snapshot

        Returns:
            The record

        """
        body = {k: v for k, v in document.items() if k != "id"}
        record = cls(timestamp=int(body.get("timestamp") or now_ms()), document=body)
        if key is not None:
            record.id = int(key)
        return record

    def to_document(self) -> dict[str, Any]:
        """
        Get the stored snapshot document, with its ID.

        Returns:
            A copy of the serialized snapshot including ``id``

        """
        return {**self.document, "id": self.id}
