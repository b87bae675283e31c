"""The key-value store contract the repository and version store persist through."""

from abc import ABC, abstractmethod
from typing import Any, Final

#: The collection of note documents, keyed by note ID.
MEMOS: Final[str] = "memos"
#: The collection of snapshot documents, keyed by an auto-assigned ID.
VERSIONS: Final[str] = "versions"


class KeyValueStore(ABC):
    """
    Base class for document stores.

    Every method either returns its result or raises
    :class:`~memoapp.exc.PersistenceFailure`. A write that has been issued
    either completes or fails; there is no abort.
    """

    @abstractmethod
    def get(self, collection: str, key: int) -> dict[str, Any] | None:
        """
        Get one document.

        Args:
            collection: Collection name
            key: Document key

        Returns:
            The document, or None if there is none under ``key``

        """

    @abstractmethod
    def put(self, collection: str, key: int, document: dict[str, Any]) -> None:
        """
        Insert or replace the document stored under ``key``.

        Args:
            collection: Collection name
            key: Document key
            document: JSON-compatible document

        """

    @abstractmethod
    def add(self, collection: str, document: dict[str, Any]) -> int:
        """
        Insert a document under a store-assigned key.

        Args:
            collection: Collection name
            document: JSON-compatible document

        Returns:
            The assigned key

        """

    @abstractmethod
    def delete(self, collection: str, key: int) -> bool:
        """
        Delete one document.

        Args:
            collection: Collection name
            key: Document key

        Returns:
            True if a document was deleted, False if there was none

        """

    @abstractmethod
    def list(self, collection: str) -> list[dict[str, Any]]:
        """
        Get every document in a collection, newest first.

        Args:
            collection: Collection name

        Returns:
            The documents

        """

    @abstractmethod
    def clear(self, collection: str) -> None:
        """
        Delete every document in a collection.

        Args:
            collection: Collection name

        """

    def close(self) -> None:  # noqa: B027
        """Release any resources held by the store."""
