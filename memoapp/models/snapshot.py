"""Snapshot model."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from memoapp.models.note import Note
from memoapp.utils import ms_to_utc_iso

if TYPE_CHECKING:
    from collections.abc import Iterable


def serialize_notes(notes: Iterable[Note]) -> list[dict[str, Any]]:
    """
    Serialize a note collection to JSON-compatible documents.

    Args:
        notes: The notes

    Returns:
        A list of note dictionaries

    """
    return [note.to_json() for note in notes]


def collection_fingerprint(documents: Iterable[dict[str, Any]]) -> str:
    """
    Get a canonical string form of serialized notes for identity checks.

    Args:
        documents: Note dictionaries

    Returns:
        The canonical JSON text

    """
    return json.dumps(list(documents), sort_keys=True, ensure_ascii=False)


@dataclass(frozen=True)
class Snapshot:
    """
    An immutable copy of the whole note collection at one point in time.

    The notes are kept in serialized form; :meth:`materialize` builds fresh
    :class:`Note` objects every time, so restoring never touches the snapshot.
    """

    #: The store-assigned snapshot ID (None before the snapshot is stored).
    id: int | None
    #: Creation time in milliseconds since the epoch.
    timestamp: int
    #: What triggered the snapshot.
    description: str
    #: The serialized notes.
    notes: tuple[dict[str, Any], ...]
    #: Number of notes in the snapshot.
    note_count: int
    #: Number of images across all notes in the snapshot.
    image_count: int

    @classmethod
    def capture(
        cls, notes: Iterable[Note], description: str, timestamp: int
    ) -> Snapshot:
        """
        Deep-copy a note collection into a new, unsaved snapshot.

        Args:
            notes: The live notes
            description: What triggered the snapshot
            timestamp: Creation time in milliseconds since the epoch

        Returns:
            The snapshot

        """
        documents = json.loads(json.dumps(serialize_notes(notes)))
        return cls(
            id=None,
            timestamp=timestamp,
            description=description,
            notes=tuple(documents),
            note_count=len(documents),
            image_count=sum(len(doc.get("images") or []) for doc in documents),
        )

    def materialize(self) -> list[Note]:
        """
        Build new notes from the snapshot.

        Returns:
            Fresh :class:`Note` objects, independent of the snapshot

        """
        return [Note.from_json(json.loads(json.dumps(doc))) for doc in self.notes]

    @property
    def fingerprint(self) -> str:
        """The canonical JSON text of the snapshot's notes."""
        return collection_fingerprint(self.notes)

    def to_json(self) -> dict[str, Any]:
        """
        Serialize snapshot to a JSON-compatible dictionary (without its ID).

        Returns:
            Dictionary containing snapshot data

        """
        return {
            "timestamp": self.timestamp,
            "date": ms_to_utc_iso(self.timestamp),
            "description": self.description,
            "memos": list(self.notes),
            "memoCount": self.note_count,
            "imageCount": self.image_count,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Snapshot:
        """
        Create a snapshot from a stored document.

        Args:
            data: Snapshot dictionary, including its ``id``

        Returns:
            The snapshot

        """
        notes = tuple(data.get("memos") or [])
        return cls(
            id=data.get("id"),
            timestamp=int(data["timestamp"]),
            description=str(data.get("description") or ""),
            notes=notes,
            note_count=int(data.get("memoCount", len(notes))),
            image_count=int(
                data.get(
                    "imageCount",
                    sum(len(doc.get("images") or []) for doc in notes),
                )
            ),
        )
