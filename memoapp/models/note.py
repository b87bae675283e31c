"""Note model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from memoapp.models.attachment import Attachment, MediaKind
from memoapp.utils import format_display_date, next_note_id, now_ms


@dataclass
class Note:
    """
    Represents a note.

    A note has these characteristics:
    - A title
    - Content: raw text with embedded attachment markers
    - An ordered list of image attachments
    - An ordered list of file attachments

    The content string is the only record of which markers exist and in what
    order. Attachments live inside their note, so deleting a note deletes them.
    """

    #: The note ID (a monotonic millisecond token).
    id: int = field(default_factory=next_note_id)
    #: The note title.
    title: str = ""
    #: The note text, including markers.
    content: str = ""
    #: The image attachments, in index order.
    images: list[Attachment] = field(default_factory=list)
    #: The file attachments, in index order.
    files: list[Attachment] = field(default_factory=list)
    #: Creation time in milliseconds since the epoch.
    created_at: int = field(default_factory=now_ms)
    #: The date shown next to the note, refreshed on save.
    display_date: str = field(default_factory=format_display_date)
    #: Labels the note is filed under, in the order they were added.
    tags: list[str] = field(default_factory=list)

    def attachments(self, kind: MediaKind) -> list[Attachment]:
        """
        Get the attachment list for ``kind``.

        Args:
            kind: The attachment kind

        Returns:
            The live list (mutations affect the note)

        """
        return self.images if kind is MediaKind.IMAGE else self.files

    @property
    def is_empty(self) -> bool:
        """Whether the note has no title, no content and no attachments."""
        return not (self.title or self.content or self.images or self.files)

    def to_json(self) -> dict[str, Any]:
        """
        Serialize note to a JSON-compatible dictionary.

        Returns:
            Dictionary containing note data

        """
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "images": [image.to_json() for image in self.images],
            "files": [file.to_json() for file in self.files],
            "createdAt": self.created_at,
            "displayDate": self.display_date,
            "tags": list(self.tags),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Note:
        """
        Create a note from stored or imported data.

        The original export keys ``created`` and ``date`` are accepted when
        ``createdAt`` and ``displayDate`` are missing.

        Args:
            data: Note data dictionary

        Returns:
            The note

        Raises:
            TypeError: If ``data`` is not a dictionary or a list field is not
                a list
            ValueError: If the note ID is not an integer, or the creation time
                is out of range

        """
        if not isinstance(data, dict):
            msg = "Note data must be an object"
            raise TypeError(msg)
        raw_id = data.get("id")
        if isinstance(raw_id, bool):
            msg = f"Note ID {raw_id!r} is not an integer"
            raise ValueError(msg)
        note_id = int(raw_id) if raw_id is not None else next_note_id()
        images = data.get("images") or []
        files = data.get("files") or []
        if not isinstance(images, list) or not isinstance(files, list):
            msg = f"Attachments of note {note_id} must be lists"
            raise TypeError(msg)
        tags = data.get("tags") or []
        if not isinstance(tags, list):
            msg = f"Tags of note {note_id} must be a list"
            raise TypeError(msg)
        created_at = int(data.get("createdAt") or data.get("created") or note_id)
        display_date = data.get("displayDate") or data.get("date")
        if not display_date:
            try:
                created = datetime.fromtimestamp(created_at / 1000)  # noqa: DTZ006
            except (OverflowError, OSError, ValueError) as e:
                msg = f"Creation time {created_at} of note {note_id} is out of range"
                raise ValueError(msg) from e
            display_date = format_display_date(created)
        return cls(
            id=note_id,
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
            images=[
                Attachment.from_json(item, index, MediaKind.IMAGE)
                for index, item in enumerate(images)
            ],
            files=[
                Attachment.from_json(item, index, MediaKind.FILE)
                for index, item in enumerate(files)
            ],
            created_at=created_at,
            display_date=str(display_date),
            tags=[str(tag) for tag in tags],
        )
