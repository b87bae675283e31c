"""Attachment model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Final

from memoapp.utils import now_ms


class MediaKind(StrEnum):
    """The two kinds of attachment a note can hold."""

    IMAGE = "image"
    FILE = "file"


#: The synthetic name prefix used when an attachment carries no name at all.
#: These match the names older exports gave unnamed attachments.
FALLBACK_NAME_PREFIX: Final[dict[MediaKind, str]] = {
    MediaKind.IMAGE: "图片",
    MediaKind.FILE: "文件",
}


def _new_attachment_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Attachment:
    """
    Represents a binary object attached to a note.

    The position of an attachment in its note's list is its *index*. Indices
    shift when an earlier attachment is removed, so only :attr:`id` and
    :attr:`tag_name` identify an attachment.
    """

    #: The encoded payload (a base64 data URL).
    payload: str
    #: The filename the attachment was added with. Never changes.
    original_name: str
    #: The user-facing label used by markers. Unique within its list.
    tag_name: str
    #: The kind of attachment.
    media_kind: MediaKind = MediaKind.IMAGE
    #: The size of the original upload in bytes.
    size_bytes: int = 0
    #: The cursor offset at insertion time. Advisory only.
    text_anchor: int | None = None
    #: Creation time in milliseconds since the epoch.
    created_at: int = field(default_factory=now_ms)
    #: The attachment ID.
    id: str = field(default_factory=_new_attachment_id)

    @staticmethod
    def fallback_name(kind: MediaKind, index: int) -> str:
        """
        Get the synthetic name of an unnamed attachment.

        Args:
            kind: The attachment kind
            index: The attachment index in its list

        Returns:
            A name such as ``"图片3"``

        """
        return f"{FALLBACK_NAME_PREFIX[kind]}{index + 1}"

    def label(self, index: int) -> str:
        """
        Get the name markers resolve against.

        The explicit tag wins, then the original name, then the synthetic
        fallback name for ``index``.

        Args:
            index: The attachment index in its list

        Returns:
            The label

        """
        return (
            self.tag_name
            or self.original_name
            or self.fallback_name(self.media_kind, index)
        )

    def to_json(self) -> dict[str, Any]:
        """
        Serialize attachment to a JSON-compatible dictionary.

        Returns:
            Dictionary containing attachment data

        """
        return {
            "id": self.id,
            "payload": self.payload,
            "originalName": self.original_name,
            "tagName": self.tag_name,
            "sizeBytes": self.size_bytes,
            "mediaKind": str(self.media_kind),
            "textAnchor": self.text_anchor,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_json(
        cls, data: dict[str, Any] | str, index: int, kind: MediaKind
    ) -> Attachment:
        """
        Create an attachment from stored or imported data.

        Older exports are migrated on the way in:

        - A bare string is the payload of an unnamed attachment.
        - ``data``/``name``/``fileName``/``size``/``linkedPosition``/``timestamp``
          are read when the current keys are missing.
        - A missing tag name falls back to the original name, then to the
          synthetic name for ``index``.

        Args:
            data: Attachment dictionary, or a bare payload string
            index: The attachment index in its list
            kind: The list the attachment belongs to

        Returns:
            The attachment

        Raises:
            TypeError: If ``data`` is neither a dictionary nor a string

        """
        fallback = cls.fallback_name(kind, index)
        if isinstance(data, str):
            return cls(
                payload=data,
                original_name=fallback,
                tag_name=fallback,
                media_kind=kind,
            )
        if not isinstance(data, dict):
            msg = f"Attachment {index} of kind {kind} is not an object"
            raise TypeError(msg)

        original_name = (
            data.get("originalName") or data.get("fileName") or data.get("name")
        )
        tag_name = data.get("tagName") or data.get("name") or data.get("fileName")
        anchor = data.get("textAnchor", data.get("linkedPosition"))
        # Older versions stored ``true`` here to mean "somewhere in the text"
        if isinstance(anchor, bool) or not isinstance(anchor, int):
            anchor = None
        created_at = data.get("createdAt") or data.get("timestamp") or now_ms()
        attachment_id = data.get("id")
        return cls(
            payload=data.get("payload") or data.get("data") or "",
            original_name=str(original_name or fallback),
            tag_name=str(tag_name or original_name or fallback),
            media_kind=kind,
            size_bytes=int(data.get("sizeBytes") or data.get("size") or 0),
            text_anchor=anchor,
            created_at=int(created_at),
            id=str(attachment_id) if attachment_id is not None else _new_attachment_id(),
        )
