"""Per-note attachment lists."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Final

from memoapp.exc import AttachmentRejected, DuplicateTag, RegistryOutOfSync
from memoapp.models.attachment import Attachment, MediaKind
from memoapp.services import markers
from memoapp.settings import get_settings, int_setting
from memoapp.utils import format_file_size

if TYPE_CHECKING:
    from PySide6.QtCore import QSettings

    from memoapp.models.note import Note

logger = logging.getLogger(__name__)

#: The extension of a filename, if any.
EXTENSION_RE: Final[re.Pattern[str]] = re.compile(r"(?<=.)\.[^/.]+$")


class AttachmentRegistry:
    """
    Service for the ordered image and file lists of a note.

    The registry holds no text: whoever calls :meth:`remove_at` or
    :meth:`rename` must update the markers in the note content in the same
    operation (see :class:`~memoapp.services.sync.ConsistencySynchronizer`).

    Keyword Args:
        settings: Settings store for the upload limits. If None, the
            application settings are used.

    """

    def __init__(self, settings: QSettings | None = None) -> None:
        #: The settings store.
        self.settings = settings if settings is not None else get_settings()

    def get_max_bytes(self, kind: MediaKind) -> int:
        """
        Get the upload size limit for ``kind`` from settings.

        Returns:
            Maximum size in bytes (default: 5 MB for images, 10 MB for files)

        """
        key = (
            "attachments/max_image_mb"
            if kind is MediaKind.IMAGE
            else "attachments/max_file_mb"
        )
        return int_setting(self.settings, key) * 1024 * 1024

    def get_max_files_per_note(self) -> int:
        """
        Get the maximum number of file attachments per note from settings.

        Returns:
            Maximum number of files (default: 10)

        """
        return int_setting(self.settings, "attachments/max_files_per_note")

    def labels(self, note: Note, kind: MediaKind) -> list[str]:
        """
        Get the name each attachment of ``kind`` resolves by, in index order.

        Args:
            note: The note
            kind: The attachment kind

        Returns:
            The labels

        """
        return [
            attachment.label(index)
            for index, attachment in enumerate(note.attachments(kind))
        ]

    def find(self, note: Note, kind: MediaKind, tag_name: str) -> int | None:
        """
        Find the attachment a marker with ``tag_name`` resolves to.

        Args:
            note: The note
            kind: The attachment kind
            tag_name: The marker's tag name

        Returns:
            The index of the first matching attachment, or None

        """
        for index, label in enumerate(self.labels(note, kind)):
            if label == tag_name:
                return index
        return None

    def get(self, note: Note, kind: MediaKind, index: int) -> Attachment:
        """
        Get the attachment at ``index``.

        Args:
            note: The note
            kind: The attachment kind
            index: The attachment index

        Returns:
            The attachment

        Raises:
            RegistryOutOfSync: If ``index`` is outside the list

        """
        attachments = note.attachments(kind)
        if not 0 <= index < len(attachments):
            raise RegistryOutOfSync(str(kind), index, len(attachments))
        return attachments[index]

    def unique_tag_name(self, note: Note, kind: MediaKind, name: str) -> str:
        """
        Get a tag name based on ``name`` that no attachment of ``kind`` uses.

        ``photo.png`` becomes ``photo (2).png``, then ``photo (3).png`` and
        so on. Square brackets become parentheses.

        Args:
            note: The note
            kind: The attachment kind
            name: The preferred tag name

        Returns:
            ``name`` itself if it is free, otherwise a numbered variant

        """
        # Square brackets would end a marker early
        name = name.replace("[", "(").replace("]", ")")
        return numbered_name(name, set(self.labels(note, kind)))

    def validate_upload(
        self, note: Note, kind: MediaKind, size_bytes: int, name: str
    ) -> None:
        """
        Check an upload against the attachment limits.

        Args:
            note: The note receiving the upload
            kind: The attachment kind
            size_bytes: Size of the upload
            name: Filename of the upload

        Raises:
            AttachmentRejected: If the upload is too large, or the note already
                holds the maximum number of files

        """
        max_bytes = self.get_max_bytes(kind)
        if size_bytes > max_bytes:
            raise AttachmentRejected(
                name,
                f"too large ({format_file_size(size_bytes)}, "
                f"limit {format_file_size(max_bytes)})",
            )
        if kind is MediaKind.FILE:
            max_files = self.get_max_files_per_note()
            if len(note.files) >= max_files:
                raise AttachmentRejected(
                    name, f"a note can hold at most {max_files} files"
                )

    def add(  # noqa: PLR0913
        self,
        note: Note,
        kind: MediaKind,
        payload: str,
        original_name: str,
        size_bytes: int = 0,
        text_anchor: int | None = None,
    ) -> Attachment:
        """
        Append a new attachment to the end of the list for ``kind``.

        The tag name starts out as the original name; if that name is already
        taken in the list, a numbered variant is used instead.

        Args:
            note: The note
            kind: The attachment kind
            payload: The encoded payload
            original_name: The uploaded filename

        Keyword Args:
            size_bytes: Size of the upload
            text_anchor: Cursor offset at insertion time

        Returns:
            The new attachment

        """
        attachments = note.attachments(kind)
        attachment = Attachment(
            payload=payload,
            original_name=original_name,
            tag_name=self.unique_tag_name(
                note,
                kind,
                original_name or Attachment.fallback_name(kind, len(attachments)),
            ),
            media_kind=kind,
            size_bytes=size_bytes,
            text_anchor=text_anchor,
        )
        attachments.append(attachment)
        logger.debug(
            f"Added {kind} {attachment.tag_name!r} at index "
            f"{len(attachments) - 1} to note {note.id}"
        )
        return attachment

    def remove_at(self, note: Note, kind: MediaKind, index: int) -> Attachment:
        """
        Remove the attachment at ``index``.

        Every later attachment moves down one index.

        Args:
            note: The note
            kind: The attachment kind
            index: The attachment index

        Returns:
            The removed attachment

        Raises:
            RegistryOutOfSync: If ``index`` is outside the list

        """
        self.get(note, kind, index)
        attachment = note.attachments(kind).pop(index)
        logger.debug(f"Removed {kind} {attachment.tag_name!r} from note {note.id}")
        return attachment

    def rename(
        self, note: Note, kind: MediaKind, index: int, new_tag_name: str
    ) -> str | None:
        """
        Change the tag name of the attachment at ``index``.

        Only the tag name changes; the original name is never touched.
        Names are compared exactly (case-sensitive).

        Args:
            note: The note
            kind: The attachment kind
            index: The attachment index
            new_tag_name: The new tag name (surrounding whitespace is dropped)

        Returns:
            The previous tag name, or None if nothing changed (the new name is
            empty or equal to the current one)

        Raises:
            DuplicateTag: If another attachment in the list already uses
                ``new_tag_name``; the note is left unchanged
            ValueError: If ``new_tag_name`` contains ``]``
            RegistryOutOfSync: If ``index`` is outside the list

        """
        attachment = self.get(note, kind, index)
        new_tag_name = new_tag_name.strip()
        old_tag_name = attachment.label(index)
        if not new_tag_name or new_tag_name == old_tag_name:
            return None
        if "]" in new_tag_name:
            msg = f"Tag names cannot contain ']': {new_tag_name!r}"
            raise ValueError(msg)
        for other_index, label in enumerate(self.labels(note, kind)):
            if other_index != index and label == new_tag_name:
                raise DuplicateTag(str(kind), new_tag_name)
        attachment.tag_name = new_tag_name
        logger.debug(
            f"Renamed {kind} {old_tag_name!r} to {new_tag_name!r} in note {note.id}"
        )
        return old_tag_name


def numbered_name(name: str, taken: set[str]) -> str:
    """
    Get ``name``, or its first numbered variant that is not in ``taken``.

    ``photo.png`` becomes ``photo (2).png``, then ``photo (3).png`` and so on.

    Args:
        name: The preferred name
        taken: Names already in use

    Returns:
        A name not in ``taken``

    """
    if name not in taken:
        return name
    match = EXTENSION_RE.search(name)
    suffix = match.group(0) if match else ""
    stem = name[: len(name) - len(suffix)]
    counter = 2
    while f"{stem} ({counter}){suffix}" in taken:
        counter += 1
    return f"{stem} ({counter}){suffix}"


def deduplicate_tags(note: Note) -> list[tuple[MediaKind, str, str]]:
    """
    Give every attachment in ``note`` a label no other attachment of its kind has.

    Notes written by older versions can hold several attachments under one
    name.  The first keeps the name and each later one gets a numbered tag.
    Markers with the shared name are handed out in order: the first stays
    with the first attachment, the second is rewritten to the second
    attachment's new tag and so on.  Markers beyond the number of
    attachments keep resolving to the first one.

    Args:
        note: The note, changed in place

    Returns:
        ``(kind, old_label, new_tag_name)`` for each renamed attachment

    """
    renamed: list[tuple[MediaKind, str, str]] = []
    # New tag names for the second and later markers sharing a label
    reassigned: dict[tuple[MediaKind, str], list[str]] = {}
    for kind in MediaKind:
        attachments = note.attachments(kind)
        labels = [
            attachment.label(index) for index, attachment in enumerate(attachments)
        ]
        taken = set(labels)
        seen: set[str] = set()
        for attachment, label in zip(attachments, labels, strict=True):
            if label not in seen:
                seen.add(label)
                continue
            new_name = numbered_name(label, taken)
            taken.add(new_name)
            attachment.tag_name = new_name
            reassigned.setdefault((kind, label), []).append(new_name)
            renamed.append((kind, label, new_name))
    if not renamed:
        return renamed

    counts: dict[tuple[MediaKind, str], int] = {}

    def repl(match: re.Match[str]) -> str:
        key = (markers.KINDS[match.group(1)], match.group(2))
        if key not in reassigned:
            return match.group(0)
        position = counts.get(key, 0)
        counts[key] = position + 1
        names = reassigned[key]
        if 1 <= position <= len(names):
            return markers.format_marker(key[0], names[position - 1])
        return match.group(0)

    note.content = markers.MARKER_RE.sub(repl, note.content)
    for kind, old, new in renamed:
        logger.warning(
            f"Note {note.id}: duplicate {kind} tag {old!r} renamed to {new!r}"
        )
    return renamed
