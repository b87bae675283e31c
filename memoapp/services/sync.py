"""Keeps note content markers and attachment lists consistent."""

from __future__ import annotations

import locale
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from memoapp.exc import AttachmentNotFound, RegistryOutOfSync
from memoapp.models.attachment import MediaKind
from memoapp.services import markers
from memoapp.services.registry import AttachmentRegistry

if TYPE_CHECKING:
    from memoapp.models.attachment import Attachment
    from memoapp.models.note import Note
    from memoapp.services.markers import MarkerSegment, MarkerToken, Segment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedMarker:
    """A marker together with the attachment index it resolves to."""

    #: The marker.
    token: MarkerToken
    #: The attachment index, or None for a broken marker.
    index: int | None

    @property
    def is_broken(self) -> bool:
        """Whether the marker has no matching attachment."""
        return self.index is None


@dataclass(frozen=True)
class OrphanAttachment:
    """An attachment no marker in the content resolves to."""

    kind: MediaKind
    index: int
    attachment: Attachment


@dataclass(frozen=True)
class SyncReport:
    """The result of checking a note's markers against its attachments."""

    #: Number of markers in the content.
    marker_count: int
    #: Markers with no matching attachment.
    orphan_markers: tuple[MarkerToken, ...]
    #: Attachments with no marker.
    orphan_attachments: tuple[OrphanAttachment, ...]
    #: Number of image attachments.
    image_count: int
    #: Number of file attachments.
    file_count: int

    @property
    def is_consistent(self) -> bool:
        """Whether every marker and every attachment has a counterpart."""
        return not self.orphan_markers and not self.orphan_attachments


class ConsistencySynchronizer:
    """
    Reconciles the markers in a note's content with its attachment lists.

    Marker indices are never stored: every operation resolves the markers
    against the current lists again, so removing an attachment implicitly
    moves every later marker down one index.

    Broken markers are left in the content until :meth:`cleanup_broken_markers`
    is called, and orphaned attachments are only deleted by
    :meth:`delete_orphan_attachments` with confirmation.

    Keyword Args:
        registry: The attachment registry. If None, a new one is created.

    """

    def __init__(self, registry: AttachmentRegistry | None = None) -> None:
        #: The attachment registry.
        self.registry = registry if registry is not None else AttachmentRegistry()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def lookup(self, note: Note, kind: MediaKind, tag_name: str) -> int | None:
        """
        Resolve one marker.

        Args:
            note: The note
            kind: The marker kind
            tag_name: The marker tag name

        Returns:
            The attachment index, or None

        """
        return self.registry.find(note, kind, tag_name)

    def resolve(self, note: Note) -> list[ResolvedMarker]:
        """
        Resolve every marker in the note content.

        Args:
            note: The note

        Returns:
            The markers with their indices, in content order

        """
        return [
            ResolvedMarker(token, self.lookup(note, token.kind, token.tag_name))
            for token in markers.parse(note.content)
        ]

    def render(self, note: Note) -> list[Segment]:
        """
        Render the note content into display segments.

        Args:
            note: The note

        Returns:
            Text, marker and broken marker segments

        """
        return markers.render(
            note.content, lambda kind, tag: self.lookup(note, kind, tag)
        )

    def require(self, note: Note, kind: MediaKind, tag_name: str) -> Attachment:
        """
        Get the attachment a marker resolves to.

        Args:
            note: The note
            kind: The marker kind
            tag_name: The marker tag name

        Returns:
            The attachment

        Raises:
            AttachmentNotFound: If the marker is broken

        """
        index = self.lookup(note, kind, tag_name)
        if index is None:
            raise AttachmentNotFound(str(kind), tag_name)
        return note.attachments(kind)[index]

    def attachment_for(self, note: Note, segment: MarkerSegment) -> Attachment | None:
        """
        Get the attachment behind a rendered marker segment.

        The segment carries the index it resolved to when it was rendered.
        If the lists have changed since then and that index is out of range
        or points at a different attachment, the marker is resolved again.

        Args:
            note: The note
            segment: A marker segment from :meth:`render`

        Returns:
            The attachment, or None if the marker no longer resolves

        """
        try:
            attachment = self.registry.get(note, segment.kind, segment.index)
            if attachment.label(segment.index) == segment.tag_name:
                return attachment
            logger.debug(
                f"{segment.kind} index {segment.index} no longer matches "
                f"{segment.tag_name!r}; resolving again"
            )
        except RegistryOutOfSync as e:
            logger.warning(f"{e!s}; resolving again")
        try:
            return self.require(note, segment.kind, segment.tag_name)
        except AttachmentNotFound as e:
            logger.info(str(e))
            return None

    def orphan_markers(self, note: Note) -> list[MarkerToken]:
        """
        Get the markers with no matching attachment.

        Args:
            note: The note

        Returns:
            The broken markers, in content order

        """
        return [marker.token for marker in self.resolve(note) if marker.is_broken]

    def orphan_attachments(self, note: Note) -> list[OrphanAttachment]:
        """
        Get the attachments no marker resolves to.

        Args:
            note: The note

        Returns:
            The orphans, images first, each list in index order

        """
        referenced = {
            (marker.token.kind, marker.index)
            for marker in self.resolve(note)
            if not marker.is_broken
        }
        return [
            OrphanAttachment(kind, index, attachment)
            for kind in (MediaKind.IMAGE, MediaKind.FILE)
            for index, attachment in enumerate(note.attachments(kind))
            if (kind, index) not in referenced
        ]

    def check(self, note: Note) -> SyncReport:
        """
        Compare the markers in a note with its attachments.

        Args:
            note: The note

        Returns:
            The report

        """
        resolved = self.resolve(note)
        report = SyncReport(
            marker_count=len(resolved),
            orphan_markers=tuple(m.token for m in resolved if m.is_broken),
            orphan_attachments=tuple(self.orphan_attachments(note)),
            image_count=len(note.images),
            file_count=len(note.files),
        )
        logger.debug(
            f"Note {note.id}: {report.marker_count} markers, "
            f"{len(report.orphan_markers)} broken, "
            f"{len(report.orphan_attachments)} orphaned attachments"
        )
        return report

    # ------------------------------------------------------------------
    # Structural changes
    # ------------------------------------------------------------------

    def attach(  # noqa: PLR0913
        self,
        note: Note,
        kind: MediaKind,
        payload: str,
        original_name: str,
        size_bytes: int = 0,
        text_anchor: int | None = None,
    ) -> Attachment:
        """
        Add an attachment and insert its marker into the content.

        The marker and a following space go in at ``text_anchor`` (clamped to
        the content), or at the end of the content when there is no anchor.

        Args:
            note: The note
            kind: The attachment kind
            payload: The encoded payload
            original_name: The uploaded filename

        Keyword Args:
            size_bytes: Size of the upload
            text_anchor: Cursor offset to insert the marker at

        Returns:
            The new attachment

        Raises:
            AttachmentRejected: If the upload breaks the attachment limits

        """
        self.registry.validate_upload(note, kind, size_bytes, original_name)
        attachment = self.registry.add(
            note,
            kind,
            payload,
            original_name,
            size_bytes=size_bytes,
            text_anchor=text_anchor,
        )
        note.content = markers.insert_marker(
            note.content, kind, attachment.tag_name, text_anchor
        )
        return attachment

    def delete_attachment(self, note: Note, kind: MediaKind, index: int) -> Attachment:
        """
        Delete an attachment along with every marker that resolves to it.

        Each removed marker takes one following space with it, and blank
        line runs left behind are collapsed.  Markers resolving to later
        attachments need no rewrite; they resolve one index lower afterwards.

        Args:
            note: The note
            kind: The attachment kind
            index: The attachment index

        Returns:
            The removed attachment

        Raises:
            RegistryOutOfSync: If ``index`` is outside the list

        """
        self.registry.get(note, kind, index)
        doomed = {
            marker.token.offset
            for marker in self.resolve(note)
            if marker.token.kind is kind and marker.index == index
        }
        attachment = self.registry.remove_at(note, kind, index)
        if doomed:
            note.content = markers.collapse_blank_lines(
                markers.remove_markers(
                    note.content, lambda token: token.offset in doomed
                )
            )
        logger.info(
            f"Deleted {kind} {attachment.tag_name!r} and {len(doomed)} "
            f"marker(s) from note {note.id}"
        )
        return attachment

    def rename_attachment(
        self, note: Note, kind: MediaKind, index: int, new_tag_name: str
    ) -> bool:
        """
        Rename an attachment and rewrite its markers.

        Every literal occurrence of the old marker text becomes the new marker
        text.  Nothing else in the content changes.

        Args:
            note: The note
            kind: The attachment kind
            index: The attachment index
            new_tag_name: The new tag name

        Returns:
            True if the attachment was renamed, False if the name did not change

        Raises:
            DuplicateTag: If another attachment in the list uses the name
            ValueError: If the name contains ``]``

        """
        old_tag_name = self.registry.rename(note, kind, index, new_tag_name)
        if old_tag_name is None:
            return False
        note.content = markers.replace_marker(
            note.content, kind, old_tag_name, note.attachments(kind)[index].tag_name
        )
        return True

    def sort_markers(self, note: Note) -> bool:
        """
        Move every marker to the end of the content, grouped and sorted.

        Image markers come first, then file markers on their own line, each
        group sorted by tag name using the current locale's collation.  Each
        marker is followed by a space.  Running this twice gives the same
        content both times.

        Args:
            note: The note

        Returns:
            True if the content had markers to sort

        """
        tokens = markers.parse(note.content)
        if not tokens:
            return False
        groups = {
            kind: sorted(
                (token.tag_name for token in tokens if token.kind is kind),
                key=locale.strxfrm,
            )
            for kind in (MediaKind.IMAGE, MediaKind.FILE)
        }
        content = markers.collapse_blank_lines(markers.remove_markers(note.content))
        content += "\n\n"
        content += "".join(
            markers.format_marker(MediaKind.IMAGE, tag) + " "
            for tag in groups[MediaKind.IMAGE]
        )
        if groups[MediaKind.FILE]:
            if groups[MediaKind.IMAGE]:
                content += "\n"
            content += "".join(
                markers.format_marker(MediaKind.FILE, tag) + " "
                for tag in groups[MediaKind.FILE]
            )
        note.content = content
        return True

    def clear_markers(self, note: Note) -> int:
        """
        Remove every marker from the content.

        Attachments are left alone.

        Args:
            note: The note

        Returns:
            The number of markers removed

        """
        count = len(markers.parse(note.content))
        if count:
            note.content = markers.collapse_blank_lines(
                markers.remove_markers(note.content)
            )
        return count

    def cleanup_broken_markers(self, note: Note) -> int:
        """
        Remove the markers that have no matching attachment.

        Args:
            note: The note

        Returns:
            The number of markers removed

        """
        broken = {token.offset for token in self.orphan_markers(note)}
        if broken:
            note.content = markers.collapse_blank_lines(
                markers.remove_markers(
                    note.content, lambda token: token.offset in broken
                )
            )
            logger.info(f"Removed {len(broken)} broken marker(s) from note {note.id}")
        return len(broken)

    def delete_orphan_attachments(
        self, note: Note, *, confirmed: bool = False
    ) -> list[Attachment]:
        """
        Delete the attachments no marker resolves to.

        Args:
            note: The note

        Keyword Args:
            confirmed: Whether the user confirmed the deletion. Nothing is
                deleted without confirmation.

        Returns:
            The deleted attachments

        """
        if not confirmed:
            return []
        orphans = self.orphan_attachments(note)
        # Remove from the end so earlier indices stay valid
        for orphan in reversed(orphans):
            self.registry.remove_at(note, orphan.kind, orphan.index)
        if orphans:
            logger.info(
                f"Deleted {len(orphans)} orphaned attachment(s) from note {note.id}"
            )
        return [orphan.attachment for orphan in orphans]
