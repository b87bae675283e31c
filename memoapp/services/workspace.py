"""One editing session over the note collection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from memoapp.exc import AttachmentRejected, DuplicateTag, RegistryOutOfSync
from memoapp.services.autosave import AutosaveService, Debouncer
from memoapp.services.history import HistoryStack
from memoapp.services.import_export import NoteExporter, NoteImporter
from memoapp.services.notifications import Notifier, Severity
from memoapp.services.registry import AttachmentRegistry
from memoapp.services.repository import NoteRepository
from memoapp.services.storage import StorageMonitor
from memoapp.services.sync import ConsistencySynchronizer
from memoapp.services.versions import PRE_DELETE_DESCRIPTION, VersionStore
from memoapp.settings import get_settings, int_setting
from memoapp.utils import encode_payload, format_display_date, now_ms

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from PySide6.QtCore import QSettings

    from memoapp.models.attachment import Attachment, MediaKind
    from memoapp.models.note import Note
    from memoapp.services.markers import Segment
    from memoapp.services.storage import QuotaEstimator
    from memoapp.services.sync import SyncReport
    from memoapp.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

#: Title given to a note saved without one.
DEFAULT_TITLE: Final[str] = "Untitled"


class Workspace:
    """
    Wires the note components together for one running session.

    Edits flow through here: the active note's content and attachments are
    reconciled by the synchronizer, written through the repository, recorded
    by the history stack, and snapshotted by the version store.  Every change
    to a note's attachments or content happens under that note's lock.

    Args:
        store: The document store

    Keyword Args:
        notifier: Where to send user-visible messages. If None, a new
            :class:`Notifier` is created.
        settings: Settings store. If None, the application settings are used.
        estimator: Storage quota estimator. If None, usage is not monitored.
        clock: Returns the current time in milliseconds since the epoch

    """

    def __init__(  # noqa: PLR0913
        self,
        store: KeyValueStore,
        notifier: Notifier | None = None,
        settings: QSettings | None = None,
        estimator: QuotaEstimator | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        #: The settings store.
        self.settings = settings if settings is not None else get_settings()
        #: The notification sink.
        self.notifier = notifier if notifier is not None else Notifier()
        #: The note repository.
        self.repository = NoteRepository(store, self.notifier)
        #: The attachment registry.
        self.registry = AttachmentRegistry(self.settings)
        #: The marker/attachment synchronizer.
        self.sync = ConsistencySynchronizer(self.registry)
        #: Undo/redo for the active note.
        self.history = HistoryStack(
            self.repository, self.notifier, settings=self.settings
        )
        #: Snapshots of the whole collection.
        self.versions = VersionStore(
            store, self.repository, self.notifier, self.settings, clock=clock
        )
        #: Export to JSON.
        self.exporter = NoteExporter(self.repository)
        #: Import from JSON.
        self.importer = NoteImporter(self.repository, self.versions)
        #: Storage usage monitor, if an estimator was given.
        self.storage = (
            StorageMonitor(estimator, self.notifier, self.settings)
            if estimator is not None
            else None
        )
        #: Debounced per-note saves.
        self.autosave = AutosaveService(
            self._autosave, int_setting(self.settings, "autosave/debounce_ms")
        )
        #: Open history windows; an edit records a state only when it opens one.
        self._history_window = Debouncer(
            lambda _note_id: None, int_setting(self.settings, "history/debounce_ms")
        )

    def _notify(self, text: str, severity: Severity = Severity.SUCCESS) -> None:
        self.notifier.notify(text, severity)

    def _active(self) -> Note | None:
        note = self.repository.active_note
        if note is None:
            self._notify("No note is selected", Severity.INFO)
        return note

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def open(self) -> list[Note]:
        """
        Load the collection and report storage usage.

        Returns:
            The notes, newest first

        """
        notes = self.repository.load()
        if self.storage is not None:
            self.storage.report()
        return notes

    def create_note(self) -> Note:
        """
        Create a note and make it the active note.

        Returns:
            The new note

        """
        note = self.repository.create()
        self.select_note(note.id)
        return note

    def select_note(self, note_id: int) -> Note:
        """
        Make a note the active note.

        A pending autosave of the previously active note is written first,
        and the undo/redo history starts over.

        Args:
            note_id: The note ID

        Returns:
            The note

        Raises:
            DoesNotExist: If there is no such note

        """
        previous = self.repository.active_note_id
        if previous is not None and previous != note_id:
            self.autosave.save_now(previous)
            self._history_window.cancel(previous)
        note = self.repository.select(note_id)
        if previous != note_id:
            self.history.clear()
        return note

    def edit(self, title: str | None = None, content: str | None = None) -> bool:
        """
        Apply a user edit to the active note.

        The state before the edit is recorded for undo when the edit opens a
        new history window; edits inside an open window are coalesced.  An
        autosave is scheduled.

        Keyword Args:
            title: The new title, if it changed
            content: The new content, if it changed

        Returns:
            True if the edit was applied

        """
        note = self._active()
        if note is None:
            return False
        with self.repository.locked(note.id):
            if self._history_window.trigger(note.id):
                self.history.record_state(note)
            if title is not None:
                note.title = title
            if content is not None:
                note.content = content
        self.autosave.trigger(note.id)
        return True

    def _autosave(self, note_id: int) -> None:
        self.save_note(note_id, quiet=True)

    def save_note(self, note_id: int, *, quiet: bool = False) -> bool:
        """
        Save a note the way an explicit save does.

        An empty note (no title, content or attachments) is discarded instead.
        A blank title becomes :data:`DEFAULT_TITLE`, and the display date is
        refreshed.  After a successful save an automatic snapshot is offered
        to the version store.

        Args:
            note_id: The note ID

        Keyword Args:
            quiet: Do not send a success notice

        Returns:
            True if the note was written

        """
        with self.repository.locked(note_id):
            note = self.repository.get(note_id)
            if note is None:
                return False
            if note.is_empty:
                was_active = self.repository.active_note_id == note_id
                self.repository.delete(note_id)
                if was_active:
                    self.history.clear()
                logger.info(f"Discarded empty note {note_id}")
                return False
            note.title = note.title.strip() or DEFAULT_TITLE
            note.display_date = format_display_date()
            saved = self.repository.save(note_id)
        if saved:
            self.versions.create_snapshot()
            if not quiet:
                self._notify("Saved")
        return saved

    def save_current(self) -> bool:
        """
        Save the active note now, cancelling its pending autosave.

        Returns:
            True if the note was written

        """
        note = self._active()
        if note is None:
            return False
        self.autosave.cancel(note.id)
        return self.save_note(note.id)

    def delete_note(self, note_id: int | None = None) -> bool:
        """
        Delete a note and its attachments.

        A snapshot of the collection is stored first.

        Keyword Args:
            note_id: The note ID; the active note if None

        Returns:
            True if the note was deleted

        """
        if note_id is None:
            note_id = self.repository.active_note_id
        if note_id is None or self.repository.get(note_id) is None:
            return False
        self.versions.create_snapshot(PRE_DELETE_DESCRIPTION)
        self.autosave.cancel(note_id)
        self._history_window.cancel(note_id)
        was_active = self.repository.active_note_id == note_id
        if not self.repository.delete(note_id):
            return False
        if was_active:
            self.history.clear()
        self._notify("Deleted")
        return True

    def search(self, keyword: str) -> list[Note]:
        """
        Find notes whose title or content contains ``keyword``.

        Args:
            keyword: Text to look for

        Returns:
            The matching notes, newest first

        """
        return self.repository.search(keyword)

    def render(self) -> list[Segment]:
        """
        Render the active note's content for display.

        Returns:
            The segments (empty if no note is selected)

        """
        note = self.repository.active_note
        if note is None:
            return []
        return self.sync.render(note)

    # ------------------------------------------------------------------
    # Attachments and markers
    # ------------------------------------------------------------------

    def attach(  # noqa: PLR0913
        self,
        kind: MediaKind,
        data: bytes,
        name: str,
        media_type: str = "application/octet-stream",
        text_anchor: int | None = None,
        *,
        confirmed: bool = False,
    ) -> Attachment | None:
        """
        Attach an upload to the active note and insert its marker.

        Args:
            kind: The attachment kind
            data: The uploaded bytes
            name: The uploaded filename

        Keyword Args:
            media_type: The MIME type of the upload
            text_anchor: Cursor offset to insert the marker at
            confirmed: Whether the user confirmed adding despite high
                storage usage

        Returns:
            The new attachment, or None if it was rejected

        Raises:
            StorageQuotaWarning: If storage usage is high and the user has
                not confirmed; call again with ``confirmed=True`` to proceed

        """
        note = self._active()
        if note is None:
            return None
        if self.storage is not None:
            self.storage.check(kind, confirmed=confirmed)
        with self.repository.locked(note.id):
            try:
                attachment = self.sync.attach(
                    note,
                    kind,
                    encode_payload(data, media_type),
                    name,
                    size_bytes=len(data),
                    text_anchor=text_anchor,
                )
            except AttachmentRejected as e:
                self._notify(str(e), Severity.WARNING)
                return None
            self.repository.save(note.id)
        self._notify(f"Added {kind} {attachment.tag_name}")
        if self.storage is not None:
            self.storage.report()
        return attachment

    def delete_attachment(self, kind: MediaKind, index: int) -> bool:
        """
        Delete an attachment of the active note along with its markers.

        Args:
            kind: The attachment kind
            index: The attachment index

        Returns:
            True if the attachment was deleted

        """
        note = self._active()
        if note is None:
            return False
        with self.repository.locked(note.id):
            try:
                attachment = self.sync.delete_attachment(note, kind, index)
            except RegistryOutOfSync as e:
                logger.warning(str(e))
                self._notify(f"That {kind} no longer exists", Severity.WARNING)
                return False
            self.repository.save(note.id)
        self._notify(f"Deleted {kind} {attachment.tag_name}")
        return True

    def rename_attachment(self, kind: MediaKind, index: int, new_tag_name: str) -> bool:
        """
        Rename an attachment of the active note and rewrite its markers.

        Args:
            kind: The attachment kind
            index: The attachment index
            new_tag_name: The new tag name

        Returns:
            True if the attachment was renamed

        """
        note = self._active()
        if note is None:
            return False
        with self.repository.locked(note.id):
            try:
                renamed = self.sync.rename_attachment(note, kind, index, new_tag_name)
            except DuplicateTag:
                self._notify("That tag name is already in use", Severity.WARNING)
                return False
            except (ValueError, RegistryOutOfSync) as e:
                self._notify(str(e), Severity.WARNING)
                return False
            if not renamed:
                return False
            self.repository.save(note.id)
        self._notify("Renamed the tag (the file name is unchanged)")
        return True

    def sort_markers(self) -> bool:
        """
        Group and sort the markers of the active note at the end of its content.

        Returns:
            True if there were markers to sort

        """
        note = self._active()
        if note is None:
            return False
        with self.repository.locked(note.id):
            if not self.sync.sort_markers(note):
                self._notify("There are no markers to sort", Severity.INFO)
                return False
            self.repository.save(note.id)
        self._notify("Sorted the markers")
        return True

    def clear_markers(self) -> int:
        """
        Remove every marker from the active note; attachments are kept.

        Returns:
            The number of markers removed

        """
        note = self._active()
        if note is None:
            return 0
        with self.repository.locked(note.id):
            count = self.sync.clear_markers(note)
            if count:
                self.repository.save(note.id)
        self._notify(f"Cleared {count} markers")
        return count

    def cleanup_broken_markers(self) -> int:
        """
        Remove the markers of the active note that have no attachment.

        Returns:
            The number of markers removed

        """
        note = self._active()
        if note is None:
            return 0
        with self.repository.locked(note.id):
            count = self.sync.cleanup_broken_markers(note)
            if count:
                self.repository.save(note.id)
        self._notify(f"Removed {count} broken markers")
        return count

    def check_markers(self) -> SyncReport | None:
        """
        Check the markers of the active note against its attachments.

        Returns:
            The report, or None if no note is selected

        """
        note = self._active()
        if note is None:
            return None
        with self.repository.locked(note.id):
            report = self.sync.check(note)
        if report.orphan_markers:
            names = ", ".join(token.text for token in report.orphan_markers)
            self._notify(
                f"Found {len(report.orphan_markers)} broken markers: {names}",
                Severity.WARNING,
            )
        else:
            self._notify(
                f"All markers are fine: {report.marker_count} markers, "
                f"{report.image_count} images, {report.file_count} files"
            )
        return report

    def delete_orphan_attachments(self, *, confirmed: bool = False) -> list[Attachment]:
        """
        Delete the attachments of the active note that no marker refers to.

        Keyword Args:
            confirmed: Whether the user confirmed the deletion

        Returns:
            The deleted attachments

        """
        note = self._active()
        if note is None:
            return []
        with self.repository.locked(note.id):
            deleted = self.sync.delete_orphan_attachments(note, confirmed=confirmed)
            if deleted:
                self.repository.save(note.id)
        if deleted:
            self._notify(f"Deleted {len(deleted)} unreferenced attachments")
        return deleted

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        """
        Undo the last recorded edit of the active note.

        Returns:
            True if a state was restored

        """
        self._history_window.cancel_all()
        return self.history.undo()

    def redo(self) -> bool:
        """
        Redo the last undone edit of the active note.

        Returns:
            True if a state was re-applied

        """
        self._history_window.cancel_all()
        return self.history.redo()

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def restore_snapshot(self, snapshot_id: int) -> bool:
        """
        Replace the collection with a snapshot.

        Pending autosaves are dropped and the history starts over.

        Args:
            snapshot_id: The snapshot ID

        Returns:
            True if the collection was replaced

        """
        self.autosave.cancel()
        self._history_window.cancel_all()
        restored = self.versions.restore_snapshot(snapshot_id)
        if restored:
            self.history.clear()
        return restored

    def import_json(self, filename: str | Path) -> int:
        """
        Replace the collection with the notes of an export file.

        Args:
            filename: The export file

        Returns:
            The number of imported notes

        Raises:
            ImportValidationFailure: If the file is malformed; nothing changes

        """
        notes = self.importer.parse_document(self.importer.load_json(filename))
        self.autosave.cancel()
        self._history_window.cancel_all()
        self.importer.replace(notes)
        self.history.clear()
        self._notify(f"Imported {len(notes)} notes")
        return len(notes)

    def shutdown(self) -> None:
        """Write the pending autosave of the active note and stop all timers."""
        active = self.repository.active_note_id
        if active is not None:
            self.autosave.save_now(active)
        self.autosave.cancel()
        self._history_window.cancel_all()
