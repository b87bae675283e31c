"""The in-memory note collection and its persistence."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from memoapp.exc import DoesNotExist, PersistenceFailure
from memoapp.models.note import Note
from memoapp.services.notifications import Severity
from memoapp.services.registry import deduplicate_tags
from memoapp.storage.base import MEMOS

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from memoapp.services.notifications import Notifier
    from memoapp.storage.base import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectionStatistics:
    """Counts across the whole note collection."""

    note_count: int
    image_count: int
    file_count: int
    #: Total size of all attachments.
    attachment_bytes: int

    @property
    def average_bytes_per_note(self) -> float:
        """Average attachment size per note."""
        if not self.note_count:
            return 0.0
        return self.attachment_bytes / self.note_count


class NoteRepository:
    """
    Owns the live note collection and the active-note selection.

    Every other component reads and changes notes through the repository.
    Notes are kept newest first.  Writes go straight to the store, so there
    is nothing to flush on shutdown.

    A failed store call is logged and reported through the notifier.  The
    in-memory change it belonged to is kept, so memory and store may differ
    until the next successful save.

    Args:
        store: The document store

    Keyword Args:
        notifier: Where to report failures

    """

    def __init__(self, store: KeyValueStore, notifier: Notifier | None = None) -> None:
        #: The document store.
        self.store = store
        #: The notification sink.
        self.notifier = notifier
        #: The notes, newest first.
        self.notes: list[Note] = []
        #: The ID of the note being edited, if any.
        self.active_note_id: int | None = None
        #: Guards :attr:`notes` and :attr:`_locks`.
        self._lock = threading.RLock()
        #: Per-note locks, by note ID.
        self._locks: dict[int, threading.RLock] = {}

    def __len__(self) -> int:
        return len(self.notes)

    def __iter__(self) -> Iterator[Note]:
        return iter(list(self.notes))

    def _report(self, error: PersistenceFailure, text: str) -> None:
        logger.error(f"{text}: {error!s}")
        if self.notifier is not None:
            self.notifier.notify(text, Severity.ERROR)

    def _sort(self) -> None:
        self.notes.sort(key=lambda note: (note.created_at, note.id), reverse=True)

    @contextmanager
    def locked(self, note_id: int) -> Iterator[None]:
        """
        Hold the lock of one note.

        Every change to a note's attachments and content happens while its
        lock is held.  The lock is re-entrant.

        Args:
            note_id: The note ID

        """
        with self._lock:
            lock = self._locks.setdefault(note_id, threading.RLock())
        with lock:
            yield

    def load(self) -> list[Note]:
        """
        Load every note from the store, replacing the in-memory collection.

        Documents that cannot be read as notes are skipped with a warning.

        Returns:
            The notes, newest first (empty if the store fails)

        """
        try:
            documents = self.store.list(MEMOS)
        except PersistenceFailure as e:
            self._report(e, "Could not load notes")
            documents = []
        notes = []
        for document in documents:
            try:
                note = Note.from_json(document)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable note {document.get('id')!r}: {e!s}")
                continue
            deduplicate_tags(note)
            notes.append(note)
        with self._lock:
            self.notes = notes
            self._sort()
            if self.active_note_id is not None and self.get(self.active_note_id) is None:
                self.active_note_id = None
        logger.info(f"Loaded {len(notes)} notes")
        return list(self.notes)

    def get(self, note_id: int) -> Note | None:
        """
        Get a note by ID.

        Args:
            note_id: The note ID

        Returns:
            The note, or None

        """
        with self._lock:
            for note in self.notes:
                if note.id == note_id:
                    return note
        return None

    def require(self, note_id: int) -> Note:
        """
        Get a note by ID.

        Args:
            note_id: The note ID

        Returns:
            The note

        Raises:
            DoesNotExist: If there is no such note

        """
        note = self.get(note_id)
        if note is None:
            raise DoesNotExist("Note", note_id)
        return note

    def create(self, title: str = "", content: str = "") -> Note:
        """
        Create a note at the top of the collection and store it.

        Keyword Args:
            title: The title
            content: The content

        Returns:
            The new note

        """
        note = Note(title=title, content=content)
        with self._lock:
            self.notes.insert(0, note)
        self.save(note.id)
        return note

    def add(self, note: Note) -> Note:
        """
        Add an existing note object to the collection and store it.

        Args:
            note: The note

        Returns:
            The note

        """
        with self._lock:
            self.notes.append(note)
            self._sort()
        self.save(note.id)
        return note

    def save(self, note_id: int) -> bool:
        """
        Write a note to the store.

        The note is read at the moment the write is issued, under the note's
        lock, so a later save never writes older state than an earlier one.

        Args:
            note_id: The note ID

        Returns:
            True if the note was written

        """
        with self.locked(note_id):
            note = self.get(note_id)
            if note is None:
                return False
            try:
                self.store.put(MEMOS, note.id, note.to_json())
            except PersistenceFailure as e:
                self._report(e, "Could not save note")
                return False
        return True

    def save_all(self) -> bool:
        """
        Write every note to the store.

        Returns:
            True if every note was written

        """
        return all([self.save(note.id) for note in self])  # noqa: C419

    def add_tag(self, note_id: int, tag: str) -> bool:
        """
        File a note under ``tag`` and store it.

        Args:
            note_id: The note ID
            tag: The tag; surrounding whitespace is ignored

        Returns:
            True if the tag was new to the note and the note was written

        Raises:
            DoesNotExist: If there is no such note

        """
        tag = tag.strip()
        with self.locked(note_id):
            note = self.require(note_id)
            if not tag or tag in note.tags:
                return False
            note.tags.append(tag)
            if not self.save(note_id):
                return False
        logger.info(f"Tagged note {note_id} with {tag!r}")
        if self.notifier is not None:
            self.notifier.notify(f"Added tag {tag}", Severity.SUCCESS)
        return True

    def tags(self) -> list[str]:
        """
        Get every tag used in the collection.

        Returns:
            The tags, sorted, without repeats

        """
        return sorted({tag for note in self for tag in note.tags})

    def delete(self, note_id: int) -> bool:
        """
        Delete a note and its attachments.

        Clears the selection if the note was the active one.

        Args:
            note_id: The note ID

        Returns:
            True if the note existed and the store accepted the deletion

        """
        with self.locked(note_id):
            note = self.get(note_id)
            if note is None:
                return False
            with self._lock:
                self.notes.remove(note)
                if self.active_note_id == note_id:
                    self.active_note_id = None
            try:
                self.store.delete(MEMOS, note_id)
            except PersistenceFailure as e:
                self._report(e, "Could not delete note")
                return False
        with self._lock:
            self._locks.pop(note_id, None)
        logger.info(f"Deleted note {note_id}")
        return True

    def replace_all(self, notes: Iterable[Note]) -> bool:
        """
        Replace the whole collection, in memory and in the store.

        The selection is cleared.

        Args:
            notes: The new notes

        Returns:
            True if the store now holds exactly the new notes

        """
        with self._lock:
            self.notes = list(notes)
            self._sort()
            self.active_note_id = None
            self._locks.clear()
            documents = [note.to_json() for note in self.notes]
        try:
            self.store.clear(MEMOS)
            for document in documents:
                self.store.put(MEMOS, document["id"], document)
        except PersistenceFailure as e:
            self._report(e, "Could not replace notes")
            return False
        logger.info(f"Replaced the collection with {len(documents)} notes")
        return True

    def search(self, keyword: str) -> list[Note]:
        """
        Find notes whose title or content contains ``keyword``.

        Matching ignores case.  An empty keyword matches every note.

        Args:
            keyword: Text to look for

        Returns:
            The matching notes, newest first

        """
        needle = keyword.strip().casefold()
        return [
            note
            for note in self
            if needle in note.title.casefold() or needle in note.content.casefold()
        ]

    def select(self, note_id: int) -> Note:
        """
        Make a note the active note.

        Args:
            note_id: The note ID

        Returns:
            The note

        Raises:
            DoesNotExist: If there is no such note

        """
        note = self.require(note_id)
        self.active_note_id = note_id
        return note

    def clear_selection(self) -> None:
        """Leave no note active."""
        self.active_note_id = None

    @property
    def active_note(self) -> Note | None:
        """The note being edited, if any."""
        if self.active_note_id is None:
            return None
        return self.get(self.active_note_id)

    def statistics(self) -> CollectionStatistics:
        """
        Count notes and attachments across the collection.

        Returns:
            The statistics

        """
        notes = list(self)
        attachments = [item for note in notes for item in (*note.images, *note.files)]
        return CollectionStatistics(
            note_count=len(notes),
            image_count=sum(len(note.images) for note in notes),
            file_count=sum(len(note.files) for note in notes),
            attachment_bytes=sum(item.size_bytes for item in attachments),
        )
