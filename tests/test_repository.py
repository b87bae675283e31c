"""Unit tests for NoteRepository."""

import pytest

from memoapp.exc import DoesNotExist
from memoapp.models.note import Note
from memoapp.services.notifications import Severity
from memoapp.services.repository import NoteRepository
from memoapp.storage.base import MEMOS
from tests.conftest import create_test_attachment, create_test_note
from tests.fakes import FailingStore


class TestNoteRepository:
    """Test cases for NoteRepository."""

    def test_create_persists(self, repository, store):
        """Test a created note is stored right away and put first."""
        older = repository.create("older")
        note = repository.create("title", "content")
        assert repository.notes[0] is note
        assert repository.notes[1] is older
        assert store.get(MEMOS, note.id)["title"] == "title"

    def test_load_round_trip(self, store, notifier):
        """Test notes written by one repository load in another."""
        first = NoteRepository(store, notifier)
        note = create_test_note("with files", "[📷cat.png]", images=["cat.png"])
        first.add(note)
        first.create("plain")

        second = NoteRepository(store, notifier)
        loaded = second.load()
        assert len(loaded) == 2
        copy = second.require(note.id)
        assert copy.content == "[📷cat.png]"
        assert copy.images[0].tag_name == "cat.png"

    def test_load_skips_unreadable_documents(self, store, notifier):
        """Test a document that is not a note is skipped."""
        store.put(MEMOS, 5, {"id": 5, "title": "ok"})
        store.put(MEMOS, 6, {"id": 6, "images": "not a list"})
        repository = NoteRepository(store, notifier)
        assert [note.id for note in repository.load()] == [5]

    def test_load_renames_duplicate_tags(self, store, notifier):
        """Test stored notes with a shared file tag load with distinct tags."""
        store.put(
            MEMOS,
            5,
            {
                "id": 5,
                "content": "[📎a.txt] [📎a.txt]",
                "files": [{"tagName": "a.txt"}, {"tagName": "a.txt"}],
            },
        )
        note = NoteRepository(store, notifier).load()[0]
        assert [file.tag_name for file in note.files] == ["a.txt", "a (2).txt"]
        assert note.content == "[📎a.txt] [📎a (2).txt]"

    def test_require_missing(self, repository):
        """Test require() raises DoesNotExist for an unknown ID."""
        assert repository.get(123) is None
        with pytest.raises(DoesNotExist):
            repository.require(123)

    def test_select_and_active_note(self, repository):
        """Test selecting a note makes it the active note."""
        note = repository.create("t")
        assert repository.active_note is None
        assert repository.select(note.id) is note
        assert repository.active_note is note
        repository.clear_selection()
        assert repository.active_note is None

    def test_delete_clears_selection(self, repository, store):
        """Test deleting the active note removes it and clears the selection."""
        note = repository.create("t")
        repository.select(note.id)
        assert repository.delete(note.id)
        assert repository.active_note_id is None
        assert repository.get(note.id) is None
        assert store.get(MEMOS, note.id) is None
        assert not repository.delete(note.id)

    def test_replace_all(self, repository, store):
        """Test replace_all() swaps the collection in memory and in the store."""
        old = repository.create("old")
        repository.select(old.id)
        new = Note(title="new")
        assert repository.replace_all([new])
        assert [note.id for note in repository] == [new.id]
        assert repository.active_note_id is None
        assert [doc["id"] for doc in store.list(MEMOS)] == [new.id]

    def test_search(self, repository):
        """Test search matches title or content ignoring case."""
        a = repository.create("Shopping", "milk")
        b = repository.create("Work", "Buy MILK later")
        repository.create("Other", "nothing")
        assert {note.id for note in repository.search("milk")} == {a.id, b.id}
        assert [note.id for note in repository.search("shop")] == [a.id]
        assert len(repository.search("")) == 3

    def test_add_tag(self, repository, store, recorder):
        """Test a tag is added once, stored and announced."""
        note = repository.create("t")
        assert repository.add_tag(note.id, "  work ")
        assert not repository.add_tag(note.id, "work")
        assert not repository.add_tag(note.id, "   ")
        assert store.get(MEMOS, note.id)["tags"] == ["work"]
        assert recorder.messages == [("Added tag work", Severity.SUCCESS)]

    def test_add_tag_missing_note(self, repository):
        """Test tagging an unknown note raises DoesNotExist."""
        with pytest.raises(DoesNotExist):
            repository.add_tag(42, "x")

    def test_tags_across_collection(self, repository):
        """Test tags() lists each tag once, sorted."""
        a = repository.create("a")
        b = repository.create("b")
        repository.add_tag(a.id, "work")
        repository.add_tag(b.id, "home")
        repository.add_tag(b.id, "work")
        assert repository.tags() == ["home", "work"]

    def test_statistics(self, repository):
        """Test statistics count notes, attachments and bytes."""
        note = repository.create("t")
        note.images.append(create_test_attachment("a", size_bytes=300))
        note.files.append(create_test_attachment("b", size_bytes=100))
        repository.create("u")
        stats = repository.statistics()
        assert stats.note_count == 2
        assert stats.image_count == 1
        assert stats.file_count == 1
        assert stats.attachment_bytes == 400
        assert stats.average_bytes_per_note == 200.0

    def test_save_failure_is_reported(self, store, notifier, recorder):
        """Test a failed save keeps the note in memory and reports an error."""
        repository = NoteRepository(FailingStore(store, {"put"}), notifier)
        note = repository.create("t")
        assert repository.get(note.id) is note
        assert not repository.save(note.id)
        assert recorder.messages[-1] == ("Could not save note", Severity.ERROR)

    def test_replace_failure_is_reported(self, store, notifier, recorder):
        """Test a failed replace reports an error and returns False."""
        repository = NoteRepository(FailingStore(store, {"clear"}), notifier)
        assert not repository.replace_all([Note(title="x")])
        assert recorder.severities == [Severity.ERROR]

    def test_load_failure_gives_empty_collection(self, store, notifier, recorder):
        """Test a failed load leaves an empty collection and reports an error."""
        repository = NoteRepository(FailingStore(store, {"list"}), notifier)
        assert repository.load() == []
        assert recorder.texts == ["Could not load notes"]

    def test_locked_is_reentrant(self, repository):
        """Test a note's lock can be taken twice by the same thread."""
        note = repository.create("t")
        with repository.locked(note.id), repository.locked(note.id):
            assert repository.save(note.id)
