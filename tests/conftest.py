"""Shared pytest fixtures and test helpers for Memo Keeper tests."""

import pytest
from PySide6.QtCore import QCoreApplication

from memoapp.models.attachment import Attachment, MediaKind
from memoapp.models.note import Note
from memoapp.services.notifications import Notifier
from memoapp.services.registry import AttachmentRegistry
from memoapp.services.repository import NoteRepository
from memoapp.services.sync import ConsistencySynchronizer
from memoapp.services.versions import VersionStore
from memoapp.services.workspace import Workspace
from memoapp.settings import get_settings
from memoapp.storage.sql import SQLStore
from tests.fakes import FakeClock, MessageRecorder


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """Create a QCoreApplication instance for signals and settings."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


@pytest.fixture
def settings(tmp_path):
    """Create INI-backed settings in a temporary directory."""
    return get_settings(tmp_path / "settings.ini")


@pytest.fixture
def store(tmp_path):
    """Create a store on a temporary SQLite database."""
    sql_store = SQLStore(tmp_path / "test.db")
    yield sql_store
    sql_store.close()


@pytest.fixture
def recorder():
    """Create a slot that records notifications."""
    return MessageRecorder()


@pytest.fixture
def notifier(recorder):
    """Create a notifier connected to the recorder."""
    sink = Notifier()
    sink.message.connect(recorder)
    return sink


@pytest.fixture
def clock():
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def repository(store, notifier):
    """Create a note repository on the temporary store."""
    return NoteRepository(store, notifier)


@pytest.fixture
def registry(settings):
    """Create an attachment registry using temporary settings."""
    return AttachmentRegistry(settings)


@pytest.fixture
def synchronizer(registry):
    """Create a synchronizer around the registry."""
    return ConsistencySynchronizer(registry)


@pytest.fixture
def versions(store, repository, notifier, settings, clock):
    """Create a version store with a controllable clock."""
    return VersionStore(store, repository, notifier, settings, clock=clock)


@pytest.fixture
def workspace(store, notifier, settings, clock):
    """Create a workspace with short debounce windows."""
    settings.setValue("autosave/debounce_ms", 50)
    settings.setValue("history/debounce_ms", 50)
    ws = Workspace(store, notifier=notifier, settings=settings, clock=clock)
    yield ws
    ws.shutdown()


# Test helper functions (not fixtures, but available for import)


def create_test_attachment(
    tag_name="cat.png", kind=MediaKind.IMAGE, original_name=None, size_bytes=100
):
    """
    Helper to create an attachment with defaults.

    Args:
        tag_name: Tag name
        kind: Attachment kind
        original_name: Original name (defaults to the tag name)
        size_bytes: Size in bytes

    Returns:
        Created Attachment instance
    """
    return Attachment(
        payload="data:application/octet-stream;base64,AAAA",
        original_name=original_name if original_name is not None else tag_name,
        tag_name=tag_name,
        media_kind=kind,
        size_bytes=size_bytes,
    )


def create_test_note(title="Test note", content="", images=(), files=()):
    """
    Helper to create a note with attachments.

    Args:
        title: Title
        content: Content, markers included
        images: Image tag names
        files: File tag names

    Returns:
        Created Note instance (not stored)
    """
    return Note(
        title=title,
        content=content,
        images=[create_test_attachment(name, MediaKind.IMAGE) for name in images],
        files=[create_test_attachment(name, MediaKind.FILE) for name in files],
    )
