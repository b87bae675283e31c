"""Data models for Memo Keeper."""

from memoapp.models.attachment import Attachment, MediaKind
from memoapp.models.note import Note
from memoapp.models.records import MemoRecord, VersionRecord
from memoapp.models.snapshot import Snapshot

__all__ = ["Attachment", "MediaKind", "MemoRecord", "Note", "Snapshot", "VersionRecord"]
