"""Services package initialization."""

from memoapp.services import markers
from memoapp.services.autosave import AutosaveService, Debouncer
from memoapp.services.history import HistoryStack, HistoryState
from memoapp.services.import_export import NoteExporter, NoteImporter
from memoapp.services.notifications import Notifier, Severity
from memoapp.services.registry import AttachmentRegistry
from memoapp.services.repository import CollectionStatistics, NoteRepository
from memoapp.services.storage import (
    DatabaseQuotaEstimator,
    QuotaEstimator,
    StorageMonitor,
    StorageUsage,
)
from memoapp.services.sync import (
    ConsistencySynchronizer,
    OrphanAttachment,
    ResolvedMarker,
    SyncReport,
)
from memoapp.services.versions import VersionStore
from memoapp.services.workspace import Workspace

__all__ = [
    "AttachmentRegistry",
    "AutosaveService",
    "CollectionStatistics",
    "ConsistencySynchronizer",
    "DatabaseQuotaEstimator",
    "Debouncer",
    "HistoryStack",
    "HistoryState",
    "NoteExporter",
    "NoteImporter",
    "NoteRepository",
    "Notifier",
    "OrphanAttachment",
    "QuotaEstimator",
    "ResolvedMarker",
    "Severity",
    "StorageMonitor",
    "StorageUsage",
    "SyncReport",
    "VersionStore",
    "Workspace",
    "markers",
]
