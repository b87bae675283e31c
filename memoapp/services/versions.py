"""Version store: snapshots of the whole note collection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final, cast

from PySide6.QtCore import QObject, Signal

from memoapp.exc import DoesNotExist, PersistenceFailure
from memoapp.models.snapshot import Snapshot
from memoapp.services.notifications import Severity
from memoapp.services.registry import deduplicate_tags
from memoapp.settings import get_settings, int_setting
from memoapp.storage.base import VERSIONS
from memoapp.utils import now_ms

if TYPE_CHECKING:
    from collections.abc import Callable

    from PySide6.QtCore import QSettings

    from memoapp.services.notifications import Notifier
    from memoapp.services.repository import NoteRepository
    from memoapp.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

#: Description of routine snapshots.  Only these are subject to the guards.
AUTO_DESCRIPTION: Final[str] = "Automatic backup"
#: Description of the snapshot taken before a restore.
PRE_RESTORE_DESCRIPTION: Final[str] = "Before restore"
#: Description of the snapshot taken before a note is deleted.
PRE_DELETE_DESCRIPTION: Final[str] = "Before deleting note"
#: Description of the snapshot taken before an import.
PRE_IMPORT_DESCRIPTION: Final[str] = "Before import"


class VersionStore(QObject):
    """
    Service for snapshots of the whole note collection.

    Handles creating snapshots, managing retention, listing and restoring.
    Snapshots are never modified once stored.

    Args:
        store: The document store
        repository: The note repository holding the live collection

    Keyword Args:
        notifier: Where to send user-visible notices
        settings: Settings store. If None, the application settings are used.
        clock: Returns the current time in milliseconds since the epoch

    """

    #: Emitted whenever snapshots are added, deleted or restored.
    snapshots_changed = Signal()

    def __init__(  # noqa: PLR0913
        self,
        store: KeyValueStore,
        repository: NoteRepository,
        notifier: Notifier | None = None,
        settings: QSettings | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__()
        #: The document store.
        self.store = store
        #: The note repository.
        self.repository = repository
        #: The notification sink.
        self.notifier = notifier
        #: The settings store.
        self.settings = settings if settings is not None else get_settings()
        #: The clock.
        self.clock = clock

    def _notify(self, text: str, severity: Severity = Severity.SUCCESS) -> None:
        if self.notifier is not None:
            self.notifier.notify(text, severity)

    def get_keep_count(self) -> int:
        """
        Get the number of snapshots to keep from settings.

        Returns:
            Number of snapshots to keep (default: 20)

        """
        return int_setting(self.settings, "versions/keep_count")

    def get_min_interval_minutes(self) -> int:
        """
        Get the minimum time between automatic snapshots from settings.

        Returns:
            Interval in minutes (default: 5)

        """
        return int_setting(self.settings, "versions/min_interval_minutes")

    def _list(self) -> list[Snapshot]:
        return [Snapshot.from_json(document) for document in self.store.list(VERSIONS)]

    def should_snapshot(self, snapshot: Snapshot, latest: Snapshot | None) -> bool:
        """
        Check whether a captured snapshot is worth storing.

        Snapshots with an explicit description always are.  An automatic
        snapshot is skipped when the newest stored snapshot is younger than
        the minimum interval, or holds exactly the same notes.

        Args:
            snapshot: The captured, unsaved snapshot
            latest: The newest stored snapshot, if any

        Returns:
            True if the snapshot should be stored

        """
        if snapshot.description != AUTO_DESCRIPTION or latest is None:
            return True
        interval_ms = self.get_min_interval_minutes() * 60 * 1000
        if snapshot.timestamp - latest.timestamp < interval_ms:
            logger.debug("Skipping snapshot: the last one is too recent")
            return False
        if snapshot.fingerprint == latest.fingerprint:
            logger.debug("Skipping snapshot: nothing changed")
            return False
        return True

    def create_snapshot(self, description: str = AUTO_DESCRIPTION) -> bool:
        """
        Store a deep copy of the whole note collection.

        After a snapshot is stored, snapshots beyond the retention limit are
        deleted.  An empty collection is never snapshotted.

        Keyword Args:
            description: What triggered the snapshot

        Returns:
            True if a snapshot was stored

        """
        notes = list(self.repository)
        if not notes:
            logger.debug("Skipping snapshot: there are no notes")
            return False
        snapshot = Snapshot.capture(notes, description, self.clock())
        try:
            snapshots = self._list()
            if not self.should_snapshot(snapshot, snapshots[0] if snapshots else None):
                return False
            snapshot_id = self.store.add(VERSIONS, snapshot.to_json())
        except PersistenceFailure as e:
            logger.error(f"Could not create snapshot: {e!s}")
            self._notify("Could not create a snapshot", Severity.ERROR)
            return False
        logger.info(
            f"Created snapshot {snapshot_id} ({description}): "
            f"{snapshot.note_count} notes, {snapshot.image_count} images"
        )
        # Pruning is non-critical; the snapshot is already stored
        self.prune()
        self.snapshots_changed.emit()
        return True

    def list_snapshots(self) -> list[Snapshot]:
        """
        Get every stored snapshot.

        Returns:
            The snapshots, newest first (empty if the store fails)

        """
        try:
            return self._list()
        except PersistenceFailure as e:
            logger.error(f"Could not list snapshots: {e!s}")
            self._notify("Could not load the version history", Severity.ERROR)
            return []

    def get_snapshot(self, snapshot_id: int) -> Snapshot:
        """
        Get one snapshot.

        Args:
            snapshot_id: The snapshot ID

        Returns:
            The snapshot

        Raises:
            DoesNotExist: If there is no such snapshot
            PersistenceFailure: If the store fails

        """
        document = self.store.get(VERSIONS, snapshot_id)
        if document is None:
            raise DoesNotExist("Snapshot", snapshot_id)
        return Snapshot.from_json(document)

    def restore_snapshot(self, snapshot_id: int) -> bool:
        """
        Replace the live collection with the notes of a snapshot.

        A "before restore" snapshot of the current state is stored first, so
        the restore itself can be undone.  The snapshot being restored is not
        modified, and the active-note selection is cleared.

        Args:
            snapshot_id: The snapshot ID

        Returns:
            True if the collection was replaced and stored

        """
        try:
            snapshot = self.get_snapshot(snapshot_id)
        except DoesNotExist:
            self._notify("That version does not exist", Severity.WARNING)
            return False
        except PersistenceFailure as e:
            logger.error(f"Could not read snapshot {snapshot_id}: {e!s}")
            self._notify("Could not restore the version", Severity.ERROR)
            return False

        notes = snapshot.materialize()
        for note in notes:
            deduplicate_tags(note)
        self.create_snapshot(PRE_RESTORE_DESCRIPTION)
        if not self.repository.replace_all(notes):
            return False
        logger.info(f"Restored snapshot {snapshot_id} ({snapshot.note_count} notes)")
        self._notify("Restored the selected version")
        self.snapshots_changed.emit()
        return True

    def delete_snapshot(self, snapshot_id: int) -> bool:
        """
        Delete one snapshot.

        Args:
            snapshot_id: The snapshot ID

        Returns:
            True if the snapshot was deleted

        """
        try:
            deleted = self.store.delete(VERSIONS, snapshot_id)
        except PersistenceFailure as e:
            logger.error(f"Could not delete snapshot {snapshot_id}: {e!s}")
            self._notify("Could not delete the version", Severity.ERROR)
            return False
        if deleted:
            self.snapshots_changed.emit()
        return deleted

    def prune(self, keep_count: int | None = None) -> int:
        """
        Delete all but the newest snapshots.

        Keyword Args:
            keep_count: Number of snapshots to keep; the setting if None

        Returns:
            The number of snapshots deleted

        """
        if keep_count is None:
            keep_count = self.get_keep_count()
        try:
            snapshots = self._list()
            doomed = snapshots[keep_count:]
            for snapshot in doomed:
                self.store.delete(VERSIONS, cast("int", snapshot.id))
        except PersistenceFailure as e:
            logger.error(f"Could not prune snapshots: {e!s}")
            return 0
        if doomed:
            logger.info(
                f"Pruned {len(doomed)} old snapshots, keeping the newest {keep_count}"
            )
        return len(doomed)
