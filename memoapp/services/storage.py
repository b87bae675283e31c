"""Storage usage estimation and quota warnings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from memoapp.exc import StorageQuotaWarning
from memoapp.models.attachment import MediaKind
from memoapp.services.notifications import Severity
from memoapp.settings import get_settings, int_setting
from memoapp.utils import format_file_size

if TYPE_CHECKING:
    from PySide6.QtCore import QSettings

    from memoapp.services.notifications import Notifier

logger = logging.getLogger(__name__)


class QuotaEstimator(Protocol):
    """Anything that can say how much storage is used and available."""

    def estimate(self) -> tuple[int, int]:
        """
        Estimate storage usage.

        Returns:
            (used bytes, total bytes)

        """
        ...


class DatabaseQuotaEstimator:
    """
    Estimates usage as the size of the SQLite database against a fixed quota.

    The write-ahead log and shared-memory files count towards usage.

    Args:
        db_path: Path to the database file
        quota_bytes: The quota

    """

    def __init__(self, db_path: Path, quota_bytes: int) -> None:
        #: Path to the database file.
        self.db_path = Path(db_path)
        #: The quota in bytes.
        self.quota_bytes = quota_bytes

    def estimate(self) -> tuple[int, int]:
        used = 0
        for suffix in ("", "-wal", "-shm"):
            path = self.db_path.with_name(self.db_path.name + suffix)
            if path.exists():
                used += path.stat().st_size
        return used, self.quota_bytes


@dataclass(frozen=True)
class StorageUsage:
    """Storage usage at one point in time."""

    #: Bytes used.
    used: int
    #: Bytes available in total.
    total: int

    @property
    def percentage(self) -> float:
        """Usage as a percentage of the total."""
        if self.total <= 0:
            return 0.0
        return self.used / self.total * 100

    def __str__(self) -> str:
        return (
            f"{format_file_size(self.used)} / {format_file_size(self.total)} "
            f"({self.percentage:.1f}%)"
        )


class StorageMonitor:
    """
    Watches storage usage.

    High usage never blocks anything: :meth:`report` sends a warning and
    :meth:`check` asks for confirmation by raising
    :class:`~memoapp.exc.StorageQuotaWarning`.

    Args:
        estimator: The quota estimator

    Keyword Args:
        notifier: Where to send warnings
        settings: Settings store for the thresholds. If None, the application
            settings are used.

    """

    def __init__(
        self,
        estimator: QuotaEstimator,
        notifier: Notifier | None = None,
        settings: QSettings | None = None,
    ) -> None:
        #: The quota estimator.
        self.estimator = estimator
        #: The notification sink.
        self.notifier = notifier
        #: The settings store.
        self.settings = settings if settings is not None else get_settings()

    def usage(self) -> StorageUsage | None:
        """
        Get the current storage usage.

        Returns:
            The usage, or None if it cannot be estimated

        """
        try:
            used, total = self.estimator.estimate()
        except OSError as e:
            logger.warning(f"Could not estimate storage usage: {e!s}")
            return None
        return StorageUsage(used=used, total=total)

    def report(self) -> StorageUsage | None:
        """
        Log the current usage and warn when it is above the warning threshold.

        Returns:
            The usage, or None if it cannot be estimated

        """
        usage = self.usage()
        if usage is None:
            return None
        logger.info(f"Storage usage: {usage!s}")
        if usage.percentage > int_setting(self.settings, "storage/warn_percent"):
            text = (
                f"Storage usage has reached {usage.percentage:.1f}%; "
                "consider exporting a backup"
            )
            if self.notifier is not None:
                self.notifier.notify(text, Severity.WARNING)
            else:
                logger.warning(text)
        return usage

    def confirm_threshold(self, kind: MediaKind) -> int:
        """
        Get the usage percentage above which adding ``kind`` needs confirmation.

        Returns:
            The threshold (default: 90 for images, 85 for files)

        """
        key = (
            "storage/image_confirm_percent"
            if kind is MediaKind.IMAGE
            else "storage/file_confirm_percent"
        )
        return int_setting(self.settings, key)

    def check(self, kind: MediaKind, *, confirmed: bool = False) -> None:
        """
        Check whether adding an attachment of ``kind`` needs confirmation.

        Args:
            kind: The attachment kind about to be added

        Keyword Args:
            confirmed: Whether the user already confirmed

        Raises:
            StorageQuotaWarning: If usage is above the threshold for ``kind``
                and the user has not confirmed

        """
        if confirmed:
            return
        usage = self.usage()
        if usage is None:
            return
        if usage.percentage > self.confirm_threshold(kind):
            raise StorageQuotaWarning(usage.used, usage.total, usage.percentage)
