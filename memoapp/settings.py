"""Application settings for Memo Keeper."""

import threading
from pathlib import Path
from typing import Final

from PySide6.QtCore import QSettings

#: The organization name used to scope settings.
ORGANIZATION_NAME: Final[str] = "Memo Keeper"
#: The application name used to scope settings.
APPLICATION_NAME: Final[str] = "memoapp"

#: Settings keys and their defaults.
DEFAULTS: Final[dict[str, int]] = {
    "versions/keep_count": 20,
    "versions/min_interval_minutes": 5,
    "history/max_states": 50,
    "history/debounce_ms": 1000,
    "autosave/debounce_ms": 1000,
    "attachments/max_image_mb": 5,
    "attachments/max_file_mb": 10,
    "attachments/max_files_per_note": 10,
    "storage/quota_mb": 512,
    "storage/warn_percent": 80,
    "storage/image_confirm_percent": 90,
    "storage/file_confirm_percent": 85,
}

#: Serializes access to settings objects shared between threads.
SETTINGS_LOCK: Final = threading.RLock()


def get_settings(path: Path | None = None) -> QSettings:
    """
    Get the settings store.

    Args:
        path: Optional INI file to keep settings in. If None, the platform's
            native settings location for Memo Keeper is used.

    Returns:
        A :class:`QSettings` instance

    """
    if path is not None:
        return QSettings(str(path), QSettings.Format.IniFormat)
    return QSettings(ORGANIZATION_NAME, APPLICATION_NAME)


def int_setting(settings: QSettings, key: str) -> int:
    """
    Read an integer setting, falling back to its default.

    Autosave timers read settings off the main thread, so reads hold
    :data:`SETTINGS_LOCK`.

    Args:
        settings: The settings store
        key: A key of :data:`DEFAULTS`

    Returns:
        The configured value

    """
    default = DEFAULTS[key]
    with SETTINGS_LOCK:
        value = settings.value(key, default, type=int)
    return int(value) if value is not None else default
