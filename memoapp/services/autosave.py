"""Debounced timers for autosave and history recording."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Coalesces rapid triggers into one call after a quiet period.

    Each key has at most one pending timer.  Triggering a key again cancels
    its pending timer and starts a new one.

    Args:
        callback: Function called with the key once the key goes quiet
        debounce_ms: Quiet period in milliseconds

    """

    def __init__(
        self, callback: Callable[[Hashable], None], debounce_ms: int = 1000
    ) -> None:
        #: The function to call when a key goes quiet.
        self.callback = callback
        #: The quiet period in seconds.
        self.delay = debounce_ms / 1000.0
        #: The pending timers, by key.
        self._timers: dict[Hashable, threading.Timer] = {}
        #: The lock guarding :attr:`_timers`.
        self._lock = threading.Lock()

    def trigger(self, key: Hashable) -> bool:
        """
        Arm (or re-arm) the timer for ``key``.

        Args:
            key: The key

        Returns:
            True if this trigger started a new quiet window, False if it
            replaced a timer that was already pending

        """
        with self._lock:
            previous = self._timers.pop(key, None)
            if previous is not None:
                previous.cancel()
            timer = threading.Timer(self.delay, self._fire, args=(key,))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()
        return previous is None

    def _fire(self, key: Hashable) -> None:
        with self._lock:
            timer = self._timers.get(key)
            if timer is None or timer is not threading.current_thread():
                # Superseded or cancelled
                return
            del self._timers[key]
        self.callback(key)

    def pending(self, key: Hashable) -> bool:
        """
        Check whether ``key`` has a timer waiting.

        Args:
            key: The key

        Returns:
            True if a call for ``key`` is pending

        """
        with self._lock:
            return key in self._timers

    def flush(self, key: Hashable) -> bool:
        """
        Cancel the pending timer for ``key`` and call the callback now.

        Args:
            key: The key

        Returns:
            True if a call was pending and has been made

        """
        if not self.cancel(key):
            return False
        self.callback(key)
        return True

    def cancel(self, key: Hashable) -> bool:
        """
        Cancel the pending timer for ``key`` without calling the callback.

        Args:
            key: The key

        Returns:
            True if a timer was pending

        """
        with self._lock:
            timer = self._timers.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> None:
        """Cancel every pending timer."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()


class AutosaveService:
    """
    Service for debounced per-note autosave.

    At most one autosave timer exists per note.  The save callback receives
    the note ID and must read the note's *current* state, so a save always
    writes the latest edits no matter when its timer was armed.

    Args:
        save_callback: Function to call with a note ID when saving
        debounce_ms: Debounce delay in milliseconds

    """

    def __init__(
        self, save_callback: Callable[[int], object], debounce_ms: int = 1000
    ) -> None:
        #: The function to call when saving.
        self.save_callback = save_callback
        #: The per-note timers.
        self._debouncer = Debouncer(self._save, debounce_ms)

    @property
    def debounce_ms(self) -> int:
        """The debounce delay in milliseconds."""
        return int(self._debouncer.delay * 1000)

    def trigger(self, note_id: int) -> None:
        """
        Trigger autosave for a note (will be debounced).

        Args:
            note_id: The note ID

        """
        self._debouncer.trigger(note_id)

    def pending(self, note_id: int) -> bool:
        """
        Check whether a note has an autosave waiting.

        Args:
            note_id: The note ID

        Returns:
            True if an autosave is pending

        """
        return self._debouncer.pending(note_id)

    def _save(self, note_id: Hashable) -> None:
        """
        Execute the save callback.

        This is called by the timer once the debounce delay has elapsed, or by
        :meth:`save_now`.  Errors from the callback are logged; the pending
        save is dropped either way.
        """
        try:
            self.save_callback(note_id)  # type: ignore[arg-type]
        except Exception:
            logger.exception(f"Autosave of note {note_id} failed")

    def save_now(self, note_id: int) -> bool:
        """
        Force an immediate save of a note, bypassing the debounce.

        Args:
            note_id: The note ID

        Returns:
            True if an autosave was pending and has now run

        """
        return self._debouncer.flush(note_id)

    def cancel(self, note_id: int | None = None) -> None:
        """
        Cancel pending autosaves without saving.

        Keyword Args:
            note_id: The note to cancel; every note if None

        """
        if note_id is None:
            self._debouncer.cancel_all()
        else:
            self._debouncer.cancel(note_id)
