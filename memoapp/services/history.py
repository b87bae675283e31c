"""Undo/redo of note title and content edits."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from memoapp.services.notifications import Severity
from memoapp.settings import get_settings, int_setting
from memoapp.utils import now_ms

if TYPE_CHECKING:
    from PySide6.QtCore import QSettings

    from memoapp.models.note import Note
    from memoapp.services.notifications import Notifier
    from memoapp.services.repository import NoteRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryState:
    """The title and content of a note at one point in time."""

    #: The note ID.
    note_id: int
    #: The title.
    title: str
    #: The content.
    content: str
    #: When the state was captured, in milliseconds since the epoch.
    timestamp: int = field(default_factory=now_ms)

    @classmethod
    def of(cls, note: Note) -> HistoryState:
        """
        Capture the current state of a note.

        Args:
            note: The note

        Returns:
            The state

        """
        return cls(note_id=note.id, title=note.title, content=note.content)


class HistoryStack:
    """
    Linear undo/redo over the title and content of the active note.

    Attachments are not covered.  The stacks are in memory only.

    Args:
        repository: The note repository

    Keyword Args:
        notifier: Where to send user-visible notices
        settings: Settings store for the capacity. If None, the application
            settings are used.
        max_states: Capacity of each stack; overrides the setting

    """

    def __init__(
        self,
        repository: NoteRepository,
        notifier: Notifier | None = None,
        settings: QSettings | None = None,
        max_states: int | None = None,
    ) -> None:
        #: The note repository.
        self.repository = repository
        #: The notification sink.
        self.notifier = notifier
        if max_states is None:
            max_states = int_setting(
                settings if settings is not None else get_settings(),
                "history/max_states",
            )
        #: The maximum number of states to keep in each stack.
        self.max_states = max_states
        #: The undo stack.
        self.undo_stack: list[HistoryState] = []
        #: The redo stack.
        self.redo_stack: list[HistoryState] = []
        #: Whether an undo or redo is currently being applied.
        self._executing = False

    def _notify(self, text: str, severity: Severity = Severity.SUCCESS) -> None:
        if self.notifier is not None:
            self.notifier.notify(text, severity)

    def _push(self, stack: list[HistoryState], state: HistoryState) -> None:
        stack.append(state)
        # Limit stack size
        if len(stack) > self.max_states:
            stack.pop(0)

    def record_state(self, note: Note | None = None) -> bool:
        """
        Push the current state of a note onto the undo stack.

        Does nothing while an undo or redo is being applied.  Recording a new
        state clears the redo stack.

        Keyword Args:
            note: The note; the active note if None

        Returns:
            True if a state was recorded

        """
        if self._executing:
            return False
        if note is None:
            note = self.repository.active_note
        if note is None:
            return False
        self._push(self.undo_stack, HistoryState.of(note))
        # Clear redo stack when a new edit starts
        self.redo_stack.clear()
        return True

    def _apply(
        self,
        source: list[HistoryState],
        target: list[HistoryState],
        empty_text: str,
        done_text: str,
    ) -> bool:
        if self._executing:
            return False
        if not source:
            self._notify(empty_text, Severity.INFO)
            return False
        note = self.repository.get(source[-1].note_id)
        if note is None:
            logger.warning(
                f"History refers to missing note {source[-1].note_id}; clearing"
            )
            self.clear()
            self._notify(empty_text, Severity.INFO)
            return False

        self._executing = True
        try:
            with self.repository.locked(note.id):
                self._push(target, HistoryState.of(note))
                state = source.pop()
                note.title = state.title
                note.content = state.content
            self.repository.save(note.id)
        finally:
            self._executing = False
        self._notify(done_text)
        return True

    def undo(self) -> bool:
        """
        Restore the most recently recorded state.

        The current state moves to the redo stack and the note is saved.  With
        an empty undo stack nothing changes and an informational notice is
        sent.

        Returns:
            True if a state was restored

        """
        return self._apply(
            self.undo_stack, self.redo_stack, "Nothing to undo", "Undone"
        )

    def redo(self) -> bool:
        """
        Re-apply the most recently undone state.

        Returns:
            True if a state was re-applied

        """
        return self._apply(
            self.redo_stack, self.undo_stack, "Nothing to redo", "Redone"
        )

    def can_undo(self) -> bool:
        """
        Check if undo is possible.

        Returns:
            True if undo is available

        """
        return len(self.undo_stack) > 0

    def can_redo(self) -> bool:
        """
        Check if redo is possible.

        Returns:
            True if redo is available

        """
        return len(self.redo_stack) > 0

    def clear(self) -> None:
        """Clear both stacks."""
        self.undo_stack.clear()
        self.redo_stack.clear()
