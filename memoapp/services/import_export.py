"""Note collection import/export service for Memo Keeper."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from memoapp.exc import ImportValidationFailure
from memoapp.models.note import Note
from memoapp.services.registry import deduplicate_tags
from memoapp.services.versions import PRE_IMPORT_DESCRIPTION
from memoapp.utils import format_filename_date

if TYPE_CHECKING:
    from memoapp.services.repository import NoteRepository
    from memoapp.services.versions import VersionStore

#: Version written into every export document.
EXPORT_VERSION: Final[str] = "1.0"


class NoteExporter:
    """Exports the note collection to JSON format."""

    def __init__(self, repository: NoteRepository) -> None:
        """
        Initialize exporter.

        Args:
            repository: The note repository

        """
        self.repository = repository

    @staticmethod
    def default_filename() -> str:
        """
        Get the default export filename for the current time.

        Returns:
            A name such as ``memos_export_20240301_0905.json``

        """
        return f"memos_export_{format_filename_date()}.json"

    def export_document(self) -> dict[str, Any]:
        """
        Build the export document.

        Returns:
            ``{"version", "exportDate", "memos"}``

        """
        return {
            "version": EXPORT_VERSION,
            "exportDate": datetime.now(UTC).isoformat(),
            "memos": [note.to_json() for note in self.repository],
        }

    def export_json(self, filename: str | Path | None = None) -> Path:
        """
        Export the collection as JSON to a file.

        Args:
            filename: Filename to export to; :meth:`default_filename` if None

        Returns:
            The path written

        Raises:
            ValueError: If the export fails, with a descriptive message

        """
        path = Path(filename) if filename is not None else Path(self.default_filename())
        if path.suffix != ".json":
            path = path.with_name(path.name + ".json")
        document = self.export_document()
        try:
            with path.open("w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
        except (OSError, PermissionError) as e:
            msg = f"Failed to write export file:\n{e!s}"
            raise ValueError(msg) from e
        except (TypeError, ValueError) as e:
            msg = f"Failed to serialize notes:\n{e!s}"
            raise ValueError(msg) from e
        return path


class NoteImporter:
    """
    Replaces the note collection with the contents of an export document.

    An import is all or nothing: the document is validated completely before
    anything changes, and then replaces the collection wholesale (there is no
    merge).

    Args:
        repository: The note repository

    Keyword Args:
        versions: If given, a snapshot of the current collection is stored
            before it is replaced

    """

    def __init__(
        self, repository: NoteRepository, versions: VersionStore | None = None
    ) -> None:
        #: The note repository.
        self.repository = repository
        #: The version store.
        self.versions = versions

    def parse_document(self, data: Any) -> list[Note]:
        """
        Validate an export document and build its notes.

        Args:
            data: The decoded JSON document

        Returns:
            The notes

        Raises:
            ImportValidationFailure: If the document is malformed

        """
        if not isinstance(data, dict):
            msg = "the document is not a JSON object"
            raise ImportValidationFailure(msg)
        memos = data.get("memos")
        if memos is None:
            msg = "the document has no 'memos'"
            raise ImportValidationFailure(msg)
        if not isinstance(memos, list):
            msg = "'memos' is not a list"
            raise ImportValidationFailure(msg)
        notes = []
        seen: set[int] = set()
        for position, item in enumerate(memos):
            try:
                note = Note.from_json(item)
            except (TypeError, ValueError) as e:
                msg = f"note {position + 1} is malformed: {e!s}"
                raise ImportValidationFailure(msg) from e
            deduplicate_tags(note)
            if note.id in seen:
                msg = f"note {position + 1} repeats ID {note.id}"
                raise ImportValidationFailure(msg)
            seen.add(note.id)
            notes.append(note)
        return notes

    def replace(self, notes: list[Note]) -> bool:
        """
        Replace the collection with already validated notes.

        A "before import" snapshot of the current collection is stored first
        when a version store is available.

        Args:
            notes: The notes

        Returns:
            True if the store now holds exactly the new notes

        """
        if self.versions is not None:
            self.versions.create_snapshot(PRE_IMPORT_DESCRIPTION)
        return self.repository.replace_all(notes)

    def import_document(self, data: Any) -> int:
        """
        Import an export document.

        Args:
            data: The decoded JSON document

        Returns:
            The number of imported notes

        Raises:
            ImportValidationFailure: If the document is malformed; nothing is
                changed

        """
        notes = self.parse_document(data)
        self.replace(notes)
        return len(notes)

    @staticmethod
    def load_json(filename: str | Path) -> Any:
        """
        Read and decode an export file.

        Args:
            filename: Filename to read

        Returns:
            The decoded JSON document

        Raises:
            ImportValidationFailure: If the file is missing or is not JSON

        """
        path = Path(filename)
        if not path.exists():
            msg = f"file {filename} not found"
            raise ImportValidationFailure(msg)
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            msg = f"failed to load data from file: {e!s}"
            raise ImportValidationFailure(msg) from e

    def import_json(self, filename: str | Path) -> int:
        """
        Import an export file.

        Args:
            filename: Filename to import from

        Returns:
            The number of imported notes

        Raises:
            ImportValidationFailure: If the file cannot be read or is malformed

        """
        return self.import_document(self.load_json(filename))
