"""SQLAlchemy database setup for Memo Keeper."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, cast

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

if TYPE_CHECKING:
    import sqlite3

#: The default database name.
DEFAULT_DB_NAME: Final[str] = "memos.db"
#: The folder name used under the platform's application data directory.
APP_DIR_NAME: Final[str] = "Memo Keeper"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


def get_data_dir() -> Path:
    """
    Get the directory Memo Keeper keeps its data in.

    - On Windows, ``AppData/Local/Memo Keeper``.
    - On macOS, ``~/Library/Application Support/Memo Keeper``.
    - On Linux, ``~/.config/Memo Keeper``.
    - If the platform is not supported, raise a ValueError.

    Returns:
        Path to the data directory (created if missing)

    """
    if sys.platform not in ["win32", "darwin", "linux"]:
        msg = f"Unsupported platform: {sys.platform}"
        raise ValueError(msg)
    if sys.platform == "win32":
        data_dir = Path.home() / "AppData" / "Local" / APP_DIR_NAME
    elif sys.platform == "darwin":
        data_dir = Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    else:
        data_dir = Path.home() / ".config" / APP_DIR_NAME
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    """
    Get the path to the default database file.

    Returns:
        Path to the database file

    """
    return get_data_dir() / DEFAULT_DB_NAME


def create_engine_with_path(db_path: Path | None = None) -> Engine:
    """
    Create SQLAlchemy engine with proper SQLite settings.

    Args:
        db_path: Optional path to database file. If None, uses default path.

    Returns:
        SQLAlchemy engine

    """
    if db_path is None:
        db_path = get_db_path()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    db_path.touch(exist_ok=True)

    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},  # Timers save from other threads
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(
        dbapi_conn: sqlite3.Connection | Any, _connection_record: Any
    ) -> None:
        """Set SQLite pragmas on connection."""
        cursor = cast("sqlite3.Cursor", dbapi_conn.cursor())
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    """
    Create the tables if needed and return a session factory bound to ``engine``.

    Args:
        engine: SQLAlchemy engine

    Returns:
        Session factory

    """
    # Register the record tables on Base.metadata
    from memoapp.models import records  # noqa: F401, PLC0415

    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
