"""Memo Keeper: notes with inline attachment markers and version history."""

__version__ = "1.1.0"
