"""
Local preference store.

Provides a simple SQLite-based persistence layer for the user's favorite and
visited places and the selected category filters.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Iterable, Optional, Set

logger = logging.getLogger(__name__)

FAVORITES_KEY = "favoritePlaceIDs"
VISITED_KEY = "visitedPlaceIDs"
SELECTED_CATEGORIES_KEY = "selectedCategories"


class PreferencesStore:
    """SQLite key/value store; every value is a JSON-encoded list.

    By default the DB is placed under the package-local `backend/data/`
    directory so processes started from different working directories share it.
    """

    DEFAULT_DB = Path(__file__).resolve().parents[1] / "data" / "preferences.sqlite"

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize the database schema."""
        conn = self._get_connection()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def _read_list(self, key: str) -> list:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT value FROM preferences WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return []
        try:
            value = json.loads(row["value"])
        except ValueError:
            logger.warning("Ignoring undecodable preference %s", key)
            return []
        if not isinstance(value, list):
            logger.warning("Ignoring preference %s: expected a list", key)
            return []
        return value

    def _write_list(self, key: str, values: list) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)",
                (key, json.dumps(values)),
            )
            conn.commit()
        finally:
            conn.close()

    def _read_ids(self, key: str) -> Set[int]:
        ids = set()
        for value in self._read_list(key):
            if isinstance(value, int) and not isinstance(value, bool):
                ids.add(value)
            else:
                logger.warning("Ignoring malformed id %r in %s", value, key)
        return ids

    def _write_ids(self, key: str, ids: Iterable[int]) -> None:
        self._write_list(key, sorted(set(ids)))

    # Favorites

    def get_favorites(self) -> Set[int]:
        return self._read_ids(FAVORITES_KEY)

    def save_favorites(self, ids: Iterable[int]) -> None:
        self._write_ids(FAVORITES_KEY, ids)

    def add_favorite(self, place_id: int) -> None:
        self.save_favorites(self.get_favorites() | {place_id})

    def remove_favorite(self, place_id: int) -> None:
        self.save_favorites(self.get_favorites() - {place_id})

    # Visited

    def get_visited(self) -> Set[int]:
        return self._read_ids(VISITED_KEY)

    def save_visited(self, ids: Iterable[int]) -> None:
        self._write_ids(VISITED_KEY, ids)

    def add_visited(self, place_id: int) -> None:
        self.save_visited(self.get_visited() | {place_id})

    def remove_visited(self, place_id: int) -> None:
        self.save_visited(self.get_visited() - {place_id})

    # Selected categories

    def get_selected_categories(self) -> Set[str]:
        return {v for v in self._read_list(SELECTED_CATEGORIES_KEY) if isinstance(v, str)}

    def save_selected_categories(self, categories: Iterable[str]) -> None:
        self._write_list(SELECTED_CATEGORIES_KEY, sorted(set(categories)))
