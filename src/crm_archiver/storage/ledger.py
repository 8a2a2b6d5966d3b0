"""SQLite-backed record of archived messages."""

from __future__ import annotations

import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType

from ..core.config import StorageSettings
from ..core.interfaces import ArchiveLedger

LOGGER = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS archived_messages (
    store_id TEXT NOT NULL,
    folder_id TEXT NOT NULL,
    message_key TEXT NOT NULL,
    crm_id TEXT NOT NULL,
    archived_at TEXT NOT NULL,
    PRIMARY KEY (store_id, folder_id, message_key)
);
CREATE INDEX IF NOT EXISTS idx_archived_messages_crm_id
    ON archived_messages(crm_id);
"""


class SqliteArchiveLedger(ArchiveLedger):
    """Persist which messages have been archived and under which CRM id."""

    def __init__(self, settings: StorageSettings) -> None:
        """Open the database and create the schema if needed."""
        db_path = Path(settings.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        with self._connection:
            self._connection.executescript(_SCHEMA)

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SqliteArchiveLedger:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    # ArchiveLedger API -------------------------------------------------------
    def lookup(self, store_id: str, folder_id: str, message_key: str) -> str | None:
        """Return the CRM id recorded for a message, if any."""
        row = self._connection.execute(
            """
            SELECT crm_id FROM archived_messages
            WHERE store_id = ? AND folder_id = ? AND message_key = ?
            """,
            (store_id, folder_id, message_key),
        ).fetchone()
        return None if row is None else str(row["crm_id"])

    def record(
        self, store_id: str, folder_id: str, message_key: str, crm_id: str
    ) -> None:
        """Remember that a message was archived as ``crm_id``."""
        LOGGER.debug("Recording %s/%s as CRM email %s", folder_id, message_key, crm_id)
        with self._connection:
            self._connection.execute(
                """
                INSERT INTO archived_messages (
                    store_id, folder_id, message_key, crm_id, archived_at
                ) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(store_id, folder_id, message_key) DO UPDATE SET
                    crm_id=excluded.crm_id,
                    archived_at=excluded.archived_at
                """,
                (
                    store_id,
                    folder_id,
                    message_key,
                    crm_id,
                    datetime.now(tz=UTC).isoformat(),
                ),
            )

    def count(self) -> int:
        """Return how many messages are recorded."""
        row = self._connection.execute(
            "SELECT COUNT(*) AS total FROM archived_messages"
        ).fetchone()
        return int(row["total"])

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        self._connection.close()


__all__ = ["SqliteArchiveLedger"]
