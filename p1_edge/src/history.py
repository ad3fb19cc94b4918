"""
Append-only per-sensor history log backed by async SQLite.

Each sensor accessory owns one independent log file, named after its
stable accessory id (``history_consumption_{id}.db`` for the import sensor,
``history_return_{id}.db`` for the export sensor). Entries are never
updated or deleted.

Entry contract:
- time: Unix seconds of the reading.
- power: Instantaneous power in watts (the true value, never floored).
- energy: Cumulative energy in kWh, export sensor only (NULL otherwise).

Operations:
- add_entry(entry): INSERT one entry.
- entries(n): SELECT up to n newest entries, oldest first.
- count(): SELECT COUNT(*) of stored entries.
- close(): Close the underlying database connection.

Supports async context manager protocol for clean resource management.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import aiosqlite
from pydantic import BaseModel, ConfigDict

from p1_edge.src.models import SensorIdentity, SensorKind

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS history (
    rowid INTEGER PRIMARY KEY AUTOINCREMENT,
    time INTEGER NOT NULL,
    power REAL NOT NULL,
    energy REAL
);
"""

_INSERT_SQL = """\
INSERT INTO history (time, power, energy) VALUES (?, ?, ?);
"""

_TAIL_SQL = """\
SELECT time, power, energy
FROM (SELECT rowid, time, power, energy FROM history ORDER BY rowid DESC LIMIT ?)
ORDER BY rowid ASC;
"""

_COUNT_SQL = "SELECT COUNT(*) FROM history;"

_FILENAME_PREFIXES: dict[SensorKind, str] = {
    SensorKind.IMPORT: "history_consumption",
    SensorKind.EXPORT: "history_return",
}


class HistoryEntry(BaseModel):
    """One history log entry. ``energy`` is in kWh when present."""

    model_config = ConfigDict(frozen=True)

    time: int
    power: float
    energy: float | None = None


class HistoryRecorder(Protocol):
    """Append-only sink for one sensor's history."""

    async def add_entry(self, entry: HistoryEntry) -> None: ...


def history_filename(identity: SensorIdentity) -> str:
    """Return the log filename for *identity*."""
    return f"{_FILENAME_PREFIXES[identity.kind]}_{identity.stable_id}.db"


class HistoryLog:
    """Append-only history log for one sensor, backed by a SQLite file.

    Uses WAL journal mode so an external reader can inspect the log while
    the daemon is appending.

    Args:
        path: Filesystem path for the SQLite database file.
              Accepts ``str`` or ``pathlib.Path``.

    Usage::

        async with HistoryLog(path="/data/history_return_x.db") as log:
            await log.add_entry(HistoryEntry(time=1700000000, power=850.0))
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._db: aiosqlite.Connection | None = None

    @property
    def path(self) -> Path:
        return self._path

    async def open(self) -> None:
        """Open the SQLite connection and initialize the schema."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._path))
        await self._db.execute("PRAGMA journal_mode=WAL;")
        await self._db.execute(_CREATE_TABLE_SQL)
        await self._db.commit()

    async def close(self) -> None:
        """Close the underlying SQLite connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> HistoryLog:
        """Enter async context manager: open the database."""
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager: close the database."""
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def add_entry(self, entry: HistoryEntry) -> None:
        """Append *entry* to the log."""
        assert self._db is not None, "HistoryLog not opened. Call open() or use async with."
        await self._db.execute(_INSERT_SQL, (entry.time, entry.power, entry.energy))
        await self._db.commit()

    async def entries(self, n: int) -> list[HistoryEntry]:
        """Return up to *n* most recent entries, oldest first.

        Args:
            n: Maximum number of entries to return.

        Returns:
            List of :class:`HistoryEntry`. Empty when the log is empty
            or n < 1.
        """
        assert self._db is not None, "HistoryLog not opened. Call open() or use async with."
        if n < 1:
            return []
        cursor = await self._db.execute(_TAIL_SQL, (n,))
        rows = await cursor.fetchall()
        return [HistoryEntry(time=row[0], power=row[1], energy=row[2]) for row in rows]

    async def count(self) -> int:
        """Return the number of stored entries."""
        assert self._db is not None, "HistoryLog not opened. Call open() or use async with."
        cursor = await self._db.execute(_COUNT_SQL)
        row = await cursor.fetchone()
        return row[0]
