"""
Local recording history stored in SQLite.

Keeps the audio of every dictation together with its final transcript and
the settings it was produced with, so recordings can be replayed,
re-processed or deleted later.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional, Union
import logging
import time

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS recordings (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  timestamp INTEGER NOT NULL,
  duration REAL,
  mode TEXT NOT NULL,
  provider TEXT NOT NULL,
  tone TEXT,
  text TEXT NOT NULL,
  audio BLOB NOT NULL,
  mime_type TEXT NOT NULL
)
"""

INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_recordings_timestamp ON recordings (timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_recordings_mode ON recordings (mode)",
    "CREATE INDEX IF NOT EXISTS idx_recordings_provider ON recordings (provider)",
)

UPDATABLE_COLUMNS = ("duration", "mode", "provider", "tone", "text", "audio", "mime_type")


class RecordingNotFoundError(KeyError):
    """Raised when updating a recording that does not exist."""
    pass


@dataclass
class Recording:
    """A stored dictation."""
    id: int
    timestamp: int  # milliseconds since the epoch
    mode: str
    provider: str
    text: str
    audio: bytes
    mime_type: str = "audio/wav"
    duration: Optional[float] = None
    tone: Optional[str] = None

    @classmethod
    def from_row(cls, row: aiosqlite.Row) -> "Recording":
        names = {f.name for f in fields(cls)}
        return cls(**{key: row[key] for key in row.keys() if key in names})


class RecordingStore:
    """Async CRUD store for recordings."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self._schema_ready = False

    async def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self.db_path)) as db:
            await db.execute(SCHEMA)
            for statement in INDEXES:
                await db.execute(statement)
            await db.commit()
        self._schema_ready = True

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        await self._ensure_schema()
        async with aiosqlite.connect(str(self.db_path)) as db:
            db.row_factory = aiosqlite.Row
            yield db

    async def save(
        self,
        audio: bytes,
        text: str,
        mode: str,
        provider: str,
        tone: Optional[str] = None,
        duration: Optional[float] = None,
        mime_type: str = "audio/wav"
    ) -> int:
        """
        Save a new recording.

        Returns:
            The id of the new recording.
        """
        timestamp = int(time.time() * 1000)
        async with self._connection() as db:
            cursor = await db.execute(
                """
                INSERT INTO recordings (timestamp, duration, mode, provider, tone, text, audio, mime_type)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (timestamp, duration, mode, provider, tone, text, audio, mime_type),
            )
            await db.commit()
            recording_id = cursor.lastrowid
        logger.info(f"Recording {recording_id} saved ({len(audio)} bytes, provider={provider})")
        return recording_id

    async def list(self) -> List[Recording]:
        """All recordings, newest first."""
        async with self._connection() as db:
            cursor = await db.execute("SELECT * FROM recordings ORDER BY timestamp DESC, id DESC")
            rows = await cursor.fetchall()
        return [Recording.from_row(row) for row in rows]

    async def get(self, recording_id: int) -> Optional[Recording]:
        async with self._connection() as db:
            cursor = await db.execute("SELECT * FROM recordings WHERE id = ?", (recording_id,))
            row = await cursor.fetchone()
        return Recording.from_row(row) if row else None

    async def get_audio(self, recording_id: int) -> Optional[bytes]:
        recording = await self.get(recording_id)
        return recording.audio if recording else None

    async def update(self, recording_id: int, **changes: Any) -> None:
        """
        Update fields of an existing recording (e.g. after re-transcription).

        Raises:
            RecordingNotFoundError: If no recording has this id.
            ValueError: If a field cannot be updated.
        """
        unknown = set(changes) - set(UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        async with self._connection() as db:
            cursor = await db.execute("SELECT id FROM recordings WHERE id = ?", (recording_id,))
            if await cursor.fetchone() is None:
                raise RecordingNotFoundError(f"Recording with id {recording_id} not found")
            if changes:
                assignments = ", ".join(f"{column} = ?" for column in changes)
                await db.execute(
                    f"UPDATE recordings SET {assignments} WHERE id = ?",
                    (*changes.values(), recording_id),
                )
                await db.commit()

    async def delete(self, recording_id: int) -> None:
        async with self._connection() as db:
            await db.execute("DELETE FROM recordings WHERE id = ?", (recording_id,))
            await db.commit()

    async def clear_all(self) -> None:
        async with self._connection() as db:
            await db.execute("DELETE FROM recordings")
            await db.commit()
        logger.info("All recordings cleared")
