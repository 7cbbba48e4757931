"""Read/write contract for persisted transcripts, with an SQLite implementation."""

import logging
import sqlite3
from abc import ABC, abstractmethod
from typing import List, Optional

from .exceptions import StorageError
from .models import TranscriptRecord

logger = logging.getLogger(__name__)

class TranscriptStorage(ABC):
    """Abstract base class for transcript stores."""

    @abstractmethod
    def insert_transcript(self, record: TranscriptRecord) -> None:
        """
        Persists a transcript row.

        Raises:
            StorageError: If the row cannot be written.
        """
        pass

    @abstractmethod
    def delete_transcripts_by_video_id(self, video_id: str) -> None:
        """
        Removes every transcript row belonging to a video.

        Raises:
            StorageError: If the rows cannot be deleted.
        """
        pass

    @abstractmethod
    def get_transcript_by_video_id(self, video_id: str) -> Optional[TranscriptRecord]:
        pass

    @abstractmethod
    def search_transcripts(self, query: str) -> List[TranscriptRecord]:
        pass


class SQLiteTranscriptStorage(TranscriptStorage):
    """Stores transcripts in an SQLite `transcripts` table."""

    def __init__(self, database_path: str):
        self.database_path = database_path
        try:
            self.connection = sqlite3.connect(database_path)
            self.connection.execute(
                """CREATE TABLE IF NOT EXISTS transcripts (
                    id TEXT PRIMARY KEY,
                    video_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    segments TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )"""
            )
            self.connection.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Could not open transcript database {database_path}: {e}") from e
        logger.debug(f"Opened transcript database: {database_path}")

    @staticmethod
    def _to_record(row) -> TranscriptRecord:
        return TranscriptRecord(id=row[0], video_id=row[1], content=row[2], segments=row[3], created_at=row[4])

    def insert_transcript(self, record: TranscriptRecord) -> None:
        try:
            with self.connection:
                self.connection.execute(
                    "INSERT INTO transcripts (id, video_id, content, segments, created_at) VALUES (?, ?, ?, ?, ?)",
                    (record.id, record.video_id, record.content, record.segments, record.created_at),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Could not insert transcript for video {record.video_id}: {e}") from e

    def delete_transcripts_by_video_id(self, video_id: str) -> None:
        try:
            with self.connection:
                self.connection.execute("DELETE FROM transcripts WHERE video_id = ?", (video_id,))
        except sqlite3.Error as e:
            raise StorageError(f"Could not delete transcripts for video {video_id}: {e}") from e

    def get_transcript_by_video_id(self, video_id: str) -> Optional[TranscriptRecord]:
        try:
            row = self.connection.execute(
                "SELECT id, video_id, content, segments, created_at FROM transcripts WHERE video_id = ?",
                (video_id,),
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Could not read transcript for video {video_id}: {e}") from e
        return self._to_record(row) if row else None

    def search_transcripts(self, query: str) -> List[TranscriptRecord]:
        try:
            rows = self.connection.execute(
                "SELECT id, video_id, content, segments, created_at FROM transcripts WHERE content LIKE ?",
                (f"%{query}%",),
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Could not search transcripts: {e}") from e
        return [self._to_record(row) for row in rows]

    def close(self) -> None:
        self.connection.close()
