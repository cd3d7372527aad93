"""
Paragraph-level reading progress with derived chapter completion.
"""
import logging
import sqlite3
import threading
import time
from typing import Callable, Dict, List, Optional, Set

from core.database import Database, db
from core.errors import StaleReference
from core.transaction import TransactionManager, retry_on_transient_error
from models.progress_models import ChapterCompletionEvent, ChapterProgress, ReadingSession
from services.utils import content_fingerprint, utc_now_iso

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[ChapterCompletionEvent], None]

# Per-chapter counts over existing paragraphs only; records for deleted
# paragraphs never match the join and are ignored.
CHAPTER_PROGRESS_SQL = """
    SELECT
        c.id AS chapter_id,
        COUNT(p.id) AS total_paragraphs,
        COALESCE(SUM(CASE WHEN r.is_read = 1 THEN 1 ELSE 0 END), 0) AS read_paragraphs,
        MAX(r.updated_at) AS last_activity,
        MAX(CASE WHEN r.is_read = 1 THEN r.read_at END) AS last_read_at
    FROM chapters c
    JOIN paragraphs p ON p.chapter_id = c.id
    LEFT JOIN reading_records r
        ON r.paragraph_id = p.id AND r.owner_id = ? AND r.topic_id = c.topic_id
    WHERE c.topic_id = ? {chapter_filter}
    GROUP BY c.id
    ORDER BY c."index"
"""


class ProgressTracker:
    """
    Read/unread state and reading sessions for one owner.

    Completion is never stored: a chapter is complete when every one of its
    paragraphs has a read record. ``mark_read`` compares completion before and
    after its write inside the same transaction, so each false-to-true
    transition produces exactly one ``ChapterCompletionEvent``.
    """

    def __init__(
        self,
        owner_id: str,
        database: Optional[Database] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        if not owner_id:
            raise ValueError("Owner id must not be empty")
        self.owner_id = owner_id
        self.db = database or db
        self.transactions = TransactionManager(self.db)
        self.clock = clock or time.monotonic

        self._lock = threading.Lock()
        self._sessions: Dict[str, ReadingSession] = {}
        self._seconds_by_paragraph: Dict[str, int] = {}
        self._callbacks: List[CompletionCallback] = []

    # Reading sessions

    def start_reading(self, paragraph_id: str) -> ReadingSession:
        """Start timing a paragraph; any other active session is ended first."""
        self.end_all_sessions()
        session = ReadingSession(paragraph_id=paragraph_id, start_time=self.clock())
        with self._lock:
            self._sessions[paragraph_id] = session
        logger.debug(f"Started reading paragraph {paragraph_id}")
        return session

    def end_reading(self, paragraph_id: str) -> int:
        """Stop timing a paragraph and return the seconds spent; 0 if it was not being read."""
        with self._lock:
            session = self._sessions.pop(paragraph_id, None)
            if session is None or not session.is_active:
                return 0
            session.end_time = self.clock()
            session.is_active = False
            elapsed = session.elapsed_seconds
            self._seconds_by_paragraph[paragraph_id] = self._seconds_by_paragraph.get(paragraph_id, 0) + elapsed
        logger.debug(f"Ended reading paragraph {paragraph_id} after {elapsed}s")
        return elapsed

    def end_all_sessions(self) -> int:
        with self._lock:
            active = list(self._sessions)
        return sum(self.end_reading(pid) for pid in active)

    def active_session(self) -> Optional[ReadingSession]:
        with self._lock:
            return next((s for s in self._sessions.values() if s.is_active), None)

    def time_spent(self, chapter_id: str) -> int:
        """Seconds this tracker has timed on the chapter's paragraphs."""
        prefix = f"{chapter_id}-paragraph-"
        with self._lock:
            return sum(sec for pid, sec in self._seconds_by_paragraph.items() if pid.startswith(prefix))

    # Completion callbacks

    def on_chapter_complete(self, callback: CompletionCallback):
        with self._lock:
            if callback not in self._callbacks:
                self._callbacks.append(callback)

    def off_chapter_complete(self, callback: CompletionCallback):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    # Read state

    @retry_on_transient_error()
    def mark_read(self, topic_id: str, chapter_id: str, paragraph_id: str, current_content: str) -> bool:
        """
        Record that the owner read a generated paragraph.

        Args:
            topic_id: Topic the paragraph belongs to
            chapter_id: Chapter the paragraph belongs to
            paragraph_id: Paragraph being marked
            current_content: Body as displayed to the reader

        Returns:
            True once the record is stored

        Raises:
            StaleReference: the paragraph is missing, not generated, not in this
                chapter/topic, or its stored body differs from ``current_content``
        """
        self.end_reading(paragraph_id)
        fingerprint = content_fingerprint(current_content)

        with self.transactions.transaction("IMMEDIATE") as conn:
            stored = self._require_generated(conn, topic_id, chapter_id, paragraph_id)
            if content_fingerprint(stored["content"]) != fingerprint:
                raise StaleReference(f"Paragraph {paragraph_id} content changed; refresh and retry")

            before = self._chapter_row(conn, topic_id, chapter_id)
            was_complete = before is not None and self._is_complete(before)

            now = utc_now_iso()
            self._upsert(conn, topic_id, chapter_id, paragraph_id, fingerprint, True, now, now)

            after = self._chapter_row(conn, topic_id, chapter_id)
            event = None
            if not was_complete and after is not None and self._is_complete(after):
                event = ChapterCompletionEvent(
                    owner_id=self.owner_id,
                    topic_id=topic_id,
                    chapter_id=chapter_id,
                    completed_at=after["last_read_at"],
                    total_paragraphs=after["total_paragraphs"],
                    time_spent=self.time_spent(chapter_id),
                )

        logger.info(f"Owner {self.owner_id} read paragraph {paragraph_id}")
        if event is not None:
            logger.info(f"Chapter {chapter_id} completed by owner {self.owner_id}")
            self._emit(event)
        return True

    @retry_on_transient_error()
    def mark_unread(self, topic_id: str, chapter_id: str, paragraph_id: str) -> bool:
        """Structural inverse of ``mark_read``; never emits events."""
        self.end_reading(paragraph_id)

        with self.transactions.transaction("IMMEDIATE") as conn:
            stored = self._require_generated(conn, topic_id, chapter_id, paragraph_id)
            self._upsert(
                conn,
                topic_id,
                chapter_id,
                paragraph_id,
                content_fingerprint(stored["content"]),
                False,
                None,
                utc_now_iso(),
            )

        logger.info(f"Owner {self.owner_id} marked paragraph {paragraph_id} unread")
        return True

    def get_chapter_progress(self, topic_id: str, chapter_id: str) -> Optional[ChapterProgress]:
        with self.db.get_connection() as conn:
            row = self._chapter_row(conn, topic_id, chapter_id)
        return self._to_progress(row) if row else None

    def get_topic_progress(self, topic_id: str) -> List[ChapterProgress]:
        """Progress for every chapter of the topic, in chapter order."""
        rows = self.db.execute(
            CHAPTER_PROGRESS_SQL.format(chapter_filter=""),
            (self.owner_id, topic_id),
        )
        return [self._to_progress(row) for row in rows]

    def is_chapter_complete(self, topic_id: str, chapter_id: str) -> bool:
        progress = self.get_chapter_progress(topic_id, chapter_id)
        return bool(progress and progress.is_complete)

    def load_read_set(self, topic_id: str) -> Set[str]:
        """Ids of the topic's existing paragraphs this owner has read."""
        rows = self.db.execute(
            """
            SELECT r.paragraph_id FROM reading_records r
            JOIN paragraphs p ON p.id = r.paragraph_id
            WHERE r.owner_id = ? AND r.topic_id = ? AND r.is_read = 1
            """,
            (self.owner_id, topic_id),
        )
        return {row["paragraph_id"] for row in rows}

    # Internals

    @staticmethod
    def _require_generated(conn: sqlite3.Connection, topic_id: str, chapter_id: str, paragraph_id: str):
        row = conn.execute(
            "SELECT id, chapter_id, topic_id, content, generated FROM paragraphs WHERE id = ?",
            (paragraph_id,),
        ).fetchone()
        if row is None:
            raise StaleReference(f"Paragraph {paragraph_id} no longer exists")
        if row["chapter_id"] != chapter_id or row["topic_id"] != topic_id:
            raise StaleReference(f"Paragraph {paragraph_id} does not belong to chapter {chapter_id}")
        if not row["generated"]:
            raise StaleReference(f"Paragraph {paragraph_id} has not been generated yet")
        return row

    def _upsert(
        self,
        conn: sqlite3.Connection,
        topic_id: str,
        chapter_id: str,
        paragraph_id: str,
        fingerprint: str,
        is_read: bool,
        read_at: Optional[str],
        updated_at: str,
    ):
        conn.execute(
            """
            INSERT INTO reading_records
            (owner_id, topic_id, chapter_id, paragraph_id, content_fingerprint, is_read, read_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(owner_id, topic_id, paragraph_id) DO UPDATE SET
                chapter_id = excluded.chapter_id,
                content_fingerprint = excluded.content_fingerprint,
                is_read = excluded.is_read,
                read_at = excluded.read_at,
                updated_at = excluded.updated_at
            """,
            (self.owner_id, topic_id, chapter_id, paragraph_id, fingerprint, int(is_read), read_at, updated_at),
        )

    def _chapter_row(self, conn: sqlite3.Connection, topic_id: str, chapter_id: str):
        return conn.execute(
            CHAPTER_PROGRESS_SQL.format(chapter_filter="AND c.id = ?"),
            (self.owner_id, topic_id, chapter_id),
        ).fetchone()

    @staticmethod
    def _is_complete(row) -> bool:
        return row["total_paragraphs"] > 0 and row["read_paragraphs"] == row["total_paragraphs"]

    def _to_progress(self, row) -> ChapterProgress:
        total = row["total_paragraphs"]
        read = row["read_paragraphs"]
        complete = self._is_complete(row)
        return ChapterProgress(
            chapter_id=row["chapter_id"],
            total_paragraphs=total,
            read_paragraphs=read,
            progress_percentage=round(read / total * 100) if total else 0,
            total_time_spent=self.time_spent(row["chapter_id"]),
            last_activity=row["last_activity"],
            is_complete=complete,
            completed_at=row["last_read_at"] if complete else None,
        )

    def _emit(self, event: ChapterCompletionEvent):
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Chapter completion callback failed: {e}")
