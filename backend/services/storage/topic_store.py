"""
Topic persistence: get-or-create by deterministic id, history and cascading delete.
"""
import logging
import sqlite3
from typing import List, Optional

from core.database import Database, db
from core.errors import ConflictRace, NotFound
from core.transaction import TransactionManager, retry_on_transient_error
from models.topic_models import Topic, TOPIC_ORIGINS
from services.identity.identity_resolver import IdentityResolver, identity_resolver
from services.utils import utc_now_iso

logger = logging.getLogger(__name__)

# Satellite tables keyed by topic id without a foreign key
SATELLITE_TABLES = ("reading_records", "cache_entries", "paragraph_qa", "knowledge_checks")


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TopicStore:
    """Reads and writes topic rows; the only place topics are created."""

    def __init__(
        self,
        database: Optional[Database] = None,
        resolver: Optional[IdentityResolver] = None,
    ):
        self.db = database or db
        self.resolver = resolver or identity_resolver
        self.transactions = TransactionManager(self.db)

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        row = self.db.execute_one("SELECT * FROM topics WHERE id = ?", (topic_id,))
        return self._row_to_topic(row) if row else None

    @retry_on_transient_error()
    def get_or_create_topic(
        self,
        title: str,
        owner_id: str,
        origin: str = "direct-topic",
        source_locator: Optional[str] = None,
    ) -> Topic:
        """
        Resolve the topic id and return the existing row, creating it if absent.

        A concurrent creator that wins the insert is treated as success.
        """
        if origin not in TOPIC_ORIGINS:
            raise ValueError(f"Unknown topic origin: {origin}")

        topic_id = self.resolver.resolve(title, owner_id)
        existing = self.get_topic(topic_id)
        if existing:
            return existing

        now = utc_now_iso()
        try:
            self.db.execute_write(
                """
                INSERT INTO topics
                (id, owner_id, title, normalized_title, origin, source_locator, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    topic_id,
                    owner_id,
                    title.strip(),
                    self.resolver.normalize_title(title),
                    origin,
                    source_locator,
                    now,
                    now,
                ),
            )
        except sqlite3.IntegrityError:
            winner = self.get_topic(topic_id)
            if winner is None or winner.owner_id != owner_id:
                raise ConflictRace(f"Topic id {topic_id} collided with non-equivalent data")
            logger.info(f"Topic {topic_id} created concurrently; reusing existing row")
            return winner

        logger.info(f"Created topic {topic_id} ({title!r}) for owner {owner_id}")
        return Topic(
            topic_id=topic_id,
            owner_id=owner_id,
            title=title.strip(),
            origin=origin,
            source_locator=source_locator,
            created_at=now,
            updated_at=now,
        )

    def require_topic(self, topic_id: str, owner_id: Optional[str] = None) -> Topic:
        topic = self.get_topic(topic_id)
        if topic is None or (owner_id is not None and topic.owner_id != owner_id):
            raise NotFound(f"Topic not found: {topic_id}")
        return topic

    def update_topic(
        self,
        topic_id: str,
        owner_id: str,
        display_title: Optional[str] = None,
        source_locator: Optional[str] = None,
    ) -> Topic:
        """
        Update display fields of an owner's topic.

        The display title may change casing/spacing only; a different normalized
        title would be a different topic identity.
        """
        topic = self.require_topic(topic_id, owner_id)
        if display_title is not None:
            if self.resolver.normalize_title(display_title) != self.resolver.normalize_title(topic.title):
                raise ValueError("Display title must normalize to the topic's existing title")
            topic.title = display_title.strip()
        if source_locator is not None:
            topic.source_locator = source_locator
        topic.updated_at = utc_now_iso()

        self.db.execute_write(
            "UPDATE topics SET title = ?, source_locator = ?, updated_at = ? WHERE id = ? AND owner_id = ?",
            (topic.title, topic.source_locator, topic.updated_at, topic_id, owner_id),
        )
        return topic

    def get_topic_history(self, owner_id: str, limit: int = 20) -> List[Topic]:
        """Most recently created topics for an owner."""
        rows = self.db.execute(
            "SELECT * FROM topics WHERE owner_id = ? ORDER BY created_at DESC LIMIT ?",
            (owner_id, limit),
        )
        return [self._row_to_topic(row) for row in rows]

    def search_topics(self, owner_id: str, query: str, limit: int = 10) -> List[Topic]:
        """Substring match on the normalized title; % and _ in the query match literally."""
        pattern = escape_like(self.resolver.normalize_title(query))
        rows = self.db.execute(
            """
            SELECT * FROM topics
            WHERE owner_id = ? AND normalized_title LIKE ? ESCAPE '\\'
            ORDER BY created_at DESC LIMIT ?
            """,
            (owner_id, f"%{pattern}%", limit),
        )
        return [self._row_to_topic(row) for row in rows]

    @retry_on_transient_error()
    def delete_topic(self, topic_id: str, owner_id: str) -> bool:
        """
        Hard-delete a topic with everything that depends on it.

        Outline, chapters and paragraphs go through foreign-key cascades;
        satellite rows are removed explicitly in the same transaction.
        """
        self.require_topic(topic_id, owner_id)

        with self.transactions.transaction("IMMEDIATE") as conn:
            for table in SATELLITE_TABLES:
                conn.execute(f"DELETE FROM {table} WHERE topic_id = ?", (topic_id,))
            conn.execute("DELETE FROM topics WHERE id = ? AND owner_id = ?", (topic_id, owner_id))

        logger.info(f"Deleted topic {topic_id} and all dependent data")
        return True

    @staticmethod
    def _row_to_topic(row) -> Topic:
        return Topic(
            topic_id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            origin=row["origin"],
            source_locator=row["source_locator"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
