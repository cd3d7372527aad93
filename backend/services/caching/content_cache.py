"""
Durable cache of generated artifacts keyed by a normalized generation fingerprint.
"""
import json
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, asdict
from datetime import timedelta
from typing import Any, Dict, Optional

from core.config import CACHE_MAX_AGE_HOURS, DEFAULT_DIFFICULTY
from core.database import Database, db
from services.utils import normalize_text, parse_timestamp, utc_now, utc_now_iso

logger = logging.getLogger(__name__)

CONTENT_TYPES = ("outline", "paragraph")
FINGERPRINT_SEPARATOR = "||"


def fingerprint(title: str, context: Optional[str] = None, difficulty: Optional[str] = None) -> str:
    """Cache key for one generation request."""
    return FINGERPRINT_SEPARATOR.join(
        [normalize_text(title), normalize_text(context), difficulty or DEFAULT_DIFFICULTY]
    )


@dataclass
class GenerationInputs:
    """The parameters a cached artifact was produced from"""
    title: str
    context: Optional[str] = None
    difficulty: Optional[str] = None

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.title, self.context, self.difficulty)

    def normalized(self) -> Dict[str, str]:
        return {
            "title": normalize_text(self.title),
            "context": normalize_text(self.context),
            "difficulty": self.difficulty or DEFAULT_DIFFICULTY,
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ContentCache:
    """
    Durable tier of the content cache.

    Lookups never trust a fingerprint alone: the stored inputs are compared
    with the caller's before an artifact is returned. Writes never raise.
    """

    def __init__(self, database: Optional[Database] = None, executor: Optional[Executor] = None):
        self.db = database or db
        self.executor = executor

    def get_cached(
        self,
        topic_id: str,
        inputs: GenerationInputs,
        content_type: str = "outline",
    ) -> Optional[Dict[str, Any]]:
        """Most recent artifact for the topic if it was produced from these inputs."""
        row = self.db.execute_one(
            """
            SELECT * FROM cache_entries
            WHERE topic_id = ? AND content_type = ?
            ORDER BY created_at DESC, id DESC LIMIT 1
            """,
            (topic_id, content_type),
        )
        if row is None:
            return None
        if not self._matches(row, inputs):
            logger.info(f"Cached {content_type} for topic {topic_id} was built from other inputs")
            return None
        return json.loads(row["artifact"])

    def get_by_fingerprint(
        self,
        inputs: GenerationInputs,
        content_type: str = "outline",
    ) -> Optional[Dict[str, Any]]:
        """Cross-topic lookup; lets other topics reuse finished work."""
        rows = self.db.execute(
            """
            SELECT * FROM cache_entries
            WHERE fingerprint = ? AND content_type = ?
            ORDER BY created_at DESC, id DESC
            """,
            (inputs.fingerprint, content_type),
        )
        for row in rows:
            if self._matches(row, inputs):
                return json.loads(row["artifact"])
        return None

    def put_cached(
        self,
        topic_id: str,
        artifact: Dict[str, Any],
        inputs: GenerationInputs,
        elapsed_ms: Optional[int] = None,
        content_type: str = "outline",
    ) -> bool:
        """Store an artifact; failures are logged and reported as ``False``."""
        try:
            if content_type not in CONTENT_TYPES:
                raise ValueError(f"Unknown content type: {content_type}")
            self.db.execute_write(
                """
                INSERT INTO cache_entries
                (topic_id, content_type, fingerprint, input_data, artifact, processing_time_ms, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    topic_id,
                    content_type,
                    inputs.fingerprint,
                    json.dumps(inputs.normalized()),
                    json.dumps(artifact),
                    elapsed_ms,
                    utc_now_iso(),
                ),
            )
            return True
        except Exception as e:
            logger.warning(f"Failed to cache {content_type} for topic {topic_id}: {e}")
            return False

    def schedule_put(
        self,
        topic_id: str,
        artifact: Dict[str, Any],
        inputs: GenerationInputs,
        elapsed_ms: Optional[int] = None,
        content_type: str = "outline",
    ):
        """Fire-and-forget ``put_cached``; runs inline when no executor is set."""
        if self.executor is None:
            self.put_cached(topic_id, artifact, inputs, elapsed_ms, content_type)
            return
        self.executor.submit(self.put_cached, topic_id, artifact, inputs, elapsed_ms, content_type)

    def should_regenerate(
        self,
        topic_id: str,
        max_age_hours: int = CACHE_MAX_AGE_HOURS,
        content_type: str = "outline",
    ) -> bool:
        """True when nothing is cached for the topic or the newest entry is too old."""
        row = self.db.execute_one(
            "SELECT MAX(created_at) AS newest FROM cache_entries WHERE topic_id = ? AND content_type = ?",
            (topic_id, content_type),
        )
        newest = parse_timestamp(row["newest"]) if row else None
        if newest is None:
            return True
        return utc_now() - newest > timedelta(hours=max_age_hours)

    def clear_topic_cache(self, topic_id: str) -> int:
        removed = self.db.execute_write("DELETE FROM cache_entries WHERE topic_id = ?", (topic_id,))
        logger.info(f"Cleared {removed} cache entries for topic {topic_id}")
        return removed

    def get_stats(self) -> Dict[str, Any]:
        """Entry counts and timing across the whole cache."""
        row = self.db.execute_one(
            """
            SELECT
                COUNT(*) AS total_entries,
                COALESCE(SUM(content_type = 'outline'), 0) AS outline_entries,
                COALESCE(SUM(content_type = 'paragraph'), 0) AS paragraph_entries,
                COUNT(DISTINCT topic_id) AS unique_topics,
                AVG(processing_time_ms) AS avg_processing_time_ms,
                MIN(created_at) AS oldest_entry,
                MAX(created_at) AS newest_entry
            FROM cache_entries
            """
        )
        stats = dict(row)
        if stats["avg_processing_time_ms"] is not None:
            stats["avg_processing_time_ms"] = round(stats["avg_processing_time_ms"])
        return stats

    @staticmethod
    def _matches(row, inputs: GenerationInputs) -> bool:
        if row["fingerprint"] != inputs.fingerprint:
            return False
        try:
            stored = json.loads(row["input_data"])
        except (TypeError, ValueError):
            return False
        return stored == inputs.normalized()


# Global content cache instance; writes go to a small background pool
content_cache = ContentCache(executor=ThreadPoolExecutor(max_workers=2, thread_name_prefix="cache-write"))
