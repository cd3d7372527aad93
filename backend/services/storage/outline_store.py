"""
Durable storage for outlines, chapters and paragraph stubs.
"""
import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from core.database import Database, db
from core.errors import NotFound, StaleReference
from core.transaction import TransactionManager, retry_on_transient_error
from models.topic_models import Chapter, Outline, OutlineOptions, OutlineProgress, Paragraph
from services.utils import utc_now_iso

logger = logging.getLogger(__name__)


class OutlineStore:
    """Outline/chapter/paragraph rows for a topic, written as one unit."""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or db
        self.transactions = TransactionManager(self.db)

    def get_existing_outline(self, topic_id: str) -> Optional[Outline]:
        """Pure read of the full outline tree; ``None`` when the topic has none."""
        with self.db.get_connection() as conn:
            outline_row = conn.execute(
                "SELECT * FROM outlines WHERE topic_id = ?", (topic_id,)
            ).fetchone()
            if outline_row is None:
                return None

            chapter_rows = conn.execute(
                'SELECT * FROM chapters WHERE topic_id = ? ORDER BY "index"', (topic_id,)
            ).fetchall()
            paragraph_rows = conn.execute(
                """
                SELECT p.* FROM paragraphs p
                JOIN chapters c ON c.id = p.chapter_id
                WHERE p.topic_id = ?
                ORDER BY c."index", p."index"
                """,
                (topic_id,),
            ).fetchall()

        outline = self._row_to_outline(outline_row)
        if not chapter_rows:
            logger.warning(f"Outline row for topic {topic_id} has no chapters")
            return None

        chapters = {row["id"]: self._row_to_chapter(row) for row in chapter_rows}
        for row in paragraph_rows:
            chapters[row["chapter_id"]].paragraphs.append(self._row_to_paragraph(row))
        outline.chapters = list(chapters.values())
        return outline

    @retry_on_transient_error()
    def persist_outline(self, outline: Outline) -> Outline:
        """
        Write outline metadata, chapters and paragraph stubs in one transaction.

        If another writer persisted an outline for the topic first, theirs is
        kept and returned; nothing from this call is written.
        """
        created_at = outline.created_at or utc_now_iso()
        try:
            with self.transactions.transaction("IMMEDIATE") as conn:
                conn.execute(
                    """
                    INSERT INTO outlines
                    (topic_id, title, description, difficulty, estimated_minutes,
                     total_chapters, total_paragraphs, generation_options, model_tag, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        outline.topic_id,
                        outline.title,
                        outline.description,
                        outline.difficulty,
                        outline.estimated_minutes,
                        outline.total_chapters,
                        outline.total_paragraphs,
                        json.dumps(outline.generation_options.to_dict()),
                        outline.model_tag,
                        created_at,
                    ),
                )
                for chapter in outline.chapters:
                    conn.execute(
                        """
                        INSERT INTO chapters (id, topic_id, "index", title, description, metadata, created_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            chapter.chapter_id,
                            outline.topic_id,
                            chapter.index,
                            chapter.title,
                            chapter.description,
                            json.dumps(chapter.metadata),
                            created_at,
                        ),
                    )
                    conn.executemany(
                        """
                        INSERT INTO paragraphs
                        (id, chapter_id, topic_id, "index", content, summary, metadata, generated, generated_at)
                        VALUES (?, ?, ?, ?, NULL, ?, ?, 0, NULL)
                        """,
                        [
                            (
                                paragraph.paragraph_id,
                                chapter.chapter_id,
                                outline.topic_id,
                                paragraph.index,
                                paragraph.summary,
                                json.dumps(paragraph.metadata),
                            )
                            for paragraph in chapter.paragraphs
                        ],
                    )
        except sqlite3.IntegrityError as e:
            existing = self.get_existing_outline(outline.topic_id)
            if existing is None:
                raise
            logger.warning(
                f"Outline for topic {outline.topic_id} was persisted concurrently ({e}); "
                "keeping the existing one"
            )
            return existing

        outline.created_at = created_at
        logger.info(
            f"Persisted outline for topic {outline.topic_id}: "
            f"{outline.total_chapters} chapters, {outline.total_paragraphs} paragraph stubs"
        )
        return outline

    @retry_on_transient_error()
    def delete_outline(self, topic_id: str) -> None:
        """
        Delete the outline, its chapters and paragraphs, and the topic's reading records.

        Destroys every generated paragraph body of the topic.
        """
        with self.transactions.transaction("IMMEDIATE") as conn:
            conn.execute("DELETE FROM reading_records WHERE topic_id = ?", (topic_id,))
            conn.execute("DELETE FROM chapters WHERE topic_id = ?", (topic_id,))
            conn.execute("DELETE FROM outlines WHERE topic_id = ?", (topic_id,))
        logger.info(f"Deleted outline and chapters for topic {topic_id}")

    def get_chapter(self, chapter_id: str) -> Optional[Chapter]:
        row = self.db.execute_one("SELECT * FROM chapters WHERE id = ?", (chapter_id,))
        if row is None:
            return None
        chapter = self._row_to_chapter(row)
        chapter.paragraphs = self.get_paragraphs_by_chapter(chapter_id)
        return chapter

    def get_paragraph(self, paragraph_id: str) -> Optional[Paragraph]:
        row = self.db.execute_one("SELECT * FROM paragraphs WHERE id = ?", (paragraph_id,))
        return self._row_to_paragraph(row) if row else None

    def get_paragraphs_by_chapter(self, chapter_id: str) -> List[Paragraph]:
        rows = self.db.execute(
            'SELECT * FROM paragraphs WHERE chapter_id = ? ORDER BY "index"', (chapter_id,)
        )
        return [self._row_to_paragraph(row) for row in rows]

    def get_next_ungenerated_paragraph(self, chapter_id: str) -> Optional[Paragraph]:
        """First stub in the chapter, in reading order."""
        row = self.db.execute_one(
            'SELECT * FROM paragraphs WHERE chapter_id = ? AND generated = 0 ORDER BY "index" LIMIT 1',
            (chapter_id,),
        )
        return self._row_to_paragraph(row) if row else None

    @retry_on_transient_error()
    def mark_generated(
        self,
        paragraph_id: str,
        content: str,
        summary: str,
        metadata: Dict[str, Any],
    ) -> Paragraph:
        """
        Move a stub to the generated state in one conditional update.

        The stub must still carry ``summary``; if it was replaced meanwhile (outline
        regenerated) nothing is written. If the paragraph was already generated
        the stored version is returned unchanged.
        """
        generated_at = utc_now_iso()
        updated = self.db.execute_write(
            """
            UPDATE paragraphs
            SET content = ?, summary = ?, metadata = ?, generated = 1, generated_at = ?
            WHERE id = ? AND generated = 0 AND summary = ?
            """,
            (content, summary, json.dumps(metadata), generated_at, paragraph_id, summary),
        )
        paragraph = self.get_paragraph(paragraph_id)
        if paragraph is None:
            raise NotFound(f"Paragraph not found: {paragraph_id}")
        if not updated and not paragraph.generated:
            raise StaleReference(f"Paragraph {paragraph_id} was replaced while it was being generated")
        if not updated:
            logger.info(f"Paragraph {paragraph_id} was already generated; keeping stored content")
        return paragraph

    def get_outline_progress(self, topic_id: str) -> OutlineProgress:
        """Generated vs total paragraph counts for the topic."""
        row = self.db.execute_one(
            """
            SELECT
                (SELECT COUNT(*) FROM chapters WHERE topic_id = ?) AS total_chapters,
                COUNT(*) AS total_paragraphs,
                COALESCE(SUM(generated), 0) AS generated_paragraphs
            FROM paragraphs WHERE topic_id = ?
            """,
            (topic_id, topic_id),
        )
        total_chapters = row["total_chapters"] if row else 0
        if not total_chapters:
            return OutlineProgress(has_outline=False)

        total = row["total_paragraphs"]
        generated = row["generated_paragraphs"]
        return OutlineProgress(
            has_outline=True,
            total_chapters=total_chapters,
            total_paragraphs=total,
            generated_paragraphs=generated,
            completion_percentage=round(generated / total * 100) if total else 0,
        )

    @staticmethod
    def _row_to_outline(row) -> Outline:
        options = json.loads(row["generation_options"]) if row["generation_options"] else {}
        return Outline(
            topic_id=row["topic_id"],
            title=row["title"],
            description=row["description"] or "",
            difficulty=row["difficulty"],
            estimated_minutes=row["estimated_minutes"],
            total_chapters=row["total_chapters"],
            total_paragraphs=row["total_paragraphs"],
            generation_options=OutlineOptions.from_dict(options),
            model_tag=row["model_tag"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_chapter(row) -> Chapter:
        return Chapter(
            chapter_id=row["id"],
            topic_id=row["topic_id"],
            index=row["index"],
            title=row["title"],
            description=row["description"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
        )

    @staticmethod
    def _row_to_paragraph(row) -> Paragraph:
        return Paragraph(
            paragraph_id=row["id"],
            chapter_id=row["chapter_id"],
            topic_id=row["topic_id"],
            index=row["index"],
            summary=row["summary"],
            content=row["content"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            generated=bool(row["generated"]),
            generated_at=row["generated_at"],
        )


# Global outline store instance
outline_store = OutlineStore()
