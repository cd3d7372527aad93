"""
Paragraph Q&A history and chapter knowledge-check attempts.
"""
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from core.config import KNOWLEDGE_CHECK_MAX_SCORE, KNOWLEDGE_CHECK_MIN_SCORE
from core.database import Database, db
from core.errors import NotFound, StaleReference
from models.assessment_models import KnowledgeCheck, QuestionAnswer
from services.storage.outline_store import OutlineStore
from services.utils import content_fingerprint, utc_now_iso

logger = logging.getLogger(__name__)


class AssessmentStore:
    """Stores questions asked about paragraphs and chapter assessment attempts."""

    def __init__(self, database: Optional[Database] = None, outlines: Optional[OutlineStore] = None):
        self.db = database or db
        self.outlines = outlines or OutlineStore(self.db)

    def save_question_answer(
        self,
        owner_id: str,
        topic_id: str,
        paragraph_id: str,
        question: str,
        answer: str,
        model_tag: Optional[str] = None,
    ) -> QuestionAnswer:
        """Record a Q&A pair against the paragraph body as it is right now."""
        if not question.strip() or not answer.strip():
            raise ValueError("Question and answer must not be empty")

        paragraph = self.outlines.get_paragraph(paragraph_id)
        if paragraph is None or paragraph.topic_id != topic_id:
            raise NotFound(f"Paragraph not found: {paragraph_id}")
        if not paragraph.generated:
            raise StaleReference(f"Paragraph {paragraph_id} has no generated content to ask about")

        qa = QuestionAnswer(
            qa_id=str(uuid.uuid4()),
            owner_id=owner_id,
            topic_id=paragraph.topic_id,
            chapter_id=paragraph.chapter_id,
            paragraph_id=paragraph_id,
            content_fingerprint=content_fingerprint(paragraph.content),
            question=question.strip(),
            answer=answer.strip(),
            model_tag=model_tag,
            created_at=utc_now_iso(),
        )
        self.db.execute_write(
            """
            INSERT INTO paragraph_qa
            (id, owner_id, topic_id, chapter_id, paragraph_id, content_fingerprint,
             question, answer, model_tag, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                qa.qa_id,
                qa.owner_id,
                qa.topic_id,
                qa.chapter_id,
                qa.paragraph_id,
                qa.content_fingerprint,
                qa.question,
                qa.answer,
                qa.model_tag,
                qa.created_at,
            ),
        )
        return qa

    def list_questions(self, owner_id: str, topic_id: str, paragraph_id: str) -> List[QuestionAnswer]:
        rows = self.db.execute(
            """
            SELECT * FROM paragraph_qa
            WHERE owner_id = ? AND topic_id = ? AND paragraph_id = ?
            ORDER BY created_at
            """,
            (owner_id, topic_id, paragraph_id),
        )
        return [
            QuestionAnswer(
                qa_id=row["id"],
                owner_id=row["owner_id"],
                topic_id=row["topic_id"],
                chapter_id=row["chapter_id"],
                paragraph_id=row["paragraph_id"],
                content_fingerprint=row["content_fingerprint"],
                question=row["question"],
                answer=row["answer"],
                model_tag=row["model_tag"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def record_knowledge_check(
        self,
        owner_id: str,
        topic_id: str,
        chapter_id: str,
        questions: List[Dict[str, Any]],
        answers: List[Dict[str, Any]],
        score: int,
        feedback: Optional[Dict[str, Any]] = None,
        model_tag: Optional[str] = None,
        duration_seconds: Optional[int] = None,
    ) -> KnowledgeCheck:
        """
        Save one assessment attempt for a chapter.

        Args:
            owner_id: Reader taking the check
            topic_id: Topic the chapter must belong to
            chapter_id: Chapter being assessed
            questions: Questions as presented
            answers: Reader's answers, in question order
            score: Overall score on the 1-10 scale
            feedback: Optional per-question or overall feedback
            model_tag: Model that produced the questions/grading
            duration_seconds: Time spent on the check

        Returns:
            The stored KnowledgeCheck
        """
        if not KNOWLEDGE_CHECK_MIN_SCORE <= score <= KNOWLEDGE_CHECK_MAX_SCORE:
            raise ValueError(
                f"Score must be between {KNOWLEDGE_CHECK_MIN_SCORE} and {KNOWLEDGE_CHECK_MAX_SCORE}"
            )

        chapter = self.outlines.get_chapter(chapter_id)
        if chapter is None or chapter.topic_id != topic_id:
            raise NotFound(f"Chapter not found: {chapter_id}")

        check = KnowledgeCheck(
            check_id=str(uuid.uuid4()),
            owner_id=owner_id,
            topic_id=chapter.topic_id,
            chapter_id=chapter_id,
            questions=questions,
            answers=answers,
            score=score,
            feedback=feedback,
            model_tag=model_tag,
            duration_seconds=duration_seconds,
            created_at=utc_now_iso(),
        )
        self.db.execute_write(
            """
            INSERT INTO knowledge_checks
            (id, owner_id, topic_id, chapter_id, questions, answers, feedback,
             score, model_tag, duration_seconds, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                check.check_id,
                check.owner_id,
                check.topic_id,
                check.chapter_id,
                json.dumps(check.questions),
                json.dumps(check.answers),
                json.dumps(check.feedback) if check.feedback is not None else None,
                check.score,
                check.model_tag,
                check.duration_seconds,
                check.created_at,
            ),
        )
        logger.info(f"Recorded knowledge check for chapter {chapter_id} (score {score})")
        return check

    def list_knowledge_checks(self, owner_id: str, topic_id: str, chapter_id: str) -> List[KnowledgeCheck]:
        """Attempts for a chapter, newest first."""
        rows = self.db.execute(
            """
            SELECT * FROM knowledge_checks
            WHERE owner_id = ? AND topic_id = ? AND chapter_id = ?
            ORDER BY created_at DESC
            """,
            (owner_id, topic_id, chapter_id),
        )
        return [
            KnowledgeCheck(
                check_id=row["id"],
                owner_id=row["owner_id"],
                topic_id=row["topic_id"],
                chapter_id=row["chapter_id"],
                questions=json.loads(row["questions"]),
                answers=json.loads(row["answers"]),
                score=row["score"],
                feedback=json.loads(row["feedback"]) if row["feedback"] else None,
                model_tag=row["model_tag"],
                duration_seconds=row["duration_seconds"],
                created_at=row["created_at"],
            )
            for row in rows
        ]
