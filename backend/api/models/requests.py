"""
Pydantic request models for API endpoints.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

from core.config import DEFAULT_DIFFICULTY, DEFAULT_MAX_CHAPTERS, DEFAULT_PARAGRAPH_MAX_WORDS

Difficulty = Literal["beginner", "intermediate", "advanced"]


class TopicCreateRequest(BaseModel):
    """Request model for topic get-or-create."""
    title: str = Field(..., min_length=1, description="Topic title")
    origin: Literal["direct-topic", "url", "image"] = Field(default="direct-topic", description="Where the topic came from")
    source_locator: Optional[str] = Field(default=None, description="URL or image reference for non-direct topics")


class TopicUpdateRequest(BaseModel):
    """Request model for updating a topic's display fields."""
    display_title: Optional[str] = Field(default=None, description="New display title (same normalized title)")
    source_locator: Optional[str] = Field(default=None, description="Source URL or reference")


class OutlineRequest(BaseModel):
    """Request model for outline generation."""
    difficulty: Difficulty = Field(default=DEFAULT_DIFFICULTY, description="Difficulty level")
    max_chapters: int = Field(default=DEFAULT_MAX_CHAPTERS, ge=1, le=20, description="Upper bound on chapters")
    context: Optional[str] = Field(default=None, description="Extra context, e.g. the parent mind-map node")
    extra_description: Optional[str] = Field(default=None, description="Additional focus for the outline")


class RegenerateOutlineRequest(OutlineRequest):
    """Request model for destructive outline regeneration."""
    confirm: bool = Field(default=False, description="Must be true; deletes generated paragraphs and progress")


class ParagraphGenerateRequest(BaseModel):
    """Request model for generating one paragraph body."""
    difficulty: Optional[Difficulty] = Field(default=None, description="Defaults to the outline's difficulty")
    max_words: int = Field(default=DEFAULT_PARAGRAPH_MAX_WORDS, ge=20, le=1000, description="Word limit")
    include_examples: bool = Field(default=True, description="Ask for a concrete example")


class MarkReadRequest(BaseModel):
    """Request model for marking a paragraph read."""
    chapter_id: str = Field(..., description="Chapter ID")
    paragraph_id: str = Field(..., description="Paragraph ID")
    content: str = Field(..., description="Paragraph body as displayed to the reader")


class MarkUnreadRequest(BaseModel):
    """Request model for marking a paragraph unread."""
    chapter_id: str = Field(..., description="Chapter ID")
    paragraph_id: str = Field(..., description="Paragraph ID")


class QuestionAnswerRequest(BaseModel):
    """Request model for saving a paragraph Q&A pair."""
    question: str = Field(..., min_length=1, description="Reader's question")
    answer: str = Field(..., min_length=1, description="Answer shown to the reader")
    model_tag: Optional[str] = Field(default=None, description="Model that produced the answer")


class KnowledgeCheckRequest(BaseModel):
    """Request model for recording a chapter knowledge check."""
    questions: List[Dict[str, Any]] = Field(..., description="Questions as presented")
    answers: List[Dict[str, Any]] = Field(..., description="Reader's answers")
    score: int = Field(..., ge=1, le=10, description="Overall score (1-10)")
    feedback: Optional[Dict[str, Any]] = Field(default=None, description="Grading feedback")
    model_tag: Optional[str] = Field(default=None, description="Model used for the check")
    duration_seconds: Optional[int] = Field(default=None, ge=0, description="Time spent")
