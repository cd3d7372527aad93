"""
Pydantic response models for API endpoints.
"""
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any


class TopicResponse(BaseModel):
    """Response model for a topic."""
    topic_id: str
    owner_id: str
    title: str
    origin: str
    source_locator: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ParagraphResponse(BaseModel):
    """A paragraph stub or generated paragraph."""
    paragraph_id: str
    chapter_id: str
    topic_id: str
    index: int
    summary: str
    content: Optional[str] = None
    metadata: Dict[str, Any] = {}
    generated: bool = False
    generated_at: Optional[str] = None


class ChapterResponse(BaseModel):
    """Outline chapter with its paragraphs."""
    chapter_id: str
    topic_id: str
    index: int
    title: str
    description: Optional[str] = None
    metadata: Dict[str, Any] = {}
    paragraphs: List[ParagraphResponse] = []


class GenerationOptions(BaseModel):
    difficulty: str
    max_chapters: int
    context: Optional[str] = None
    extra_description: Optional[str] = None


class OutlineResponse(BaseModel):
    """Response model for outline retrieval."""
    topic_id: str
    title: str
    description: str = ""
    difficulty: str
    estimated_minutes: int = 0
    total_chapters: int = 0
    total_paragraphs: int = 0
    generation_options: GenerationOptions
    model_tag: Optional[str] = None
    created_at: Optional[str] = None
    chapters: List[ChapterResponse] = []


class OutlineProgressResponse(BaseModel):
    """How much of an outline has been generated."""
    has_outline: bool
    total_chapters: int = 0
    total_paragraphs: int = 0
    generated_paragraphs: int = 0
    completion_percentage: int = Field(default=0, ge=0, le=100)


class ChapterProgressResponse(BaseModel):
    """Reading progress for one chapter."""
    chapter_id: str
    total_paragraphs: int
    read_paragraphs: int
    progress_percentage: int = Field(ge=0, le=100)
    total_time_spent: int = 0
    last_activity: Optional[str] = None
    is_complete: bool = False
    completed_at: Optional[str] = None


class MarkReadResponse(BaseModel):
    """Response model for a read/unread update."""
    success: bool
    chapter_progress: Optional[ChapterProgressResponse] = None


class NextParagraphInfo(BaseModel):
    paragraph_id: str
    paragraph_index: int
    summary: Optional[str] = None


class NextChapterInfo(BaseModel):
    chapter_id: str
    chapter_title: str
    chapter_index: int
    next_paragraph: Optional[NextParagraphInfo] = None


class ProgressSummaryInfo(BaseModel):
    chapters_started: int = 0
    chapters_completed: int = 0
    average_chapter_progress: float = 0.0
    estimated_time_remaining: int = 0


class ResumptionResponse(BaseModel):
    """Re-entry analysis with display text."""
    topic_id: str
    has_existing_content: bool
    has_progress: bool
    total_chapters: int
    total_paragraphs: int
    read_paragraphs: int
    completed_chapters: int
    overall_progress: int = Field(ge=0, le=100)
    last_activity: Optional[str] = None
    recommended_action: str
    next_chapter: Optional[NextChapterInfo] = None
    progress_summary: ProgressSummaryInfo
    progress_description: str
    recommended_action_text: str
    time_estimate_text: str


class QuestionAnswerResponse(BaseModel):
    """A saved paragraph question and answer."""
    qa_id: str
    paragraph_id: str
    chapter_id: str
    topic_id: str
    content_fingerprint: str
    question: str
    answer: str
    model_tag: Optional[str] = None
    created_at: Optional[str] = None


class KnowledgeCheckResponse(BaseModel):
    """A recorded chapter knowledge check."""
    check_id: str
    chapter_id: str
    topic_id: str
    questions: List[Dict[str, Any]] = []
    answers: List[Dict[str, Any]] = []
    score: int = Field(ge=1, le=10)
    feedback: Optional[Dict[str, Any]] = None
    model_tag: Optional[str] = None
    duration_seconds: Optional[int] = None
    created_at: Optional[str] = None
