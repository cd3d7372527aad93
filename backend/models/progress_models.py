"""
Data models for reading progress, completion and resumption.
"""
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ReadingSession:
    """Time a paragraph spent in the reader's view"""
    paragraph_id: str
    start_time: float  # monotonic seconds
    end_time: Optional[float] = None
    is_active: bool = True

    @property
    def elapsed_seconds(self) -> int:
        if self.end_time is None:
            return 0
        return int(round(self.end_time - self.start_time))


@dataclass
class ChapterProgress:
    """Derived reading state of one chapter"""
    chapter_id: str
    total_paragraphs: int
    read_paragraphs: int
    progress_percentage: int
    total_time_spent: int = 0  # seconds, from this tracker's sessions
    last_activity: Optional[str] = None
    is_complete: bool = False
    completed_at: Optional[str] = None  # max read_at when complete


@dataclass
class ChapterCompletionEvent:
    """Emitted once when a chapter transitions into the complete state"""
    owner_id: str
    topic_id: str
    chapter_id: str
    completed_at: str
    total_paragraphs: int
    time_spent: int = 0


@dataclass
class NextParagraph:
    paragraph_id: str
    paragraph_index: int
    summary: Optional[str] = None


@dataclass
class NextChapter:
    """The next actionable place to resume reading"""
    chapter_id: str
    chapter_title: str
    chapter_index: int
    next_paragraph: Optional[NextParagraph] = None


@dataclass
class ProgressSummary:
    chapters_started: int = 0
    chapters_completed: int = 0
    average_chapter_progress: float = 0.0
    estimated_time_remaining: int = 0  # minutes


@dataclass
class ResumptionInfo:
    """Re-entry analysis for a topic"""
    topic_id: str
    has_existing_content: bool = False
    has_progress: bool = False
    total_chapters: int = 0
    total_paragraphs: int = 0
    read_paragraphs: int = 0
    completed_chapters: int = 0
    overall_progress: int = 0
    last_activity: Optional[str] = None
    recommended_action: str = "explore"  # 'continue' | 'restart' | 'explore'
    next_chapter: Optional[NextChapter] = None
    progress_summary: ProgressSummary = field(default_factory=ProgressSummary)
