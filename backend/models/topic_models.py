"""
Data models for topics, outlines, chapters and paragraphs.
"""
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Optional, Any

from core.config import DEFAULT_DIFFICULTY, DEFAULT_MAX_CHAPTERS, DEFAULT_PARAGRAPH_MAX_WORDS

TOPIC_ORIGINS = ("direct-topic", "url", "image")


@dataclass
class Topic:
    """A learning subject scoped to one owner"""
    topic_id: str
    owner_id: str
    title: str
    origin: str = "direct-topic"  # 'direct-topic' | 'url' | 'image'
    source_locator: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class OutlineOptions:
    """Parameters an outline was (or will be) generated with"""
    difficulty: str = DEFAULT_DIFFICULTY
    max_chapters: int = DEFAULT_MAX_CHAPTERS
    context: Optional[str] = None
    extra_description: Optional[str] = None  # e.g. from a mind-map node

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "OutlineOptions":
        data = data or {}
        return cls(
            difficulty=data.get("difficulty") or DEFAULT_DIFFICULTY,
            max_chapters=int(data.get("max_chapters") or DEFAULT_MAX_CHAPTERS),
            context=data.get("context"),
            extra_description=data.get("extra_description"),
        )


@dataclass
class ParagraphOptions:
    """Per-request knobs for generating one paragraph body"""
    difficulty: str = DEFAULT_DIFFICULTY
    max_words: int = DEFAULT_PARAGRAPH_MAX_WORDS
    include_examples: bool = True


@dataclass
class Paragraph:
    """
    One paragraph of a chapter.

    The lifecycle is carried by the data itself: a stub has no content and
    ``generated=False``; a generated paragraph has content and a
    ``generated_at`` timestamp. Any other combination is rejected.
    """
    paragraph_id: str
    chapter_id: str
    topic_id: str
    index: int  # 1-based, contiguous within the chapter
    summary: str
    content: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    generated: bool = False
    generated_at: Optional[str] = None

    def __post_init__(self):
        if self.generated:
            if self.content is None or self.generated_at is None:
                raise ValueError(
                    f"Generated paragraph {self.paragraph_id} must have content and generated_at"
                )
        elif self.content is not None or self.generated_at is not None:
            raise ValueError(f"Stub paragraph {self.paragraph_id} must not carry content")

    @property
    def is_stub(self) -> bool:
        return not self.generated

    @property
    def state(self) -> str:
        return "generated" if self.generated else "stub"


@dataclass
class Chapter:
    """Ordered child of an outline"""
    chapter_id: str
    topic_id: str
    index: int  # 1-based, contiguous within the topic
    title: str
    description: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    paragraphs: List[Paragraph] = field(default_factory=list)

    @property
    def total_paragraphs(self) -> int:
        return len(self.paragraphs)

    @property
    def generated_paragraphs(self) -> int:
        return sum(1 for p in self.paragraphs if p.generated)


@dataclass
class Outline:
    """Chapter/paragraph skeleton for a topic"""
    topic_id: str
    title: str
    description: str = ""
    difficulty: str = DEFAULT_DIFFICULTY
    estimated_minutes: int = 0
    total_chapters: int = 0
    total_paragraphs: int = 0
    generation_options: OutlineOptions = field(default_factory=OutlineOptions)
    model_tag: Optional[str] = None
    created_at: Optional[str] = None
    chapters: List[Chapter] = field(default_factory=list)


@dataclass
class OutlineProgress:
    """How much of an outline has been generated so far"""
    has_outline: bool
    total_chapters: int = 0
    total_paragraphs: int = 0
    generated_paragraphs: int = 0
    completion_percentage: int = 0


@dataclass
class ReadingRecord:
    """Durable fact that an owner has (or has not) read a paragraph"""
    owner_id: str
    topic_id: str
    chapter_id: str
    paragraph_id: str
    content_fingerprint: str
    is_read: bool = False
    read_at: Optional[str] = None
