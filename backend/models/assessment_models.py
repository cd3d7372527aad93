"""
Data models for paragraph Q&A and chapter knowledge checks.
"""
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any


@dataclass
class QuestionAnswer:
    """A question asked about one paragraph and its answer"""
    qa_id: str
    owner_id: str
    topic_id: str
    chapter_id: str
    paragraph_id: str
    content_fingerprint: str  # paragraph body the question was asked against
    question: str
    answer: str
    model_tag: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class KnowledgeCheck:
    """One assessment attempt for a completed chapter"""
    check_id: str
    owner_id: str
    topic_id: str
    chapter_id: str
    questions: List[Dict[str, Any]] = field(default_factory=list)
    answers: List[Dict[str, Any]] = field(default_factory=list)
    score: int = 1  # 1-10
    feedback: Optional[Dict[str, Any]] = None
    model_tag: Optional[str] = None
    duration_seconds: Optional[int] = None
    created_at: Optional[str] = None
