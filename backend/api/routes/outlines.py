"""
Outline and paragraph generation API routes.
"""
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_owner_id, get_pipeline
from api.models.requests import (
    OutlineRequest,
    ParagraphGenerateRequest,
    QuestionAnswerRequest,
    RegenerateOutlineRequest,
)
from api.models.responses import (
    OutlineProgressResponse,
    OutlineResponse,
    ParagraphResponse,
    QuestionAnswerResponse,
)
from core.pipeline import LearningPipeline
from models.topic_models import OutlineOptions, ParagraphOptions

router = APIRouter()


def _outline_options(request: OutlineRequest) -> OutlineOptions:
    return OutlineOptions(
        difficulty=request.difficulty,
        max_chapters=request.max_chapters,
        context=request.context,
        extra_description=request.extra_description,
    )


@router.get("/{topic_id}/outline", response_model=OutlineResponse)
def get_outline(
    topic_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Fetch the existing outline without generating anything."""
    pipeline.topics.require_topic(topic_id, owner_id)
    outline = pipeline.get_existing_outline(topic_id)
    if outline is None:
        raise HTTPException(status_code=404, detail="Outline not generated yet")
    return OutlineResponse(**asdict(outline))


@router.post("/{topic_id}/outline", response_model=OutlineResponse)
def ensure_outline(
    topic_id: str,
    request: OutlineRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Return the outline, generating it only if the topic has none."""
    pipeline.topics.require_topic(topic_id, owner_id)
    outline = pipeline.ensure_outline(topic_id, _outline_options(request))
    return OutlineResponse(**asdict(outline))


@router.post("/{topic_id}/outline/regenerate", response_model=OutlineResponse)
def regenerate_outline(
    topic_id: str,
    request: RegenerateOutlineRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Replace the outline. Deletes every generated paragraph and all reading progress."""
    pipeline.topics.require_topic(topic_id, owner_id)
    outline = pipeline.regenerate_outline(topic_id, _outline_options(request), confirm=request.confirm)
    return OutlineResponse(**asdict(outline))


@router.get("/{topic_id}/outline/progress", response_model=OutlineProgressResponse)
def get_outline_progress(
    topic_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    pipeline.topics.require_topic(topic_id, owner_id)
    return OutlineProgressResponse(**asdict(pipeline.get_outline_progress(topic_id)))


def _paragraph_options(request: Optional[ParagraphGenerateRequest]) -> Optional[ParagraphOptions]:
    if request is None:
        return None
    options = ParagraphOptions(max_words=request.max_words, include_examples=request.include_examples)
    if request.difficulty:
        options.difficulty = request.difficulty
    return options


@router.post("/{topic_id}/paragraphs/{paragraph_id}/generate", response_model=ParagraphResponse)
def generate_paragraph(
    topic_id: str,
    paragraph_id: str,
    request: Optional[ParagraphGenerateRequest] = None,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Generate one paragraph body; returns the stored body if it already exists."""
    pipeline.topics.require_topic(topic_id, owner_id)
    paragraph = pipeline.generate_paragraph(topic_id, paragraph_id, _paragraph_options(request))
    return ParagraphResponse(**asdict(paragraph))


@router.post("/{topic_id}/chapters/{chapter_id}/next", response_model=Optional[ParagraphResponse])
def generate_next_paragraph(
    topic_id: str,
    chapter_id: str,
    request: Optional[ParagraphGenerateRequest] = None,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Generate the chapter's next stub ("explain next"); null when all are generated."""
    pipeline.topics.require_topic(topic_id, owner_id)
    paragraph = pipeline.generate_next_paragraph(topic_id, chapter_id, _paragraph_options(request))
    return ParagraphResponse(**asdict(paragraph)) if paragraph else None


@router.get("/{topic_id}/paragraphs/{paragraph_id}/questions", response_model=List[QuestionAnswerResponse])
def list_questions(
    topic_id: str,
    paragraph_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    pipeline.topics.require_topic(topic_id, owner_id)
    return [
        QuestionAnswerResponse(**asdict(qa))
        for qa in pipeline.assessments.list_questions(owner_id, topic_id, paragraph_id)
    ]


@router.post("/{topic_id}/paragraphs/{paragraph_id}/questions", response_model=QuestionAnswerResponse)
def save_question(
    topic_id: str,
    paragraph_id: str,
    request: QuestionAnswerRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    pipeline.topics.require_topic(topic_id, owner_id)
    try:
        qa = pipeline.assessments.save_question_answer(
            owner_id, topic_id, paragraph_id, request.question, request.answer, request.model_tag
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return QuestionAnswerResponse(**asdict(qa))
