"""
Reading progress, resumption and knowledge-check API routes.
"""
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_owner_id, get_pipeline
from api.models.requests import KnowledgeCheckRequest, MarkReadRequest, MarkUnreadRequest
from api.models.responses import (
    ChapterProgressResponse,
    KnowledgeCheckResponse,
    MarkReadResponse,
    ResumptionResponse,
)
from core.pipeline import LearningPipeline
from services.progress.resumption_planner import (
    progress_description,
    recommended_action_text,
    time_estimate_text,
)

router = APIRouter()


@router.post("/{topic_id}/progress/read", response_model=MarkReadResponse)
def mark_read(
    topic_id: str,
    request: MarkReadRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Mark a generated paragraph read. 409 means the displayed content is stale."""
    pipeline.topics.require_topic(topic_id, owner_id)
    success = pipeline.mark_read(owner_id, topic_id, request.chapter_id, request.paragraph_id, request.content)
    progress = pipeline.tracker_for(owner_id).get_chapter_progress(topic_id, request.chapter_id)
    return MarkReadResponse(
        success=success,
        chapter_progress=ChapterProgressResponse(**asdict(progress)) if progress else None,
    )


@router.post("/{topic_id}/progress/unread", response_model=MarkReadResponse)
def mark_unread(
    topic_id: str,
    request: MarkUnreadRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    pipeline.topics.require_topic(topic_id, owner_id)
    success = pipeline.mark_unread(owner_id, topic_id, request.chapter_id, request.paragraph_id)
    progress = pipeline.tracker_for(owner_id).get_chapter_progress(topic_id, request.chapter_id)
    return MarkReadResponse(
        success=success,
        chapter_progress=ChapterProgressResponse(**asdict(progress)) if progress else None,
    )


@router.get("/{topic_id}/progress", response_model=List[ChapterProgressResponse])
def get_topic_progress(
    topic_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Per-chapter reading progress, in chapter order."""
    pipeline.topics.require_topic(topic_id, owner_id)
    return [
        ChapterProgressResponse(**asdict(progress))
        for progress in pipeline.tracker_for(owner_id).get_topic_progress(topic_id)
    ]


@router.get("/{topic_id}/resumption", response_model=ResumptionResponse)
def analyze_resumption(
    topic_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Where to pick up reading, with display text."""
    pipeline.topics.require_topic(topic_id, owner_id)
    info = pipeline.analyze_resumption(owner_id, topic_id)
    return ResumptionResponse(
        **asdict(info),
        progress_description=progress_description(info),
        recommended_action_text=recommended_action_text(info),
        time_estimate_text=time_estimate_text(info.progress_summary.estimated_time_remaining),
    )


@router.post("/{topic_id}/chapters/{chapter_id}/checks", response_model=KnowledgeCheckResponse)
def record_knowledge_check(
    topic_id: str,
    chapter_id: str,
    request: KnowledgeCheckRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    pipeline.topics.require_topic(topic_id, owner_id)
    try:
        check = pipeline.assessments.record_knowledge_check(
            owner_id,
            topic_id,
            chapter_id,
            questions=request.questions,
            answers=request.answers,
            score=request.score,
            feedback=request.feedback,
            model_tag=request.model_tag,
            duration_seconds=request.duration_seconds,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return KnowledgeCheckResponse(**asdict(check))


@router.get("/{topic_id}/chapters/{chapter_id}/checks", response_model=List[KnowledgeCheckResponse])
def list_knowledge_checks(
    topic_id: str,
    chapter_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    pipeline.topics.require_topic(topic_id, owner_id)
    return [
        KnowledgeCheckResponse(**asdict(check))
        for check in pipeline.assessments.list_knowledge_checks(owner_id, topic_id, chapter_id)
    ]
