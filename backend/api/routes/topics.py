"""
Topic API routes.
"""
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_owner_id, get_pipeline
from api.models.requests import TopicCreateRequest, TopicUpdateRequest
from api.models.responses import TopicResponse
from core.pipeline import LearningPipeline

router = APIRouter()


@router.post("", response_model=TopicResponse)
def get_or_create_topic(
    request: TopicCreateRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Resolve the topic for this owner, creating it on first request."""
    try:
        topic = pipeline.get_or_create_topic(
            request.title,
            owner_id,
            origin=request.origin,
            source_locator=request.source_locator,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return TopicResponse(**asdict(topic))


@router.get("", response_model=List[TopicResponse])
def list_topics(
    limit: int = Query(default=20, ge=1, le=100),
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Recently created topics for the owner."""
    return [TopicResponse(**asdict(topic)) for topic in pipeline.list_topics(owner_id, limit)]


@router.get("/search", response_model=List[TopicResponse])
def search_topics(
    q: str = Query(..., min_length=1),
    limit: int = Query(default=10, ge=1, le=50),
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    topics = pipeline.topics.search_topics(owner_id, q, limit)
    return [TopicResponse(**asdict(topic)) for topic in topics]


@router.get("/{topic_id}", response_model=TopicResponse)
def get_topic(
    topic_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    topic = pipeline.topics.require_topic(topic_id, owner_id)
    return TopicResponse(**asdict(topic))


@router.patch("/{topic_id}", response_model=TopicResponse)
def update_topic(
    topic_id: str,
    request: TopicUpdateRequest,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    try:
        topic = pipeline.topics.update_topic(
            topic_id,
            owner_id,
            display_title=request.display_title,
            source_locator=request.source_locator,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return TopicResponse(**asdict(topic))


@router.delete("/{topic_id}")
def delete_topic(
    topic_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Delete the topic with its outline, paragraphs, progress and cache entries."""
    pipeline.delete_topic(topic_id, owner_id)
    return {"deleted": True, "topic_id": topic_id}
