"""
Content cache inspection and maintenance routes.
"""
from fastapi import APIRouter, Depends, Query

from api.dependencies import get_owner_id, get_pipeline
from core.config import CACHE_MAX_AGE_HOURS
from core.pipeline import LearningPipeline

router = APIRouter()


@router.get("/cache/stats")
def cache_stats(pipeline: LearningPipeline = Depends(get_pipeline)):
    """Entry counts and average generation time across the durable cache."""
    return pipeline.cache.get_stats()


@router.get("/topics/{topic_id}/cache")
def cache_freshness(
    topic_id: str,
    max_age_hours: int = Query(default=CACHE_MAX_AGE_HOURS, ge=1),
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Whether the topic's cached outline is missing or older than ``max_age_hours``."""
    pipeline.topics.require_topic(topic_id, owner_id)
    return {
        "topic_id": topic_id,
        "should_regenerate": pipeline.cache.should_regenerate(topic_id, max_age_hours),
    }


@router.delete("/topics/{topic_id}/cache")
def clear_cache(
    topic_id: str,
    owner_id: str = Depends(get_owner_id),
    pipeline: LearningPipeline = Depends(get_pipeline),
):
    """Drop cached artifacts for the topic; its outline and progress are kept."""
    pipeline.topics.require_topic(topic_id, owner_id)
    return {"topic_id": topic_id, "removed": pipeline.cache.clear_topic_cache(topic_id)}
