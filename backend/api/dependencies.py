"""
Shared FastAPI dependencies.
"""
from fastapi import Header

from core.pipeline import LearningPipeline, pipeline


def get_pipeline() -> LearningPipeline:
    """The pipeline serving requests; overridden in tests."""
    return pipeline


def get_owner_id(x_owner_id: str = Header(..., min_length=1, description="Owner (session) ID")) -> str:
    return x_owner_id
