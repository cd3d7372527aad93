"""
Outline generation: prompt, model call, strict validation and stub construction.
"""
import logging
import time
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.config import (
    DIFFICULTY_LEVELS,
    MAX_PARAGRAPHS_PER_CHAPTER,
    MIN_PARAGRAPHS_PER_CHAPTER,
)
from core.errors import ValidationFailure
from core.inflight import CancelToken
from core.ollama_client import ContentGenerator, ollama
from core.prompt_manager import PromptManager, prompt_manager
from models.topic_models import Chapter, Outline, OutlineOptions, Paragraph
from services.caching.content_cache import ContentCache, GenerationInputs, content_cache
from services.identity.identity_resolver import IdentityResolver

logger = logging.getLogger(__name__)


class ChapterSchema(BaseModel):
    model_config = ConfigDict(strict=True)

    title: str = Field(..., min_length=1)
    description: str
    paragraph_summaries: List[str] = Field(
        ..., min_length=MIN_PARAGRAPHS_PER_CHAPTER, max_length=MAX_PARAGRAPHS_PER_CHAPTER
    )

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chapter title is blank")
        return value.strip()

    @field_validator("paragraph_summaries")
    @classmethod
    def summaries_not_blank(cls, value: List[str]) -> List[str]:
        if any(not summary.strip() for summary in value):
            raise ValueError("paragraph summaries must not be blank")
        return [summary.strip() for summary in value]


class OutlineSchema(BaseModel):
    """Shape the generator must return; anything else is rejected whole."""
    model_config = ConfigDict(strict=True)

    title: str = Field(..., min_length=1)
    description: str
    difficulty: Literal["beginner", "intermediate", "advanced"]
    estimated_minutes: float = Field(..., ge=0)
    chapters: List[ChapterSchema] = Field(..., min_length=1)


def validate_outline(data: Dict[str, Any], max_chapters: int) -> OutlineSchema:
    """Validate a raw generator response against the outline schema."""
    try:
        outline = OutlineSchema.model_validate(data)
    except ValidationError as e:
        raise ValidationFailure(f"Outline failed validation: {e.error_count()} error(s): {e}") from e

    if len(outline.chapters) > max_chapters:
        raise ValidationFailure(
            f"Outline has {len(outline.chapters)} chapters; at most {max_chapters} allowed"
        )
    return outline


def build_outline(
    topic_id: str,
    validated: OutlineSchema,
    options: OutlineOptions,
    model_tag: Optional[str],
) -> Outline:
    """Assign contiguous indices and derived ids, seeding each paragraph as a stub."""
    chapter_count = len(validated.chapters)
    estimated_minutes = int(round(validated.estimated_minutes))
    per_chapter_minutes = int(round(estimated_minutes / chapter_count))

    chapters = []
    for chapter_index, chapter_data in enumerate(validated.chapters, start=1):
        chapter_id = IdentityResolver.chapter_id(topic_id, chapter_index)
        paragraphs = [
            Paragraph(
                paragraph_id=IdentityResolver.paragraph_id(chapter_id, paragraph_index),
                chapter_id=chapter_id,
                topic_id=topic_id,
                index=paragraph_index,
                summary=summary,
            )
            for paragraph_index, summary in enumerate(chapter_data.paragraph_summaries, start=1)
        ]
        chapters.append(Chapter(
            chapter_id=chapter_id,
            topic_id=topic_id,
            index=chapter_index,
            title=chapter_data.title,
            description=chapter_data.description,
            metadata={
                "paragraph_count": len(paragraphs),
                "estimated_minutes": per_chapter_minutes,
                "difficulty": validated.difficulty,
            },
            paragraphs=paragraphs,
        ))

    return Outline(
        topic_id=topic_id,
        title=validated.title.strip(),
        description=validated.description,
        difficulty=validated.difficulty,
        estimated_minutes=estimated_minutes,
        total_chapters=chapter_count,
        total_paragraphs=sum(chapter.total_paragraphs for chapter in chapters),
        generation_options=options,
        model_tag=model_tag,
        chapters=chapters,
    )


class OutlineGenerator:
    """Produces validated, not yet persisted outlines."""

    def __init__(
        self,
        generator: Optional[ContentGenerator] = None,
        prompts: Optional[PromptManager] = None,
        cache: Optional[ContentCache] = None,
    ):
        self.generator = generator or ollama
        self.prompts = prompts or prompt_manager
        self.cache = cache or content_cache

    @staticmethod
    def cache_inputs(title: str, options: OutlineOptions) -> GenerationInputs:
        return GenerationInputs(title=title, context=options.context, difficulty=options.difficulty)

    def build_prompt(self, title: str, options: OutlineOptions) -> str:
        """Fill the outline template with the topic and its generation options."""
        context_lines = []
        if options.context:
            context_lines.append(f"Context: {options.context.strip()}")
        if options.extra_description:
            context_lines.append(f"Focus: {options.extra_description.strip()}")
        context_block = "\n" + "\n".join(context_lines) + "\n" if context_lines else ""

        return self.prompts.render(
            "outline_generation",
            topic=title.strip(),
            difficulty=options.difficulty,
            context_block=context_block,
            max_chapters=options.max_chapters,
            min_paragraphs=MIN_PARAGRAPHS_PER_CHAPTER,
            max_paragraphs=MAX_PARAGRAPHS_PER_CHAPTER,
        )

    def generate(
        self,
        topic_id: str,
        title: str,
        options: Optional[OutlineOptions] = None,
        use_cache: bool = True,
        cancel_token: Optional[CancelToken] = None,
    ) -> Outline:
        """
        Produce an outline for a topic.

        Args:
            topic_id: Resolved topic id the chapters and paragraphs are derived from
            title: Topic title
            options: Difficulty, chapter limit and context
            use_cache: Consult the durable cache before calling the generator
            cancel_token: Checked after the model returns

        Returns:
            Outline with chapters and paragraph stubs, not yet persisted

        Raises:
            ValidationFailure: the generator's response did not match the schema
            GenerationFailure: the generator failed or the call was cancelled
        """
        options = options or OutlineOptions()
        if options.difficulty not in DIFFICULTY_LEVELS:
            raise ValidationFailure(f"Unknown difficulty: {options.difficulty}")
        if options.max_chapters < 1:
            raise ValidationFailure("max_chapters must be at least 1")

        inputs = self.cache_inputs(title, options)

        if use_cache:
            cached = self._load_cached(topic_id, inputs, options)
            if cached is not None:
                return cached

        prompt = self.build_prompt(title, options)
        logger.info(f"Generating outline for {title!r} ({options.difficulty}, max {options.max_chapters} chapters)")

        start = time.monotonic()
        raw = self.generator.generate_outline(prompt)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(f"Outline generation for {topic_id}")

        validated = validate_outline(raw, options.max_chapters)
        model_tag = getattr(self.generator, "model_tag", None)
        outline = build_outline(topic_id, validated, options, model_tag)

        artifact = validated.model_dump()
        artifact["model_tag"] = model_tag
        self.cache.schedule_put(topic_id, artifact, inputs, elapsed_ms, "outline")

        logger.info(
            f"Generated outline for {title!r}: {outline.total_chapters} chapters, "
            f"{outline.total_paragraphs} paragraphs in {elapsed_ms}ms"
        )
        return outline

    def _load_cached(self, topic_id: str, inputs: GenerationInputs, options: OutlineOptions) -> Optional[Outline]:
        artifact = self.cache.get_cached(topic_id, inputs, "outline") or self.cache.get_by_fingerprint(inputs, "outline")
        if artifact is None:
            return None
        try:
            validated = validate_outline(artifact, options.max_chapters)
        except ValidationFailure as e:
            logger.info(f"Ignoring cached outline for topic {topic_id}: {e}")
            return None

        logger.info(f"Using cached outline for topic {topic_id}")
        return build_outline(topic_id, validated, options, artifact.get("model_tag"))

