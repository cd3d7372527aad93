"""
On-demand generation of single paragraph bodies.
"""
import logging
import time
from typing import Optional

from core.errors import GenerationFailure, NotFound
from core.inflight import CancelToken, InFlightRegistry
from core.ollama_client import ContentGenerator, ollama
from core.prompt_manager import PromptManager, prompt_manager
from models.topic_models import Chapter, Paragraph, ParagraphOptions
from services.caching.content_cache import ContentCache, GenerationInputs, content_cache
from services.storage.outline_store import OutlineStore, outline_store
from services.utils import calculate_reading_time, clean_text

logger = logging.getLogger(__name__)


class ParagraphGenerator:
    """Fills one paragraph stub at a time, coalescing concurrent requests for the same id."""

    def __init__(
        self,
        generator: Optional[ContentGenerator] = None,
        outlines: Optional[OutlineStore] = None,
        registry: Optional[InFlightRegistry] = None,
        prompts: Optional[PromptManager] = None,
        cache: Optional[ContentCache] = None,
    ):
        self.generator = generator or ollama
        self.outlines = outlines or outline_store
        self.registry = registry or InFlightRegistry()
        self.prompts = prompts or prompt_manager
        self.cache = cache or content_cache

    @staticmethod
    def cache_inputs(topic_title: str, chapter: Chapter, paragraph: Paragraph, options: ParagraphOptions) -> GenerationInputs:
        context = (
            f"{chapter.title} {paragraph.index} {paragraph.summary} "
            f"words={options.max_words} examples={options.include_examples}"
        )
        return GenerationInputs(title=topic_title, context=context, difficulty=options.difficulty)

    def build_prompt(
        self,
        paragraph: Paragraph,
        chapter: Chapter,
        topic_title: str,
        options: ParagraphOptions,
    ) -> str:
        previous = next(
            (p for p in chapter.paragraphs if p.index == paragraph.index - 1),
            None,
        )
        examples_instruction = (
            "Include one short concrete example." if options.include_examples else "Do not include examples."
        )
        return self.prompts.render(
            "paragraph_generation",
            difficulty=options.difficulty,
            topic=topic_title,
            chapter_title=chapter.title,
            paragraph_index=paragraph.index,
            summary=paragraph.summary,
            previous_summary=previous.summary if previous else "None (this is the first paragraph)",
            max_words=options.max_words,
            examples_instruction=examples_instruction,
        )

    def generate(
        self,
        paragraph_id: str,
        topic_title: str,
        options: Optional[ParagraphOptions] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Paragraph:
        """
        Return the generated paragraph, generating its body if it is still a stub.

        Raises:
            NotFound: the paragraph does not exist
            GenerationFailure: the generator failed, timed out or was cancelled; the stub is untouched
        """
        options = options or ParagraphOptions()

        paragraph = self.outlines.get_paragraph(paragraph_id)
        if paragraph is None:
            raise NotFound(f"Paragraph not found: {paragraph_id}")
        if paragraph.generated:
            return paragraph

        return self.registry.run(
            paragraph_id,
            lambda token: self._generate_body(paragraph_id, topic_title, options, token),
            cancel_token=cancel_token,
        )

    def _generate_body(
        self,
        paragraph_id: str,
        topic_title: str,
        options: ParagraphOptions,
        token: CancelToken,
    ) -> Paragraph:
        # Re-read inside the worker: an earlier run may have finished meanwhile
        paragraph = self.outlines.get_paragraph(paragraph_id)
        if paragraph is None:
            raise NotFound(f"Paragraph not found: {paragraph_id}")
        if paragraph.generated:
            return paragraph

        chapter = self.outlines.get_chapter(paragraph.chapter_id)
        if chapter is None:
            raise NotFound(f"Chapter not found: {paragraph.chapter_id}")

        inputs = self.cache_inputs(topic_title, chapter, paragraph, options)
        cached = self.cache.get_by_fingerprint(inputs, "paragraph")

        from_cache = bool(cached and cached.get("content"))
        start = time.monotonic()
        if from_cache:
            content = cached["content"]
            model_tag = cached.get("model_tag")
            logger.info(f"Using cached body for paragraph {paragraph_id}")
        else:
            prompt = self.build_prompt(paragraph, chapter, topic_title, options)
            try:
                content = clean_text(self.generator.generate_paragraph(prompt))
            except GenerationFailure as e:
                logger.error(f"Paragraph generation failed for {paragraph_id}: {e}")
                raise
            model_tag = getattr(self.generator, "model_tag", None)
            if not content:
                raise GenerationFailure(f"Generator returned an empty body for {paragraph_id}")
        elapsed_ms = int((time.monotonic() - start) * 1000)

        token.raise_if_cancelled(f"Generation for {paragraph_id}")

        metadata = {
            "word_count": len(content.split()),
            "reading_time_minutes": calculate_reading_time(content),
            "difficulty": options.difficulty,
            "model_tag": model_tag,
            "processing_time_ms": elapsed_ms,
            "from_cache": from_cache,
        }
        generated = self.outlines.mark_generated(paragraph_id, content, paragraph.summary, metadata)

        if not from_cache:
            self.cache.schedule_put(
                paragraph.topic_id,
                {"content": content, "model_tag": model_tag},
                inputs,
                elapsed_ms,
                "paragraph",
            )
        logger.info(f"Generated paragraph {paragraph_id} ({metadata['word_count']} words, {elapsed_ms}ms)")
        return generated
