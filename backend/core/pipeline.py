"""
Main pipeline orchestration for progressive learning content.

Topic request -> deterministic topic id -> outline (generated once, persisted
atomically) -> paragraph bodies generated on demand -> reading progress and
resumption.
"""
import logging
import threading
from collections import OrderedDict
from typing import Callable, List, Optional

from core.config import TRACKER_CACHE_SIZE
from core.database import Database, db
from core.errors import ConfirmationRequired, NotFound
from core.inflight import CancelToken, InFlightRegistry
from core.ollama_client import ContentGenerator
from core.prompt_manager import PromptManager
from models.progress_models import ResumptionInfo
from models.topic_models import Chapter, Outline, OutlineOptions, OutlineProgress, Paragraph, ParagraphOptions, Topic
from services.caching.content_cache import ContentCache, content_cache
from services.caching.topic_tree_cache import TopicTreeCache
from services.generation.outline_generator import OutlineGenerator
from services.generation.paragraph_generator import ParagraphGenerator
from services.progress.progress_tracker import ProgressTracker
from services.progress.resumption_planner import ResumptionPlanner
from services.storage.assessment_store import AssessmentStore
from services.storage.outline_store import OutlineStore
from services.storage.topic_store import TopicStore

logger = logging.getLogger(__name__)

ChapterCallback = Callable[[Chapter], None]


class LearningPipeline:
    """Entry points for topics, outlines, paragraphs and progress."""

    def __init__(
        self,
        database: Optional[Database] = None,
        generator: Optional[ContentGenerator] = None,
        cache: Optional[ContentCache] = None,
        registry: Optional[InFlightRegistry] = None,
        tree_cache: Optional[TopicTreeCache] = None,
        prompts: Optional[PromptManager] = None,
        max_trackers: int = TRACKER_CACHE_SIZE,
    ):
        self.db = database or db
        if cache is None:
            cache = content_cache if database is None else ContentCache(self.db)
        self.cache = cache
        self.registry = registry or InFlightRegistry()
        self.tree_cache = tree_cache or TopicTreeCache()

        self.topics = TopicStore(self.db)
        self.outlines = OutlineStore(self.db)
        self.assessments = AssessmentStore(self.db, self.outlines)
        self.outline_generator = OutlineGenerator(generator, prompts, self.cache)
        self.paragraph_generator = ParagraphGenerator(generator, self.outlines, self.registry, prompts, self.cache)

        self.max_trackers = max_trackers
        self._trackers: "OrderedDict[str, ProgressTracker]" = OrderedDict()
        self._trackers_lock = threading.Lock()

    # Topics

    def get_or_create_topic(
        self,
        title: str,
        owner_id: str,
        origin: str = "direct-topic",
        source_locator: Optional[str] = None,
    ) -> Topic:
        return self.topics.get_or_create_topic(title, owner_id, origin, source_locator)

    def delete_topic(self, topic_id: str, owner_id: str) -> bool:
        """Delete the topic and everything hanging off it."""
        deleted = self.topics.delete_topic(topic_id, owner_id)
        self.tree_cache.invalidate(topic_id)
        return deleted

    # Outlines

    def get_existing_outline(self, topic_id: str) -> Optional[Outline]:
        """Read the outline tree, from the process tier when it is warm."""
        outline = self.tree_cache.get(topic_id)
        if outline is not None:
            return outline
        version = self.tree_cache.version(topic_id)
        outline = self.outlines.get_existing_outline(topic_id)
        if outline is not None:
            self.tree_cache.put(topic_id, outline, version)
        return outline

    def ensure_outline(
        self,
        topic_id: str,
        options: Optional[OutlineOptions] = None,
        on_chapter: Optional[ChapterCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Outline:
        """Return the topic's outline, generating it only if none exists."""
        existing = self.get_existing_outline(topic_id)
        if existing is not None:
            return existing
        return self.generate_outline(topic_id, options, on_chapter=on_chapter, cancel_token=cancel_token)

    def generate_outline(
        self,
        topic_id: str,
        options: Optional[OutlineOptions] = None,
        on_chapter: Optional[ChapterCallback] = None,
        use_cache: bool = True,
        cancel_token: Optional[CancelToken] = None,
    ) -> Outline:
        """
        Generate and persist an outline for a topic.

        Concurrent calls for the same topic share one generation. If an
        outline already exists it is returned unchanged.

        Args:
            topic_id: Existing topic
            options: Difficulty, chapter limit and context
            on_chapter: Called with each persisted chapter, in order
            use_cache: Consult the durable cache before calling the generator
            cancel_token: Abandons the wait; nothing is written after cancellation

        Returns:
            The persisted Outline
        """
        topic = self.topics.require_topic(topic_id)
        options = options or OutlineOptions()

        def work(token: CancelToken) -> Outline:
            existing = self.outlines.get_existing_outline(topic_id)
            if existing is not None:
                return existing
            outline = self.outline_generator.generate(
                topic_id, topic.title, options, use_cache=use_cache, cancel_token=token
            )
            token.raise_if_cancelled(f"Outline generation for {topic_id}")
            return self.outlines.persist_outline(outline)

        version = self.tree_cache.version(topic_id)
        outline = self.registry.run(f"outline:{topic_id}", work, cancel_token=cancel_token)
        self.tree_cache.put(topic_id, outline, version)

        if on_chapter is not None:
            for chapter in outline.chapters:
                try:
                    on_chapter(chapter)
                except Exception as e:
                    logger.warning(f"Outline progress callback failed for {chapter.chapter_id}: {e}")
        return outline

    def regenerate_outline(
        self,
        topic_id: str,
        options: Optional[OutlineOptions] = None,
        confirm: bool = False,
        on_chapter: Optional[ChapterCallback] = None,
    ) -> Outline:
        """
        Throw away the outline, every generated paragraph and all reading
        records of the topic, then generate a fresh outline.

        Raises:
            ConfirmationRequired: ``confirm`` was not set
        """
        if not confirm:
            raise ConfirmationRequired(
                "Regenerating an outline deletes all generated paragraphs and reading progress; "
                "pass confirm=True to proceed"
            )
        self.topics.require_topic(topic_id)

        previous = self.outlines.get_existing_outline(topic_id)
        if options is None and previous is not None:
            options = previous.generation_options

        logger.warning(f"Regenerating outline for topic {topic_id}")
        self.outlines.delete_outline(topic_id)
        self.tree_cache.invalidate(topic_id)
        return self.generate_outline(topic_id, options, on_chapter=on_chapter, use_cache=False)

    def get_outline_progress(self, topic_id: str) -> OutlineProgress:
        return self.outlines.get_outline_progress(topic_id)

    # Paragraphs

    def generate_paragraph(
        self,
        topic_id: str,
        paragraph_id: str,
        options: Optional[ParagraphOptions] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Paragraph:
        """Return the paragraph with its body, generating it if it is still a stub."""
        topic = self.topics.require_topic(topic_id)
        paragraph = self.outlines.get_paragraph(paragraph_id)
        if paragraph is None or paragraph.topic_id != topic_id:
            raise NotFound(f"Paragraph not found: {paragraph_id}")
        if paragraph.generated:
            return paragraph

        if options is None:
            outline = self.get_existing_outline(topic_id)
            difficulty = outline.difficulty if outline else None
            options = ParagraphOptions(difficulty=difficulty) if difficulty else ParagraphOptions()

        generated = self.paragraph_generator.generate(paragraph_id, topic.title, options, cancel_token)
        self.tree_cache.invalidate(topic_id)
        return generated

    def generate_next_paragraph(
        self,
        topic_id: str,
        chapter_id: str,
        options: Optional[ParagraphOptions] = None,
    ) -> Optional[Paragraph]:
        """Generate the first stub of a chapter; ``None`` when the chapter is fully generated."""
        chapter = self.outlines.get_chapter(chapter_id)
        if chapter is None or chapter.topic_id != topic_id:
            raise NotFound(f"Chapter not found: {chapter_id}")
        stub = self.outlines.get_next_ungenerated_paragraph(chapter_id)
        if stub is None:
            return None
        return self.generate_paragraph(topic_id, stub.paragraph_id, options)

    # Progress

    def tracker_for(self, owner_id: str) -> ProgressTracker:
        """
        The progress tracker for an owner, created on first use.

        Trackers are kept in a bounded LRU. Read state lives in the database;
        an evicted owner only loses unsaved session timing and callbacks.
        """
        with self._trackers_lock:
            tracker = self._trackers.get(owner_id)
            if tracker is None:
                tracker = ProgressTracker(owner_id, self.db)
                self._trackers[owner_id] = tracker
            self._trackers.move_to_end(owner_id)
            while len(self._trackers) > self.max_trackers:
                evicted_owner, evicted = self._trackers.popitem(last=False)
                evicted.end_all_sessions()
                logger.debug(f"Evicted progress tracker for owner {evicted_owner}")
            return tracker

    def mark_read(
        self,
        owner_id: str,
        topic_id: str,
        chapter_id: str,
        paragraph_id: str,
        current_content: str,
    ) -> bool:
        return self.tracker_for(owner_id).mark_read(topic_id, chapter_id, paragraph_id, current_content)

    def mark_unread(self, owner_id: str, topic_id: str, chapter_id: str, paragraph_id: str) -> bool:
        return self.tracker_for(owner_id).mark_unread(topic_id, chapter_id, paragraph_id)

    def analyze_resumption(self, owner_id: str, topic_id: str) -> ResumptionInfo:
        planner = ResumptionPlanner(self.tracker_for(owner_id), self.outlines)
        return planner.analyze(topic_id, self.get_existing_outline(topic_id))

    def list_topics(self, owner_id: str, limit: int = 20) -> List[Topic]:
        return self.topics.get_topic_history(owner_id, limit)


# Global pipeline instance
pipeline = LearningPipeline()
