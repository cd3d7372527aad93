"""
Tests for outline generation, validation, atomic persistence and regeneration.
"""
import sqlite3

import pytest
from unittest.mock import patch

from core.errors import ConfirmationRequired, GenerationFailure, NotFound, ValidationFailure
from core.prompt_manager import PromptManager
from models.topic_models import OutlineOptions
from services.generation.outline_generator import OutlineGenerator, validate_outline
from services.storage.outline_store import OutlineStore


class TestOutlineValidation:
    """Test strict schema validation of generator output."""

    def test_valid_outline_passes(self, make_outline):
        validated = validate_outline(make_outline(chapters=4), max_chapters=4)
        assert len(validated.chapters) == 4

    def test_too_many_chapters_rejected(self, make_outline):
        with pytest.raises(ValidationFailure):
            validate_outline(make_outline(chapters=5), max_chapters=4)

    @pytest.mark.parametrize("paragraphs", [1, 9])
    def test_paragraph_count_bounds(self, make_outline, paragraphs):
        """Test that chapters need between 2 and 8 paragraph summaries."""
        with pytest.raises(ValidationFailure):
            validate_outline(make_outline(paragraphs=paragraphs), max_chapters=6)

    def test_unknown_difficulty_rejected(self, make_outline):
        with pytest.raises(ValidationFailure):
            validate_outline(make_outline(difficulty="expert"), max_chapters=6)

    def test_missing_field_rejected(self, make_outline):
        payload = make_outline()
        del payload["chapters"][1]["paragraph_summaries"]
        with pytest.raises(ValidationFailure):
            validate_outline(payload, max_chapters=6)

    def test_no_type_coercion(self, make_outline):
        """Test that a string where a number belongs is not coerced."""
        payload = make_outline()
        payload["estimated_minutes"] = "45"
        with pytest.raises(ValidationFailure):
            validate_outline(payload, max_chapters=6)

    def test_blank_summary_rejected(self, make_outline):
        payload = make_outline()
        payload["chapters"][0]["paragraph_summaries"][0] = "   "
        with pytest.raises(ValidationFailure):
            validate_outline(payload, max_chapters=6)


class TestOutlineGenerator:
    """Test prompt building and cache use."""

    def test_prompt_includes_topic_and_options(self, generator, cache):
        outline_generator = OutlineGenerator(generator, PromptManager(), cache)
        prompt = outline_generator.build_prompt(
            "Graph Databases",
            OutlineOptions(difficulty="beginner", max_chapters=4, context="Databases > NoSQL"),
        )

        assert "Graph Databases" in prompt
        assert "beginner" in prompt
        assert "Databases > NoSQL" in prompt
        assert "4" in prompt

    def test_fallback_prompt_used_when_file_missing(self, tmp_path):
        prompts = PromptManager(prompts_dir=tmp_path)
        template = prompts.get_prompt("outline_generation")
        assert "{topic}" in template

    def test_unknown_placeholder_falls_back(self, tmp_path):
        (tmp_path / "paragraph_generation.txt").write_text("Explain {topic} using {analogy}")
        prompts = PromptManager(prompts_dir=tmp_path)

        rendered = prompts.render(
            "paragraph_generation",
            difficulty="beginner",
            topic="Graph Databases",
            chapter_title="Nodes",
            paragraph_index=1,
            summary="What a node is",
            previous_summary="None",
            max_words=120,
            examples_instruction="",
        )

        assert "Graph Databases" in rendered
        assert "{analogy}" not in rendered

    def test_cached_outline_reused_across_topics(self, generator, cache):
        """Test that a fingerprint match skips the model call."""
        outline_generator = OutlineGenerator(generator, PromptManager(), cache)
        options = OutlineOptions(max_chapters=4)

        first = outline_generator.generate("topic-a", "Graph Databases", options)
        second = outline_generator.generate("topic-b", " graph   databases ", options)

        assert generator.outline_calls == 1
        assert second.chapters[0].chapter_id == "topic-b-chapter-1"
        assert [c.title for c in second.chapters] == [c.title for c in first.chapters]

    def test_cached_outline_revalidated_against_chapter_limit(self, generator, cache, make_outline):
        outline_generator = OutlineGenerator(generator, PromptManager(), cache)
        outline_generator.generate("topic-a", "Graph Databases", OutlineOptions(max_chapters=6))

        generator.outline_response = make_outline(chapters=2)
        outline = outline_generator.generate("topic-a", "Graph Databases", OutlineOptions(max_chapters=3))

        assert generator.outline_calls == 2
        assert outline.total_chapters == 2

    def test_invalid_difficulty_option(self, generator, cache):
        outline_generator = OutlineGenerator(generator, PromptManager(), cache)
        with pytest.raises(ValidationFailure):
            outline_generator.generate("topic-a", "Graph Databases", OutlineOptions(difficulty="expert"))
        assert generator.outline_calls == 0


class TestEnsureOutline:
    """Test two-phase generation through the pipeline."""

    def test_outline_structure(self, pipeline, topic):
        """Test chapters and stubs persisted with contiguous indices."""
        outline = pipeline.ensure_outline(topic.topic_id, OutlineOptions(max_chapters=4))

        assert [c.index for c in outline.chapters] == [1, 2, 3, 4]
        for chapter in outline.chapters:
            assert chapter.chapter_id == f"{topic.topic_id}-chapter-{chapter.index}"
            assert 2 <= chapter.total_paragraphs <= 8
            assert [p.index for p in chapter.paragraphs] == list(range(1, chapter.total_paragraphs + 1))
            for paragraph in chapter.paragraphs:
                assert paragraph.generated is False
                assert paragraph.content is None
                assert paragraph.summary

    def test_no_duplicate_outlines(self, pipeline, topic, generator):
        """Test that a second ensure returns the stored outline without generating."""
        first = pipeline.ensure_outline(topic.topic_id)
        pipeline.tree_cache.clear()
        second = pipeline.ensure_outline(topic.topic_id)

        assert generator.outline_calls == 1
        assert first.total_paragraphs == second.total_paragraphs
        assert pipeline.db.execute_one("SELECT COUNT(*) AS n FROM outlines")["n"] == 1

    def test_generate_outline_when_one_exists_returns_existing(self, pipeline, topic, generator):
        pipeline.ensure_outline(topic.topic_id)
        again = pipeline.generate_outline(topic.topic_id, use_cache=False)

        assert generator.outline_calls == 1
        assert again.total_chapters == 4

    def test_invalid_response_writes_nothing(self, pipeline, topic, generator, make_outline):
        generator.outline_response = make_outline(paragraphs=1)

        with pytest.raises(ValidationFailure):
            pipeline.ensure_outline(topic.topic_id)

        assert pipeline.get_existing_outline(topic.topic_id) is None
        assert pipeline.db.execute_one("SELECT COUNT(*) AS n FROM chapters")["n"] == 0

    def test_generator_failure_propagates(self, pipeline, topic, generator):
        generator.outline_response = GenerationFailure("model offline")
        with pytest.raises(GenerationFailure):
            pipeline.ensure_outline(topic.topic_id)

    def test_unknown_topic(self, pipeline):
        with pytest.raises(NotFound):
            pipeline.ensure_outline("no-such-topic")

    def test_on_chapter_reports_each_chapter_in_order(self, pipeline, topic):
        seen = []
        pipeline.ensure_outline(topic.topic_id, on_chapter=lambda chapter: seen.append(chapter.index))
        assert seen == [1, 2, 3, 4]

    def test_outline_progress(self, pipeline, topic, outline):
        paragraph = outline.chapters[0].paragraphs[0]
        pipeline.generate_paragraph(topic.topic_id, paragraph.paragraph_id)

        progress = pipeline.get_outline_progress(topic.topic_id)

        assert progress.has_outline is True
        assert progress.total_chapters == 4
        assert progress.total_paragraphs == 12
        assert progress.generated_paragraphs == 1
        assert progress.completion_percentage == 8

    def test_outline_progress_without_outline(self, pipeline, topic):
        assert pipeline.get_outline_progress(topic.topic_id).has_outline is False


class TestAtomicPersistence:
    """Test that persistence is all-or-nothing."""

    def test_failure_mid_write_rolls_back(self, pipeline, topic, make_outline):
        outline_generator = pipeline.outline_generator
        outline = outline_generator.generate(topic.topic_id, topic.title, OutlineOptions(), use_cache=False)
        # Duplicate paragraph index forces a UNIQUE failure after earlier rows were written
        outline.chapters[-1].paragraphs[1].index = 1

        store = OutlineStore(pipeline.db)
        with pytest.raises(sqlite3.IntegrityError):
            store.persist_outline(outline)

        assert store.get_existing_outline(topic.topic_id) is None
        for table in ("outlines", "chapters", "paragraphs"):
            assert pipeline.db.execute_one(f"SELECT COUNT(*) AS n FROM {table}")["n"] == 0

    def test_concurrent_persist_keeps_first(self, pipeline, topic):
        store = OutlineStore(pipeline.db)
        first = pipeline.outline_generator.generate(topic.topic_id, topic.title, use_cache=False)
        second = pipeline.outline_generator.generate(topic.topic_id, topic.title, use_cache=False)
        second.title = "Loser"

        store.persist_outline(first)
        kept = store.persist_outline(second)

        assert kept.title == first.title
        assert pipeline.db.execute_one("SELECT COUNT(*) AS n FROM chapters")["n"] == 4


class TestRegenerateOutline:
    """Test destructive regeneration."""

    def test_requires_confirmation(self, pipeline, topic, outline):
        with pytest.raises(ConfirmationRequired):
            pipeline.regenerate_outline(topic.topic_id)
        assert pipeline.get_existing_outline(topic.topic_id) is not None

    def test_regenerate_replaces_content_and_progress(self, pipeline, topic, outline, generator, make_outline):
        paragraph = outline.chapters[0].paragraphs[0]
        generated = pipeline.generate_paragraph(topic.topic_id, paragraph.paragraph_id)
        pipeline.mark_read("s1", topic.topic_id, paragraph.chapter_id, paragraph.paragraph_id, generated.content)

        generator.outline_response = make_outline(chapters=3, paragraphs=2)
        regenerated = pipeline.regenerate_outline(topic.topic_id, confirm=True)

        assert generator.outline_calls == 2
        assert regenerated.total_chapters == 3
        assert all(not p.generated for c in regenerated.chapters for p in c.paragraphs)
        assert pipeline.db.execute_one("SELECT COUNT(*) AS n FROM reading_records")["n"] == 0

    def test_regenerate_bypasses_durable_cache(self, pipeline, topic, outline, generator):
        with patch.object(pipeline.cache, "get_cached") as get_cached:
            pipeline.regenerate_outline(topic.topic_id, confirm=True)
        get_cached.assert_not_called()
        assert generator.outline_calls == 2
