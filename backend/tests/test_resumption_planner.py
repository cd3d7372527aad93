"""
Tests for resumption analysis and its display helpers.
"""
from unittest.mock import MagicMock

from models.progress_models import ChapterProgress, NextChapter, NextParagraph, ResumptionInfo
from models.topic_models import Chapter, Outline, OutlineOptions, Paragraph
from services.progress.resumption_planner import (
    ResumptionPlanner,
    progress_description,
    recommended_action_text,
    time_estimate_text,
)


def read_chapter(pipeline, topic, chapter, owner_id="s1"):
    for stub in chapter.paragraphs:
        paragraph = pipeline.generate_paragraph(topic.topic_id, stub.paragraph_id)
        pipeline.mark_read(owner_id, topic.topic_id, chapter.chapter_id, paragraph.paragraph_id, paragraph.content)


class TestResumptionAnalysis:
    """Test re-entry analysis through the pipeline."""

    def test_no_outline_explores(self, pipeline, topic):
        info = pipeline.analyze_resumption("s1", topic.topic_id)

        assert info.recommended_action == "explore"
        assert info.has_existing_content is False
        assert info.total_paragraphs == 0
        assert info.next_chapter is None

    def test_fresh_outline_explores_from_the_start(self, pipeline, topic, outline):
        info = pipeline.analyze_resumption("s1", topic.topic_id)

        assert info.has_existing_content is True
        assert info.has_progress is False
        assert info.recommended_action == "explore"
        assert info.total_chapters == 4
        assert info.total_paragraphs == 12
        assert info.next_chapter.chapter_index == 1
        assert info.next_chapter.next_paragraph.paragraph_index == 1

    def test_continue_after_completed_chapter(self, pipeline, topic, outline):
        read_chapter(pipeline, topic, outline.chapters[0])

        info = pipeline.analyze_resumption("s1", topic.topic_id)

        assert info.recommended_action == "continue"
        assert info.read_paragraphs == 3
        assert info.completed_chapters == 1
        assert info.overall_progress == 25
        assert info.last_activity is not None
        assert info.next_chapter.chapter_id == outline.chapters[1].chapter_id
        assert info.next_chapter.next_paragraph.paragraph_id == outline.chapters[1].paragraphs[0].paragraph_id

        summary = info.progress_summary
        assert summary.chapters_started == 1
        assert summary.chapters_completed == 1
        assert summary.average_chapter_progress == 25.0
        assert summary.estimated_time_remaining == 18

    def test_next_paragraph_skips_read_ones(self, pipeline, topic, outline):
        chapter = outline.chapters[0]
        for stub in chapter.paragraphs:
            pipeline.generate_paragraph(topic.topic_id, stub.paragraph_id)
        second = pipeline.outlines.get_paragraph(chapter.paragraphs[1].paragraph_id)
        pipeline.mark_read("s1", topic.topic_id, chapter.chapter_id, second.paragraph_id, second.content)

        info = pipeline.analyze_resumption("s1", topic.topic_id)

        assert info.next_chapter.chapter_id == chapter.chapter_id
        assert info.next_chapter.next_paragraph.paragraph_index == 1

    def test_everything_read_restarts(self, pipeline, topic, outline):
        for chapter in outline.chapters:
            read_chapter(pipeline, topic, chapter)

        info = pipeline.analyze_resumption("s1", topic.topic_id)

        assert info.overall_progress == 100
        assert info.recommended_action == "restart"
        assert info.next_chapter is None
        assert info.progress_summary.estimated_time_remaining == 0

    def test_progress_is_per_owner(self, pipeline, topic, outline):
        read_chapter(pipeline, topic, outline.chapters[0], owner_id="s1")
        assert pipeline.analyze_resumption("s2", topic.topic_id).has_progress is False

    def test_one_unread_paragraph_in_a_large_outline_continues(self):
        """Test that 199 of 200 read is not rounded into a finished topic."""
        chapters = [
            Chapter(
                chapter_id=f"t-chapter-{c}",
                topic_id="t",
                index=c,
                title=f"Chapter {c}",
                paragraphs=[Paragraph(f"t-chapter-{c}-paragraph-{p}", f"t-chapter-{c}", "t", p, "summary") for p in range(1, 9)],
            )
            for c in range(1, 26)
        ]
        stats = [
            ChapterProgress(chapter.chapter_id, 8, 8, 100, is_complete=True) for chapter in chapters[:-1]
        ] + [ChapterProgress(chapters[-1].chapter_id, 8, 7, 88)]
        last = chapters[-1].paragraphs[-1]
        tracker = MagicMock()
        tracker.get_topic_progress.return_value = stats
        tracker.load_read_set.return_value = {
            p.paragraph_id for chapter in chapters for p in chapter.paragraphs if p is not last
        }

        info = ResumptionPlanner(tracker, MagicMock()).analyze("t", Outline(topic_id="t", title="T", chapters=chapters))

        assert info.read_paragraphs == 199
        assert info.recommended_action == "continue"
        assert info.overall_progress == 99
        assert info.next_chapter.next_paragraph.paragraph_id == last.paragraph_id


class TestLearningScenario:
    """End-to-end walk through topic, outline, generation, reading and resumption."""

    def test_scenario(self, pipeline):
        first = pipeline.get_or_create_topic("Graph Databases", "s1")
        again = pipeline.get_or_create_topic("  graph databases ", "s1")
        assert first.topic_id == again.topic_id

        outline = pipeline.ensure_outline(first.topic_id, OutlineOptions(max_chapters=4))
        assert outline.total_chapters == 4

        chapter = outline.chapters[0]
        body = pipeline.generate_paragraph(first.topic_id, chapter.paragraphs[0].paragraph_id)
        assert body.generated is True

        tracker = pipeline.tracker_for("s1")
        completed = MagicMock()
        tracker.on_chapter_complete(completed)

        pipeline.mark_read("s1", first.topic_id, chapter.chapter_id, body.paragraph_id, body.content)
        assert tracker.is_chapter_complete(first.topic_id, chapter.chapter_id) is False

        for stub in chapter.paragraphs[1:]:
            paragraph = pipeline.generate_paragraph(first.topic_id, stub.paragraph_id)
            pipeline.mark_read("s1", first.topic_id, chapter.chapter_id, paragraph.paragraph_id, paragraph.content)
        assert completed.call_count == 1

        info = pipeline.analyze_resumption("s1", first.topic_id)
        assert info.recommended_action == "continue"
        assert info.next_chapter.chapter_index == 2
        assert info.next_chapter.next_paragraph.paragraph_index == 1


class TestDisplayHelpers:
    """Test the human-readable resumption strings."""

    def _info(self, **overrides):
        values = dict(
            topic_id="t",
            has_existing_content=True,
            total_chapters=4,
            total_paragraphs=12,
        )
        values.update(overrides)
        return ResumptionInfo(**values)

    def test_progress_description(self):
        assert progress_description(self._info(overall_progress=100)) == "Completed all 4 chapters"
        assert progress_description(self._info()) == "Not started - 12 paragraphs to explore"
        assert progress_description(
            self._info(overall_progress=50, completed_chapters=2, read_paragraphs=6)
        ) == "2 of 4 chapters complete, 2 remaining"
        assert progress_description(
            self._info(overall_progress=17, read_paragraphs=2)
        ) == "2 of 12 paragraphs read (17%)"

    def test_recommended_action_text(self):
        next_chapter = NextChapter(
            chapter_id="t-chapter-2",
            chapter_title="Chapter 2",
            chapter_index=2,
            next_paragraph=NextParagraph("t-chapter-2-paragraph-1", 1, "Chapter 2 point 1"),
        )
        info = self._info(recommended_action="continue", next_chapter=next_chapter)
        assert recommended_action_text(info) == 'Continue reading from "Chapter 2 point 1"'

        next_chapter.next_paragraph = None
        assert recommended_action_text(info) == 'Continue with "Chapter 2"'

        assert recommended_action_text(self._info(recommended_action="restart")) == "Start fresh exploration"
        assert recommended_action_text(self._info(recommended_action="explore")) == "Begin learning journey"

    def test_time_estimate_text(self):
        assert time_estimate_text(0) == "Complete"
        assert time_estimate_text(18) == "~18 min remaining"
        assert time_estimate_text(120) == "~2h remaining"
        assert time_estimate_text(135) == "~2h 15m remaining"
