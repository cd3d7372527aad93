"""
Tests for reading progress, derived completion and reading sessions.
"""
import pytest
from unittest.mock import MagicMock

from core.errors import StaleReference
from core.pipeline import LearningPipeline
from services.progress.progress_tracker import ProgressTracker


@pytest.fixture
def chapter(pipeline, topic, outline):
    """First chapter with every paragraph generated."""
    chapter = outline.chapters[0]
    for paragraph in chapter.paragraphs:
        pipeline.generate_paragraph(topic.topic_id, paragraph.paragraph_id)
    return pipeline.outlines.get_chapter(chapter.chapter_id)


@pytest.fixture
def tracker(pipeline):
    return pipeline.tracker_for("s1")


def read(tracker, topic, paragraph):
    return tracker.mark_read(topic.topic_id, paragraph.chapter_id, paragraph.paragraph_id, paragraph.content)


class TestMarkRead:
    """Test mark-read validation and upserts."""

    def test_mark_read_records_progress(self, tracker, topic, chapter):
        paragraph = chapter.paragraphs[0]

        assert read(tracker, topic, paragraph) is True

        progress = tracker.get_chapter_progress(topic.topic_id, chapter.chapter_id)
        assert progress.read_paragraphs == 1
        assert progress.total_paragraphs == 3
        assert progress.progress_percentage == 33
        assert progress.is_complete is False
        assert tracker.load_read_set(topic.topic_id) == {paragraph.paragraph_id}

    def test_repeated_mark_read_keeps_one_record(self, tracker, topic, chapter):
        paragraph = chapter.paragraphs[0]
        read(tracker, topic, paragraph)
        read(tracker, topic, paragraph)

        count = tracker.db.execute_one("SELECT COUNT(*) AS n FROM reading_records")["n"]
        assert count == 1

    def test_stub_cannot_be_marked_read(self, pipeline, tracker, topic, outline):
        stub = outline.chapters[1].paragraphs[0]
        with pytest.raises(StaleReference):
            tracker.mark_read(topic.topic_id, stub.chapter_id, stub.paragraph_id, "anything")

    def test_content_mismatch_is_stale(self, tracker, topic, chapter):
        paragraph = chapter.paragraphs[0]
        with pytest.raises(StaleReference):
            tracker.mark_read(topic.topic_id, chapter.chapter_id, paragraph.paragraph_id, "an older body")

    def test_missing_paragraph_is_stale(self, tracker, topic, chapter):
        with pytest.raises(StaleReference):
            tracker.mark_read(topic.topic_id, chapter.chapter_id, "gone", "body")

    def test_wrong_chapter_is_stale(self, tracker, topic, chapter, outline):
        paragraph = chapter.paragraphs[0]
        with pytest.raises(StaleReference):
            tracker.mark_read(topic.topic_id, outline.chapters[1].chapter_id, paragraph.paragraph_id, paragraph.content)

    def test_mark_unread(self, tracker, topic, chapter):
        paragraph = chapter.paragraphs[0]
        read(tracker, topic, paragraph)

        assert tracker.mark_unread(topic.topic_id, chapter.chapter_id, paragraph.paragraph_id) is True

        row = tracker.db.execute_one("SELECT is_read, read_at FROM reading_records")
        assert row["is_read"] == 0
        assert row["read_at"] is None
        assert tracker.load_read_set(topic.topic_id) == set()

    def test_owners_are_isolated(self, pipeline, topic, chapter):
        read(pipeline.tracker_for("s1"), topic, chapter.paragraphs[0])
        assert pipeline.tracker_for("s2").load_read_set(topic.topic_id) == set()

    def test_tracker_requires_owner(self, database):
        with pytest.raises(ValueError):
            ProgressTracker("", database)


class TestChapterCompletion:
    """Test edge-triggered completion events."""

    def test_event_fires_once_on_completion(self, tracker, topic, chapter):
        callback = MagicMock()
        tracker.on_chapter_complete(callback)

        for paragraph in chapter.paragraphs[:-1]:
            read(tracker, topic, paragraph)
        callback.assert_not_called()

        read(tracker, topic, chapter.paragraphs[-1])
        assert callback.call_count == 1
        event = callback.call_args[0][0]
        assert event.chapter_id == chapter.chapter_id
        assert event.owner_id == "s1"
        assert event.total_paragraphs == 3
        assert event.completed_at

        # Re-reading an already complete chapter does not fire again
        read(tracker, topic, chapter.paragraphs[0])
        assert callback.call_count == 1

    def test_event_fires_again_after_unread_and_reread(self, tracker, topic, chapter):
        callback = MagicMock()
        tracker.on_chapter_complete(callback)
        for paragraph in chapter.paragraphs:
            read(tracker, topic, paragraph)

        last = chapter.paragraphs[-1]
        tracker.mark_unread(topic.topic_id, chapter.chapter_id, last.paragraph_id)
        assert tracker.is_chapter_complete(topic.topic_id, chapter.chapter_id) is False
        read(tracker, topic, last)

        assert callback.call_count == 2

    def test_off_chapter_complete(self, tracker, topic, chapter):
        callback = MagicMock()
        tracker.on_chapter_complete(callback)
        tracker.off_chapter_complete(callback)
        for paragraph in chapter.paragraphs:
            read(tracker, topic, paragraph)
        callback.assert_not_called()

    def test_failing_callback_does_not_break_mark_read(self, tracker, topic, chapter):
        tracker.on_chapter_complete(MagicMock(side_effect=RuntimeError("ui gone")))
        for paragraph in chapter.paragraphs:
            assert read(tracker, topic, paragraph) is True

    def test_completed_chapter_progress(self, tracker, topic, chapter):
        for paragraph in chapter.paragraphs:
            read(tracker, topic, paragraph)

        progress = tracker.get_chapter_progress(topic.topic_id, chapter.chapter_id)
        assert progress.is_complete is True
        assert progress.progress_percentage == 100
        assert progress.completed_at is not None

    def test_orphaned_records_ignored(self, tracker, topic, chapter):
        read(tracker, topic, chapter.paragraphs[0])
        tracker.db.execute_write(
            """
            INSERT INTO reading_records
            (owner_id, topic_id, chapter_id, paragraph_id, content_fingerprint, is_read, read_at, updated_at)
            VALUES ('s1', ?, ?, 'deleted-paragraph', 'x', 1, 'now', 'now')
            """,
            (topic.topic_id, chapter.chapter_id),
        )

        progress = tracker.get_chapter_progress(topic.topic_id, chapter.chapter_id)
        assert progress.read_paragraphs == 1
        assert "deleted-paragraph" not in tracker.load_read_set(topic.topic_id)

    def test_topic_progress_lists_every_chapter(self, tracker, topic, chapter, outline):
        read(tracker, topic, chapter.paragraphs[0])
        progress = tracker.get_topic_progress(topic.topic_id)

        assert [p.chapter_id for p in progress] == [c.chapter_id for c in outline.chapters]
        assert progress[0].read_paragraphs == 1
        assert all(p.read_paragraphs == 0 for p in progress[1:])


class TestReadingSessions:
    """Test reading-time sessions."""

    def test_start_ends_other_sessions(self, tracker):
        tracker.clock = MagicMock(side_effect=[0.0, 4.0, 4.0])
        tracker.start_reading("t-chapter-1-paragraph-1")
        tracker.start_reading("t-chapter-1-paragraph-2")

        assert tracker.active_session().paragraph_id == "t-chapter-1-paragraph-2"
        assert tracker.time_spent("t-chapter-1") == 4

    def test_end_reading_returns_seconds(self, tracker):
        tracker.clock = MagicMock(side_effect=[10.0, 25.0])
        tracker.start_reading("t-chapter-2-paragraph-1")
        assert tracker.end_reading("t-chapter-2-paragraph-1") == 15
        assert tracker.end_reading("t-chapter-2-paragraph-1") == 0
        assert tracker.active_session() is None

    def test_end_all_sessions(self, tracker):
        tracker.clock = MagicMock(side_effect=[0.0, 3.0])
        tracker.start_reading("t-chapter-1-paragraph-1")
        assert tracker.end_all_sessions() == 3

    def test_time_spent_folded_into_completion_event(self, tracker, topic, chapter):
        callback = MagicMock()
        tracker.on_chapter_complete(callback)

        tracker.clock = MagicMock(side_effect=[float(second) for second in range(0, 100, 5)])
        for paragraph in chapter.paragraphs:
            tracker.start_reading(paragraph.paragraph_id)
            read(tracker, topic, paragraph)

        assert callback.call_args[0][0].time_spent == 15

    def test_sessions_are_per_tracker(self, pipeline):
        pipeline.tracker_for("s1").start_reading("p")
        assert pipeline.tracker_for("s2").active_session() is None
        assert pipeline.tracker_for("s1") is pipeline.tracker_for("s1")

    def test_ended_sessions_are_dropped(self, tracker):
        tracker.clock = MagicMock(side_effect=[0.0, 2.0, 2.0, 5.0])
        tracker.start_reading("t-chapter-1-paragraph-1")
        tracker.start_reading("t-chapter-1-paragraph-2")
        tracker.end_reading("t-chapter-1-paragraph-2")

        assert tracker._sessions == {}
        assert tracker.time_spent("t-chapter-1") == 5


class TestTrackerRegistry:
    """Test the bounded per-owner tracker map."""

    def test_least_recently_used_tracker_evicted(self, database, generator, cache, registry):
        pipeline = LearningPipeline(database=database, generator=generator, cache=cache, registry=registry, max_trackers=2)
        first = pipeline.tracker_for("s1")
        pipeline.tracker_for("s2")
        pipeline.tracker_for("s1")
        pipeline.tracker_for("s3")

        assert len(pipeline._trackers) == 2
        assert pipeline.tracker_for("s1") is first
        assert "s2" not in pipeline._trackers

    def test_eviction_ends_active_session(self, database, generator, cache, registry):
        pipeline = LearningPipeline(database=database, generator=generator, cache=cache, registry=registry, max_trackers=1)
        evicted = pipeline.tracker_for("s1")
        evicted.start_reading("t-chapter-1-paragraph-1")

        pipeline.tracker_for("s2")

        assert evicted.active_session() is None

    def test_read_state_survives_eviction(self, pipeline, topic, chapter):
        pipeline.max_trackers = 1
        read(pipeline.tracker_for("s1"), topic, chapter.paragraphs[0])
        pipeline.tracker_for("s2")

        assert pipeline.tracker_for("s1").load_read_set(topic.topic_id) == {chapter.paragraphs[0].paragraph_id}
