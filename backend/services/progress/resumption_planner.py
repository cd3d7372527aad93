"""
Re-entry analysis: where a reader left off and what to do next.
"""
import logging
from typing import Optional

from core.config import MINUTES_PER_PARAGRAPH
from models.progress_models import NextChapter, NextParagraph, ProgressSummary, ResumptionInfo
from models.topic_models import Outline
from services.progress.progress_tracker import ProgressTracker
from services.storage.outline_store import OutlineStore, outline_store

logger = logging.getLogger(__name__)


class ResumptionPlanner:
    """Combines an owner's progress with a topic's outline."""

    def __init__(self, tracker: ProgressTracker, outlines: Optional[OutlineStore] = None):
        self.tracker = tracker
        self.outlines = outlines or outline_store

    def analyze(self, topic_id: str, outline: Optional[Outline] = None) -> ResumptionInfo:
        """
        Summarize progress for a topic and locate the next unread paragraph.

        Args:
            topic_id: Topic to analyze
            outline: Already loaded outline, read from the store when omitted

        Returns:
            ResumptionInfo; ``explore`` with zero counts when there is no outline
        """
        outline = outline or self.outlines.get_existing_outline(topic_id)
        if outline is None or not outline.chapters:
            return ResumptionInfo(topic_id=topic_id)

        stats = {progress.chapter_id: progress for progress in self.tracker.get_topic_progress(topic_id)}
        read_set = self.tracker.load_read_set(topic_id)

        total_chapters = len(outline.chapters)
        total_paragraphs = sum(chapter.total_paragraphs for chapter in outline.chapters)
        read_paragraphs = 0
        completed_chapters = 0
        chapters_started = 0
        chapter_percentages = []
        last_activity = None

        for chapter in outline.chapters:
            progress = stats.get(chapter.chapter_id)
            if progress is None:
                chapter_percentages.append(0)
                continue
            read_paragraphs += progress.read_paragraphs
            chapter_percentages.append(progress.progress_percentage)
            if progress.is_complete:
                completed_chapters += 1
            if progress.read_paragraphs > 0:
                chapters_started += 1
            if progress.last_activity and (last_activity is None or progress.last_activity > last_activity):
                last_activity = progress.last_activity

        finished = read_paragraphs == total_paragraphs
        overall_progress = round(read_paragraphs / total_paragraphs * 100) if total_paragraphs else 0
        if not finished:
            # 100 only once every paragraph is read
            overall_progress = min(overall_progress, 99)
        has_progress = read_paragraphs > 0

        if finished:
            recommended_action = "restart"
        elif has_progress:
            recommended_action = "continue"
        else:
            recommended_action = "explore"

        info = ResumptionInfo(
            topic_id=topic_id,
            has_existing_content=True,
            has_progress=has_progress,
            total_chapters=total_chapters,
            total_paragraphs=total_paragraphs,
            read_paragraphs=read_paragraphs,
            completed_chapters=completed_chapters,
            overall_progress=overall_progress,
            last_activity=last_activity,
            recommended_action=recommended_action,
            next_chapter=self._next_chapter(outline, stats, read_set),
            progress_summary=ProgressSummary(
                chapters_started=chapters_started,
                chapters_completed=completed_chapters,
                average_chapter_progress=round(sum(chapter_percentages) / total_chapters, 1),
                estimated_time_remaining=(total_paragraphs - read_paragraphs) * MINUTES_PER_PARAGRAPH,
            ),
        )
        logger.info(
            f"Resumption for topic {topic_id}: {recommended_action} "
            f"({read_paragraphs}/{total_paragraphs} paragraphs read)"
        )
        return info

    @staticmethod
    def _next_chapter(outline: Outline, stats, read_set) -> Optional[NextChapter]:
        for chapter in outline.chapters:
            progress = stats.get(chapter.chapter_id)
            if progress is not None and progress.is_complete:
                continue
            paragraph = next((p for p in chapter.paragraphs if p.paragraph_id not in read_set), None)
            return NextChapter(
                chapter_id=chapter.chapter_id,
                chapter_title=chapter.title,
                chapter_index=chapter.index,
                next_paragraph=NextParagraph(
                    paragraph_id=paragraph.paragraph_id,
                    paragraph_index=paragraph.index,
                    summary=paragraph.summary,
                ) if paragraph else None,
            )
        return None


def progress_description(info: ResumptionInfo) -> str:
    """Human-readable one-liner for the reader's progress."""
    if info.overall_progress == 100:
        return f"Completed all {info.total_chapters} chapters"
    if info.overall_progress == 0:
        return f"Not started - {info.total_paragraphs} paragraphs to explore"
    if info.completed_chapters > 0:
        remaining = info.total_chapters - info.completed_chapters
        return f"{info.completed_chapters} of {info.total_chapters} chapters complete, {remaining} remaining"
    return f"{info.read_paragraphs} of {info.total_paragraphs} paragraphs read ({info.overall_progress}%)"


def recommended_action_text(info: ResumptionInfo) -> str:
    if info.recommended_action == "continue":
        if info.next_chapter and info.next_chapter.next_paragraph:
            summary = info.next_chapter.next_paragraph.summary or "next paragraph"
            return f'Continue reading from "{summary}"'
        if info.next_chapter:
            return f'Continue with "{info.next_chapter.chapter_title}"'
        return "Continue where you left off"
    if info.recommended_action == "restart":
        return "Start fresh exploration"
    if info.recommended_action == "explore":
        return "Begin learning journey"
    return "Explore content"


def time_estimate_text(estimated_minutes: int) -> str:
    if estimated_minutes == 0:
        return "Complete"
    if estimated_minutes < 60:
        return f"~{estimated_minutes} min remaining"
    hours, minutes = divmod(estimated_minutes, 60)
    if minutes == 0:
        return f"~{hours}h remaining"
    return f"~{hours}h {minutes}m remaining"
