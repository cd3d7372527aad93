"""
Shared utilities for the content pipeline.
"""
import re
import hashlib
from datetime import datetime, timezone
from typing import Optional


def normalize_text(text: Optional[str]) -> str:
    """Trim, lowercase and collapse internal whitespace."""
    if not text:
        return ""
    return re.sub(r'\s+', ' ', text).strip().lower()


def content_fingerprint(content: str) -> str:
    """SHA-256 of a paragraph body, used to detect that it changed."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp stored by this package (naive values are treated as UTC)."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clean_text(text: str) -> str:
    """
    Normalize generated text.

    Operations:
        - Strip surrounding quotes/fences the model sometimes adds
        - Collapse runs of spaces (paragraph breaks are kept)
        - Fix common encoding issues
    """
    text = text.strip()
    text = re.sub(r'^```[a-zA-Z]*\n?|\n?```$', '', text).strip()
    if len(text) >= 2 and text[0] == text[-1] == '"':
        text = text[1:-1].strip()

    text = re.sub(r'[ \t]+', ' ', text)
    text = re.sub(r'\n{3,}', '\n\n', text)

    text = text.replace('\u2019', "'")  # Right single quotation mark
    text = text.replace('\u201c', '"')  # Left double quotation mark
    text = text.replace('\u201d', '"')  # Right double quotation mark
    text = text.replace('\u2013', '-')  # En dash

    return text


def calculate_reading_time(text: str, wpm: int = 200) -> int:
    """Estimate reading time in minutes."""
    word_count = len(text.split())
    minutes = max(1, word_count // wpm)
    return minutes
