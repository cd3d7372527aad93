"""
Deterministic topic identity.

The same (normalized title, owner) pair always maps to the same id, so
callers can read-by-id first and create only when absent instead of
searching for duplicates.
"""
import hashlib
import uuid

from services.utils import normalize_text

# NUL never appears in a normalized title or an owner id
KEY_SEPARATOR = "\x00"


class IdentityResolver:
    """Derives stable topic ids from (title, owner) pairs."""

    @staticmethod
    def normalize_title(title: str) -> str:
        return normalize_text(title)

    def composite_key(self, title: str, owner_id: str) -> str:
        return f"{self.normalize_title(title)}{KEY_SEPARATOR}{owner_id}"

    def resolve(self, title: str, owner_id: str) -> str:
        """Return the UUID-formatted topic id for this title and owner."""
        if not self.normalize_title(title):
            raise ValueError("Topic title must not be empty")
        if not owner_id:
            raise ValueError("Owner id must not be empty")

        digest = hashlib.sha256(self.composite_key(title, owner_id).encode("utf-8")).digest()
        return str(uuid.UUID(bytes=digest[:16]))

    @staticmethod
    def chapter_id(topic_id: str, chapter_index: int) -> str:
        return f"{topic_id}-chapter-{chapter_index}"

    @staticmethod
    def paragraph_id(chapter_id: str, paragraph_index: int) -> str:
        return f"{chapter_id}-paragraph-{paragraph_index}"


# Global identity resolver instance
identity_resolver = IdentityResolver()
