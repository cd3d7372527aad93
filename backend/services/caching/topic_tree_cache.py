"""
Process-local cache of hydrated outline trees.
"""
import threading
from collections import OrderedDict
from typing import Dict, Optional

from core.config import TOPIC_TREE_CACHE_SIZE
from models.topic_models import Outline


class TopicTreeCache:
    """
    Bounded LRU of outlines keyed by topic id. Advisory only: the store is the source of truth.

    Every ``invalidate`` bumps the topic's version. A reader takes ``version()``
    before loading from the store and hands it to ``put``; the put is dropped
    when an invalidation happened in between, so an older tree never replaces
    a newer one.
    """

    def __init__(self, max_size: int = TOPIC_TREE_CACHE_SIZE):
        self.max_size = max_size
        self._entries: "OrderedDict[str, Outline]" = OrderedDict()
        self._versions: Dict[str, int] = {}
        self._epoch = 0  # bumped by clear()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, topic_id: str) -> Optional[Outline]:
        with self._lock:
            outline = self._entries.get(topic_id)
            if outline is None:
                self.misses += 1
                return None
            self._entries.move_to_end(topic_id)
            self.hits += 1
            return outline

    def version(self, topic_id: str) -> int:
        with self._lock:
            return self._version(topic_id)

    def _version(self, topic_id: str) -> int:
        return self._epoch + self._versions.get(topic_id, 0)

    def put(self, topic_id: str, outline: Outline, version: Optional[int] = None) -> bool:
        """Store a tree; returns False when ``version`` is older than the last invalidation."""
        with self._lock:
            if version is not None and version != self._version(topic_id):
                return False
            self._entries[topic_id] = outline
            self._entries.move_to_end(topic_id)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
            return True

    def invalidate(self, topic_id: str):
        with self._lock:
            self._entries.pop(topic_id, None)
            self._versions[topic_id] = self._versions.get(topic_id, 0) + 1

    def clear(self):
        with self._lock:
            self._entries.clear()
            self._epoch += 1

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, topic_id: str) -> bool:
        return topic_id in self._entries
