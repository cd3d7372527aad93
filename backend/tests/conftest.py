"""
Shared fixtures: a throwaway SQLite database and a scripted content generator.
"""
import copy
import os
import tempfile
import threading

# Module-level singletons open a database on import; keep it out of the real data dir
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="learning-tests-")
os.environ["DATA_DIR"] = _TEST_DATA_DIR
os.environ["DB_PATH"] = os.path.join(_TEST_DATA_DIR, "learning.db")

import pytest

from core.database import Database
from core.inflight import InFlightRegistry
from core.ollama_client import ContentGenerator
from core.pipeline import LearningPipeline
from services.caching.content_cache import ContentCache
from services.caching.topic_tree_cache import TopicTreeCache


def outline_payload(chapters=4, paragraphs=3, difficulty="intermediate", title="Graph Databases"):
    return {
        "title": title,
        "description": f"A structured introduction to {title}",
        "difficulty": difficulty,
        "estimated_minutes": chapters * paragraphs * 2,
        "chapters": [
            {
                "title": f"Chapter {c}",
                "description": f"What chapter {c} covers",
                "paragraph_summaries": [f"Chapter {c} point {p}" for p in range(1, paragraphs + 1)],
            }
            for c in range(1, chapters + 1)
        ],
    }


class ScriptedGenerator(ContentGenerator):
    """ContentGenerator double returning canned responses and counting calls."""

    model_tag = "scripted-test-model"

    def __init__(self, outline=None):
        self.outline_response = outline if outline is not None else outline_payload()
        self.paragraph_error = None
        self.paragraph_gate = None
        self.outline_calls = 0
        self.paragraph_calls = 0
        self.prompts = []
        self._lock = threading.Lock()

    def generate_outline(self, prompt):
        with self._lock:
            self.outline_calls += 1
            self.prompts.append(prompt)
        if isinstance(self.outline_response, Exception):
            raise self.outline_response
        return copy.deepcopy(self.outline_response)

    def generate_paragraph(self, prompt):
        with self._lock:
            self.paragraph_calls += 1
            call_number = self.paragraph_calls
            self.prompts.append(prompt)
        if self.paragraph_gate is not None:
            self.paragraph_gate.wait(timeout=5)
        if self.paragraph_error is not None:
            raise self.paragraph_error
        return f"Generated paragraph body number {call_number}. It explains one idea in plain words."


@pytest.fixture
def make_outline():
    return outline_payload


@pytest.fixture
def database(tmp_path):
    return Database(db_path=tmp_path / "test.db")


@pytest.fixture
def generator():
    return ScriptedGenerator()


@pytest.fixture
def cache(database):
    # No executor: cache writes run inline so tests can observe them
    return ContentCache(database)


@pytest.fixture
def registry():
    registry = InFlightRegistry(max_workers=4, timeout=5)
    yield registry
    registry.shutdown(wait=False)


@pytest.fixture
def pipeline(database, generator, cache, registry):
    return LearningPipeline(
        database=database,
        generator=generator,
        cache=cache,
        registry=registry,
        tree_cache=TopicTreeCache(max_size=16),
    )


@pytest.fixture
def topic(pipeline):
    return pipeline.get_or_create_topic("Graph Databases", "s1")


@pytest.fixture
def outline(pipeline, topic):
    return pipeline.ensure_outline(topic.topic_id)
