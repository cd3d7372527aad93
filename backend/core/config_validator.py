"""
Configuration validation for the learning content backend.
Validates prompt files, the Ollama generator, database, and settings on startup.
"""
import requests
from typing import List, Dict, Any

from core.prompt_manager import REQUIRED_PROMPTS


class ConfigValidator:
    """Validates system configuration before the API starts serving."""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self) -> Dict[str, Any]:
        """
        Run all validation checks.

        Returns:
            {
                "valid": bool,
                "errors": List[str],
                "warnings": List[str]
            }
        """
        self.errors = []
        self.warnings = []

        self._validate_prompt_files()
        available_models = self._validate_ollama_connection()
        if available_models is not None:
            self._validate_ollama_models(available_models)
        self._validate_database()
        self._validate_directories()
        self._validate_config_values()

        return {
            "valid": len(self.errors) == 0,
            "errors": self.errors,
            "warnings": self.warnings
        }

    def _validate_prompt_files(self):
        """Prompt files are optional (built-in fallbacks exist) but should not be empty."""
        from core.config import PROMPTS_DIR

        if not PROMPTS_DIR.exists():
            self.warnings.append(
                f"Prompts directory not found: {PROMPTS_DIR}. Built-in prompt templates will be used."
            )
            return

        for prompt_name in REQUIRED_PROMPTS:
            path = PROMPTS_DIR / f"{prompt_name}.txt"
            if not path.exists():
                self.warnings.append(
                    f"Prompt file missing: {path.name}. Built-in template will be used."
                )
            elif path.stat().st_size == 0:
                self.errors.append(f"Prompt file is empty: {path.name}")

    def _validate_ollama_connection(self):
        """Check that Ollama is reachable; returns the pulled model names or None."""
        from core.config import OLLAMA_BASE_URL

        try:
            response = requests.get(f"{OLLAMA_BASE_URL}/api/tags", timeout=5)
            response.raise_for_status()
            return [model["name"] for model in response.json().get("models", [])]
        except requests.exceptions.ConnectionError:
            self.warnings.append(
                f"Cannot connect to Ollama at {OLLAMA_BASE_URL}. "
                "Generation requests will fail until `ollama serve` is running."
            )
        except requests.exceptions.Timeout:
            self.warnings.append(
                f"Ollama connection timeout at {OLLAMA_BASE_URL}. "
                "Check network or Ollama performance."
            )
        except (requests.exceptions.RequestException, ValueError) as e:
            self.warnings.append(f"Ollama connection error: {e}")
        return None

    def _validate_ollama_models(self, available_models: List[str]):
        """Check that the configured models are pulled."""
        from core.config import OUTLINE_MODEL, PARAGRAPH_MODEL

        required_models = {
            "Outline generation": OUTLINE_MODEL,
            "Paragraph generation": PARAGRAPH_MODEL,
        }

        for purpose, model_id in required_models.items():
            if model_id not in available_models:
                self.errors.append(
                    f"Required model not found: {purpose} ({model_id}). "
                    f"Pull it with: `ollama pull {model_id}`"
                )

    def _validate_database(self):
        """Check that the database is accessible and the schema is initialized."""
        from core.config import DB_PATH, SCHEMA_PATH

        if not SCHEMA_PATH.exists():
            self.errors.append(f"Database schema file missing: {SCHEMA_PATH}")
            return

        if not DB_PATH.exists():
            self.warnings.append(
                f"Database file not found at {DB_PATH}. "
                "Will be created on first run."
            )
            return

        try:
            from core.database import db

            required_tables = [
                "topics",
                "outlines",
                "chapters",
                "paragraphs",
                "reading_records",
                "cache_entries",
                "paragraph_qa",
                "knowledge_checks",
            ]

            for table in required_tables:
                result = db.execute_one(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                    (table,)
                )
                if not result:
                    self.errors.append(
                        f"Required database table missing: {table}. "
                        "Run schema initialization."
                    )

        except Exception as e:
            self.errors.append(f"Database connection error: {e}")

    def _validate_directories(self):
        """Check that required directories exist."""
        from core.config import DATA_DIR

        if not DATA_DIR.exists():
            self.warnings.append(
                f"Data directory not found at {DATA_DIR}. Will be created automatically."
            )

    def _validate_config_values(self):
        """Validate configuration value ranges and types."""
        from core.config import (
            DEFAULT_DIFFICULTY,
            DIFFICULTY_LEVELS,
            DEFAULT_MAX_CHAPTERS,
            GENERATION_TIMEOUT_SEC,
            MAX_CONCURRENT_LLM_CALLS,
            OUTLINE_TEMPERATURE,
            PARAGRAPH_TEMPERATURE,
            TOPIC_TREE_CACHE_SIZE,
            TRACKER_CACHE_SIZE,
        )

        if DEFAULT_DIFFICULTY not in DIFFICULTY_LEVELS:
            self.errors.append(
                f"DEFAULT_DIFFICULTY ({DEFAULT_DIFFICULTY}) must be one of {', '.join(DIFFICULTY_LEVELS)}"
            )

        if DEFAULT_MAX_CHAPTERS < 1:
            self.errors.append(f"DEFAULT_MAX_CHAPTERS ({DEFAULT_MAX_CHAPTERS}) must be >= 1")

        if GENERATION_TIMEOUT_SEC <= 0:
            self.errors.append(f"GENERATION_TIMEOUT_SEC ({GENERATION_TIMEOUT_SEC}) must be > 0")

        if MAX_CONCURRENT_LLM_CALLS < 1:
            self.errors.append(f"MAX_CONCURRENT_LLM_CALLS ({MAX_CONCURRENT_LLM_CALLS}) must be >= 1")

        if TOPIC_TREE_CACHE_SIZE < 1:
            self.errors.append(f"TOPIC_TREE_CACHE_SIZE ({TOPIC_TREE_CACHE_SIZE}) must be >= 1")

        if TRACKER_CACHE_SIZE < 1:
            self.errors.append(f"TRACKER_CACHE_SIZE ({TRACKER_CACHE_SIZE}) must be >= 1")

        for name, value in (("OUTLINE_TEMPERATURE", OUTLINE_TEMPERATURE), ("PARAGRAPH_TEMPERATURE", PARAGRAPH_TEMPERATURE)):
            if not (0.0 <= value <= 1.0):
                self.warnings.append(f"{name} ({value}) outside normal range [0.0, 1.0]")


# Global validator instance
config_validator = ConfigValidator()
