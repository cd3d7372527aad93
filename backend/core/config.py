"""
Configuration management for the learning content pipeline.
Loads configuration from environment variables and .env file.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
# Look for .env file in the backend directory or project root
BACKEND_DIR = Path(__file__).parent.parent
PROJECT_ROOT = BACKEND_DIR.parent
ENV_FILE = PROJECT_ROOT / ".env"

if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
else:
    backend_env = BACKEND_DIR / ".env"
    if backend_env.exists():
        load_dotenv(backend_env)

# Base paths
BASE_DIR = PROJECT_ROOT
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
DB_PATH = Path(os.getenv("DB_PATH", str(DATA_DIR / "learning.db")))
SCHEMA_PATH = BACKEND_DIR / "db" / "schema.sql"
PROMPTS_DIR = BACKEND_DIR / "prompts"

DATA_DIR.mkdir(parents=True, exist_ok=True)

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_DEFAULT_MODEL = os.getenv("OLLAMA_DEFAULT_MODEL", "mixtral:latest")

# Outline generation
OUTLINE_MODEL = os.getenv("OUTLINE_MODEL", OLLAMA_DEFAULT_MODEL)
OUTLINE_TEMPERATURE = float(os.getenv("OUTLINE_TEMPERATURE", "0.4"))
OUTLINE_MAX_TOKENS = int(os.getenv("OUTLINE_MAX_TOKENS", "4096"))
DEFAULT_MAX_CHAPTERS = int(os.getenv("DEFAULT_MAX_CHAPTERS", "6"))
MIN_PARAGRAPHS_PER_CHAPTER = 2
MAX_PARAGRAPHS_PER_CHAPTER = 8
DEFAULT_DIFFICULTY = os.getenv("DEFAULT_DIFFICULTY", "intermediate")
DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")

# Paragraph generation
PARAGRAPH_MODEL = os.getenv("PARAGRAPH_MODEL", OLLAMA_DEFAULT_MODEL)
PARAGRAPH_TEMPERATURE = float(os.getenv("PARAGRAPH_TEMPERATURE", "0.3"))
PARAGRAPH_MAX_TOKENS = int(os.getenv("PARAGRAPH_MAX_TOKENS", "1024"))
DEFAULT_PARAGRAPH_MAX_WORDS = int(os.getenv("DEFAULT_PARAGRAPH_MAX_WORDS", "180"))

# Processing limits
GENERATION_TIMEOUT_SEC = float(os.getenv("GENERATION_TIMEOUT_SEC", "120"))
MAX_CONCURRENT_LLM_CALLS = int(os.getenv("MAX_CONCURRENT_LLM_CALLS", "10"))

# Caching
CACHE_MAX_AGE_HOURS = int(os.getenv("CACHE_MAX_AGE_HOURS", str(24 * 7)))
TOPIC_TREE_CACHE_SIZE = int(os.getenv("TOPIC_TREE_CACHE_SIZE", "256"))
TRACKER_CACHE_SIZE = int(os.getenv("TRACKER_CACHE_SIZE", "1024"))

# Progress & resumption
MINUTES_PER_PARAGRAPH = int(os.getenv("MINUTES_PER_PARAGRAPH", "2"))
KNOWLEDGE_CHECK_MIN_SCORE = 1
KNOWLEDGE_CHECK_MAX_SCORE = 10

# API configuration
API_V1_PREFIX = "/api/v1"
# CORS origins can be comma-separated list in env var
CORS_ORIGINS_STR = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")
CORS_ORIGINS = [origin.strip() for origin in CORS_ORIGINS_STR.split(",")]
