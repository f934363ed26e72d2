"""
Configuration management for the course generator backend.
Loads configuration from environment variables and .env file.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
# Look for .env file in the project root or backend directory
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
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
DB_PATH = Path(os.getenv("DB_PATH", str(DATA_DIR / "courses.db")))
PROMPTS_DIR = BACKEND_DIR / "prompts"
SCHEMA_FILE = BACKEND_DIR / "db" / "schema.sql"

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1:latest")
OLLAMA_FALLBACK_MODEL = os.getenv("OLLAMA_FALLBACK_MODEL") or None

# LLM settings (can be overridden via env vars)
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "2048"))
LLM_TIMEOUT_SEC = float(os.getenv("LLM_TIMEOUT_SEC", "120"))

# Language every generated text is written in
COURSE_LANGUAGE = os.getenv("COURSE_LANGUAGE", "Traditional Chinese")

# Retry policy shared by every generation call
RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
RETRY_BASE_DELAY_MS = int(os.getenv("RETRY_BASE_DELAY_MS", "1000"))

# Course shape bounds
MIN_SECTIONS = 3
MAX_SECTIONS = 10
MIN_QUESTIONS = 1
MAX_QUESTIONS = 5
DEFAULT_NUM_SECTIONS = int(os.getenv("DEFAULT_NUM_SECTIONS", "5"))
DEFAULT_QUESTIONS_PER_SECTION = int(os.getenv("DEFAULT_QUESTIONS_PER_SECTION", "2"))

# Section content length hint for the lecture prompt (characters)
SECTION_TEXT_MAX_CHARS = int(os.getenv("SECTION_TEXT_MAX_CHARS", "300"))

# API Keys (optional video search)
YOUTUBE_API_KEY = os.getenv("YOUTUBE_API_KEY", None)
YOUTUBE_SEARCH_LANGUAGE = os.getenv("YOUTUBE_SEARCH_LANGUAGE", "zh-Hant")

# API configuration
API_V1_PREFIX = "/api/v1"
# CORS origins can be comma-separated list in env var
CORS_ORIGINS_STR = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")
CORS_ORIGINS = [origin.strip() for origin in CORS_ORIGINS_STR.split(",")]

# In-memory limits; the least recently used entries are dropped first
MAX_LIVE_SESSIONS = int(os.getenv("MAX_LIVE_SESSIONS", "100"))
MAX_CHAT_THREADS = int(os.getenv("MAX_CHAT_THREADS", "200"))

# Validation
VALIDATE_CONFIG_ON_STARTUP = os.getenv("VALIDATE_CONFIG_ON_STARTUP", "true").lower() == "true"
