import os
import sys
import logging

from dotenv import load_dotenv

# --- Configuration & Setup ---

load_dotenv() # Load environment variables from .env file

PLACEHOLDER_PREFIX = "<YOUR_"


def _env(name, default=None):
    """Read an env var, treating empty strings and '<YOUR_...>' placeholders as unset."""
    value = os.getenv(name, "").strip()
    if not value or value.startswith(PLACEHOLDER_PREFIX):
        return default
    return value


# --- LLM providers ---
GROQ_API_KEY = _env("GROQ_API_KEY")
GROQ_MODEL_NAME = _env("GROQ_MODEL", "llama-3.3-70b-versatile")

GOOGLE_API_KEY = _env("GOOGLE_API_KEY")
GEMINI_MODEL_NAME = _env("GEMINI_MODEL", "gemini-1.5-flash")

OPENROUTER_API_KEY = _env("OPENROUTER_API_KEY")
OPENROUTER_URL = _env("OPENROUTER_URL", "https://openrouter.ai/api/v1/chat/completions")
OPENROUTER_MODEL_NAME = _env("OPENROUTER_MODEL", "deepseek/deepseek-r1-0528:free")
OPENROUTER_HTTP_REFERER = _env("OPENROUTER_HTTP_REFERER")
OPENROUTER_X_TITLE = _env("OPENROUTER_X_TITLE")
OPENROUTER_TIMEOUT = int(_env("OPENROUTER_TIMEOUT", "60"))

OLLAMA_BASE_URL = _env("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL_NAME = _env("OLLAMA_MODEL", "llama3:latest")
OLLAMA_TIMEOUT = int(_env("OLLAMA_TIMEOUT", "120"))

# GROQ, GEMINI, OPENROUTER or OLLAMA
DEFAULT_LLM_PROVIDER = _env("LLM_PROVIDER", "GROQ").upper()

# --- Code execution ---
# 'local' runs a child Python interpreter, 'ai' asks the LLM to simulate the run
EXECUTION_BACKEND = _env("EXECUTION_BACKEND", "local").lower()
EXECUTION_TIMEOUT = int(_env("EXECUTION_TIMEOUT", "10"))
PYTHON_EXECUTABLE = _env("PYTHON_EXECUTABLE", sys.executable)

# --- Web app ---
DATABASE_URL = _env("DATABASE_URL", "sqlite:///codemuse.db")
MAX_UPLOAD_BYTES = int(_env("MAX_UPLOAD_BYTES", str(512 * 1024)))
PORT = int(_env("PORT", "5002"))
LOG_LEVEL = _env("LOG_LEVEL", "DEBUG").upper()

# Set up logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.DEBUG))
logger = logging.getLogger(__name__)


def warn_missing_keys():
    if not GROQ_API_KEY:
        logger.warning("GROQ_API_KEY not found in .env. Groq functionality may be limited.")
    if not GOOGLE_API_KEY:
        logger.warning("GOOGLE_API_KEY not found in .env. Gemini functionality may be limited.")
    if not OPENROUTER_API_KEY:
        logger.warning("OPENROUTER_API_KEY not found in .env. OpenRouter functionality may be limited.")
