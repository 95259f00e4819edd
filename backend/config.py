"""Configuration management for the Rubber Duck voice debugger."""
import os
import logging
from typing import List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    """Read an integer environment variable, returning -1 when it is not a number."""
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return -1


# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
ELEVENLABS_API_KEY = os.getenv("ELEVENLABS_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Server Configuration
PORT = _int_env("PORT", 8080)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "text").lower()  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173"
).split(",")

# Provider Configuration
REASONING_MODEL = os.getenv("REASONING_MODEL", "llama-3.3-70b-versatile")
MAX_OUTPUT_TOKENS = _int_env("MAX_OUTPUT_TOKENS", 500)
ELEVENLABS_DEFAULT_VOICE = os.getenv("ELEVENLABS_DEFAULT_VOICE", "EXAVITQu4vr4xnSDxMaL")
STT_LANGUAGE = os.getenv("STT_LANGUAGE", "en")

# Session Configuration (milliseconds)
SESSION_BACKEND = os.getenv("SESSION_BACKEND", "memory").lower()  # "memory" or "supabase"
SESSION_TIMEOUT = _int_env("SESSION_TIMEOUT", 3_600_000)
SWEEP_INTERVAL = _int_env("SWEEP_INTERVAL", 300_000)
MAX_TURNS = _int_env("MAX_TURNS", 20)

# Remote call policy (milliseconds)
RETRY_DELAY = _int_env("RETRY_DELAY", 1_000)
REQUEST_TIMEOUT = _int_env("REQUEST_TIMEOUT", 10_000)

SESSION_BACKENDS = ("memory", "supabase")


def validate_environment() -> List[str]:
    """
    Check required and numeric settings.

    Returns:
        List of human readable problems (empty when configuration is usable)
    """
    errors: List[str] = []

    if not GROQ_API_KEY:
        errors.append("GROQ_API_KEY is required")
    if not ELEVENLABS_API_KEY:
        errors.append("ELEVENLABS_API_KEY is required for speech-to-text")

    for name, value in (
        ("SESSION_TIMEOUT", SESSION_TIMEOUT),
        ("SWEEP_INTERVAL", SWEEP_INTERVAL),
        ("MAX_TURNS", MAX_TURNS),
        ("REQUEST_TIMEOUT", REQUEST_TIMEOUT),
        ("MAX_OUTPUT_TOKENS", MAX_OUTPUT_TOKENS),
    ):
        if value <= 0:
            errors.append(f"{name} must be a positive integer")

    if RETRY_DELAY < 0:
        errors.append("RETRY_DELAY must be zero or a positive integer (milliseconds)")

    if PORT <= 0 or PORT > 65535:
        errors.append("PORT must be a valid port number (1-65535)")

    if SESSION_BACKEND not in SESSION_BACKENDS:
        errors.append(f"SESSION_BACKEND must be one of {', '.join(SESSION_BACKENDS)}")
    elif SESSION_BACKEND == "supabase" and not (SUPABASE_URL and SUPABASE_KEY):
        errors.append("SUPABASE_URL and SUPABASE_KEY are required when SESSION_BACKEND=supabase")

    return errors


def log_configuration() -> None:
    """Log the effective configuration without secrets."""
    logger.info("Configuration:")
    logger.info(f"  - Reasoning model: {REASONING_MODEL} (max {MAX_OUTPUT_TOKENS} tokens)")
    logger.info(f"  - Groq API key: {'***configured***' if GROQ_API_KEY else 'missing'}")
    logger.info(f"  - ElevenLabs API key: {'***configured***' if ELEVENLABS_API_KEY else 'missing'}")
    logger.info(f"  - TTS voice: {ELEVENLABS_DEFAULT_VOICE}")
    logger.info(f"  - Session backend: {SESSION_BACKEND}")
    logger.info(f"  - Session timeout: {SESSION_TIMEOUT}ms ({SESSION_TIMEOUT / 1000 / 60:.0f} minutes)")
    logger.info(f"  - Max turns: {MAX_TURNS}")
    logger.info(f"  - Retry delay: {RETRY_DELAY}ms, request timeout: {REQUEST_TIMEOUT}ms")
    logger.info(f"  - Port: {PORT}")
    logger.info(f"  - CORS origins: {', '.join(CORS_ORIGINS)}")
