"""Application configuration.

Environment variables override all defaults. Matching thresholds and message
limits live here so they can be tuned per deployment without code changes.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load .env for local development; real environment variables win
_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./stockline.db")

    # Runtime
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Groq API Key (Must be set via .env, never in code)
    GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")
    GROQ_MODEL: str = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")

    # Telegram Bot (Must be set via .env, never in code)
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

    # Inbound messages longer than this are rejected before parsing
    MAX_MESSAGE_LENGTH: int = int(os.getenv("MAX_MESSAGE_LENGTH", "1000"))

    # Fuzzy matching (confidence in [0, 1])
    PRODUCT_MATCH_THRESHOLD: float = float(os.getenv("PRODUCT_MATCH_THRESHOLD", "0.5"))
    CUSTOMER_MATCH_THRESHOLD: float = float(os.getenv("CUSTOMER_MATCH_THRESHOLD", "0.7"))
    DELETE_MATCH_THRESHOLD: float = float(os.getenv("DELETE_MATCH_THRESHOLD", "0.9"))
    MATCH_AMBIGUITY_MARGIN: float = float(os.getenv("MATCH_AMBIGUITY_MARGIN", "0.05"))
    USE_LLM_MATCHER: bool = _env_bool("USE_LLM_MATCHER", False)

    # Inventory
    LOW_STOCK_THRESHOLD: float = float(os.getenv("LOW_STOCK_THRESHOLD", "5"))
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "₦")

    # CORS (specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if origin.strip()
    ]


settings = Settings()
