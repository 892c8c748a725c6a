from pathlib import Path
import os
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FALLBACK_TEXT = "Sorry, the assistant is unavailable right now. Please try again in a moment."


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Priority: environment variables > .env file
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
    )

    # Missing key is allowed: every assistant call then fails with the fallback reply.
    ASSISTANT_API_KEY: Optional[str] = None
    ASSISTANT_API_URL: str = "https://api.openai.com/v1/chat/completions"
    ASSISTANT_MODEL: str = "gpt-4o-mini"
    ASSISTANT_TEMPERATURE: float = 0.7
    ASSISTANT_MAX_TOKENS: int = 500
    ASSISTANT_TIMEOUT_SECONDS: float = 30.0
    # Prepended to every request, never stored in a fellow's history.
    ASSISTANT_SYSTEM_PROMPT: Optional[str] = None
    ASSISTANT_FALLBACK_TEXT: str = DEFAULT_FALLBACK_TEXT


# Load a .env file before creating the Settings instance
try:
    from dotenv import load_dotenv

    current_dir = Path(__file__).resolve().parent
    env_paths = [
        current_dir.parent.parent / ".env",  # Project root
        Path(os.getcwd()) / ".env",          # Current working directory
    ]

    for env_path in env_paths:
        if env_path.exists():
            load_dotenv(env_path, override=False)
            break
    else:
        load_dotenv(override=False)
except Exception:
    pass

config = Settings()
