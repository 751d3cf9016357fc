from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

BASE_DIR = Path(__file__).resolve().parent

DEFAULT_WELCOME_TEXT = "FRIDAY online. Secure channel active."
DEFAULT_HISTORY_KEY = "friday_ultra_v2_history"


@dataclass(frozen=True)
class Settings:
    """Configuration container for models, local storage, voice, and proxy limits."""
    gemini_api_key: str
    chat_model: str
    image_model: str
    history_path: Path
    history_key: str
    storage_max_bytes: int
    welcome_text: str
    speech_lang: str
    proxy_url: Optional[str]
    proxy_timeout: float
    rate_limit_max: int
    rate_limit_window_sec: int
    max_body_bytes: int
    cors_origins: Tuple[str, ...]
    port: int


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and resolves filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for the default history file.
    Failure Modes: Invalid numeric env values (limits, timeouts, port) raise ValueError.
    If Removed: Neither the proxy nor the assistant controller can be configured.
    Testing Notes: Verify defaults and overrides via monkeypatched environment variables.
    """
    # Resolve the history file, then build Settings from env with defaults.
    history_path = os.getenv("FRIDAY_HISTORY_PATH")
    if history_path:
        history_file = Path(history_path)
    else:
        history_file = (BASE_DIR / "data" / "history.json").resolve()

    origins = os.getenv("CORS_ORIGINS", "*")
    cors_origins = tuple(origin.strip() for origin in origins.split(",") if origin.strip()) or ("*",)

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", ""),
        chat_model=os.getenv("GEMINI_CHAT_MODEL", "gemini-2.5-flash"),
        image_model=os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image"),
        history_path=history_file,
        history_key=os.getenv("FRIDAY_HISTORY_KEY", DEFAULT_HISTORY_KEY),
        storage_max_bytes=int(os.getenv("FRIDAY_STORAGE_MAX_BYTES", str(5 * 1024 * 1024))),
        welcome_text=os.getenv("FRIDAY_WELCOME_TEXT", DEFAULT_WELCOME_TEXT),
        speech_lang=os.getenv("FRIDAY_SPEECH_LANG", "en-IN"),
        proxy_url=os.getenv("FRIDAY_PROXY_URL") or None,
        proxy_timeout=float(os.getenv("FRIDAY_PROXY_TIMEOUT", "90")),
        rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", "100")),
        rate_limit_window_sec=int(os.getenv("RATE_LIMIT_WINDOW_SEC", str(15 * 60))),
        max_body_bytes=int(os.getenv("MAX_BODY_BYTES", str(10 * 1024 * 1024))),
        cors_origins=cors_origins,
        port=int(os.getenv("PORT", "3001")),
    )
