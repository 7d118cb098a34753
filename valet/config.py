# valet/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./valet.db"

    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_IP: str = "0.0.0.0"
    BACKEND_PORT: int = 8080

    # ── Security ──────────────────────────────────────────────────────────
    API_KEY: Optional[str] = None   # Set in .env to enable auth on API endpoints

    # ── Hook board ────────────────────────────────────────────────────────
    HOOK_COUNT: int = 50            # Hooks are numbered 1..HOOK_COUNT

    # ── NFC cards ─────────────────────────────────────────────────────────
    CARD_ID_PREFIX: str = "CARD"
    NFC_BRIDGE_URL: Optional[str] = None   # Reader bridge; simulated tag when unset
    NFC_TIMEOUT_SECONDS: float = 3.0

    # ── Pricing ───────────────────────────────────────────────────────────
    BASE_FEE: float = 15.0
    PRIORITY_FEE: float = 10.0
    CURRENCY: str = "USD"

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True
    LOG_DIR: Optional[str] = None   # Defaults to ./logs next to the package

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
