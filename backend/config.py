"""Centralised settings for the StudyFlow reader backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


_DEFAULT_TOPIC_KEYWORDS = (
    "prompting,prompt,reasoning,chain,retrieval,augmented,shot,thought,"
    "tree,agent,react,reflexion,consistency,knowledge,generation,graph,"
    "multimodal,stimulus,program-aided"
)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("STUDYFLOW_WORKSPACE", Path.home() / ".studyflow")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "studyflow.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Collaborating services
    # ------------------------------------------------------------------
    scrape_service_url: str = field(
        default_factory=lambda: os.environ.get(
            "SCRAPE_SERVICE_URL", "http://localhost:54321/functions/v1/firecrawl-scrape"
        )
    )
    chat_service_url: str = field(
        default_factory=lambda: os.environ.get(
            "CHAT_SERVICE_URL", "http://localhost:54321/functions/v1/chat"
        )
    )
    service_api_key: str = field(
        default_factory=lambda: os.environ.get("SERVICE_API_KEY", "")
    )

    # ------------------------------------------------------------------
    # Timeouts
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )
    navigation_timeout: float = field(
        default_factory=lambda: float(os.environ.get("NAVIGATION_TIMEOUT", "60.0"))
    )
    chat_timeout: float = field(
        default_factory=lambda: float(os.environ.get("CHAT_TIMEOUT", "120.0"))
    )

    # ------------------------------------------------------------------
    # Scrape retry / fallback
    # ------------------------------------------------------------------
    scrape_max_retries: int = field(
        default_factory=lambda: int(os.environ.get("SCRAPE_MAX_RETRIES", "3"))
    )
    scrape_retry_delay: float = field(
        default_factory=lambda: float(os.environ.get("SCRAPE_RETRY_DELAY", "2.0"))
    )
    fallback_enabled: bool = field(
        default_factory=lambda: _env_bool("FALLBACK_ENABLED", "true")
    )
    fallback_min_length: int = field(
        default_factory=lambda: int(os.environ.get("FALLBACK_MIN_LENGTH", "500"))
    )

    # ------------------------------------------------------------------
    # Reader
    # ------------------------------------------------------------------
    topic_keywords: tuple[str, ...] = field(
        default_factory=lambda: tuple(
            k.strip()
            for k in os.environ.get("TOPIC_KEYWORDS", _DEFAULT_TOPIC_KEYWORDS).split(",")
            if k.strip()
        )
    )


# Module-level singleton, import this everywhere:
#   from backend.config import settings
settings = Settings()
