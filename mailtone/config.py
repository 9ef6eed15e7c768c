"""Runtime configuration read from environment variables (and .env)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_FREQUENT_SENDER_THRESHOLD = 3
_DEFAULT_DB_PATH = Path("data/mailtone.db")
_DEFAULT_TONE_MODEL = "claude-haiku-4-5-20251001"


def _env_int(name: str, default: int) -> int:
    """Parse an integer env var. Falls back to default (with a warning) on bad input."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s %r; defaulting to %d", name, raw, default)
        return default


def _env_flag(name: str, default: bool) -> bool:
    return os.environ.get(name, "true" if default else "false").lower() == "true"


@dataclass(frozen=True)
class SmtpSettings:
    """Outbound SMTP connection details for reply delivery."""

    host: str = ""
    port: int = 25
    username: str = ""
    password: str = ""
    starttls: bool = False
    reply_from: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.host)


@dataclass(frozen=True)
class Settings:
    """All tunables for the pipeline, the store and the CLI."""

    db_path: Path = _DEFAULT_DB_PATH
    frequent_sender_threshold: int = DEFAULT_FREQUENT_SENDER_THRESHOLD
    classifier: str = "keyword"  # "keyword" | "model"
    tone_model: str = _DEFAULT_TONE_MODEL
    anthropic_api_key: str = ""
    log_level: str = "WARNING"
    smtp: SmtpSettings = field(default_factory=SmtpSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Build Settings from environment variables."""
        classifier = os.environ.get("TONE_CLASSIFIER", "keyword").strip().lower()
        if classifier not in ("keyword", "model"):
            logger.warning("Unknown TONE_CLASSIFIER %r; using keyword classifier", classifier)
            classifier = "keyword"

        threshold = _env_int("FREQUENT_SENDER_THRESHOLD", DEFAULT_FREQUENT_SENDER_THRESHOLD)
        if threshold < 1:
            logger.warning(
                "FREQUENT_SENDER_THRESHOLD must be >= 1 (got %d); defaulting to %d",
                threshold,
                DEFAULT_FREQUENT_SENDER_THRESHOLD,
            )
            threshold = DEFAULT_FREQUENT_SENDER_THRESHOLD

        return cls(
            db_path=Path(os.environ.get("MAILTONE_DB_PATH", str(_DEFAULT_DB_PATH))),
            frequent_sender_threshold=threshold,
            classifier=classifier,
            tone_model=os.environ.get("TONE_MODEL", _DEFAULT_TONE_MODEL),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            log_level=os.environ.get("LOG_LEVEL", "WARNING").upper(),
            smtp=SmtpSettings(
                host=os.environ.get("SMTP_HOST", ""),
                port=_env_int("SMTP_PORT", 25),
                username=os.environ.get("SMTP_USERNAME", ""),
                password=os.environ.get("SMTP_PASSWORD", ""),
                starttls=_env_flag("SMTP_STARTTLS", False),
                reply_from=os.environ.get("REPLY_FROM", ""),
            ),
        )
