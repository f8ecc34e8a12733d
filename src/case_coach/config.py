"""
config.py — Central settings for CaseCoach
==========================================
All configuration is loaded from environment variables / .env file.
Copy .env.example → .env and fill in your values.

Live mode activates automatically when LLM_API_KEY (or OPENAI_API_KEY /
OPENROUTER_API_KEY) contains a real (non-placeholder) value.  Without a key
every executive reply comes from the rule-based fallback responder.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env into os.environ (no-op if already set, safe to call multiple times)
load_dotenv(override=False)

_DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent.parent / "case_coach_data.db"


# ─── Helpers ────────────────────────────────────────────────────────────────

def _is_placeholder(value: str) -> bool:
    """Return True if the value looks like an unfilled template placeholder."""
    return (
        not value
        or "<" in value
        or value.startswith("your-")
        or value.startswith("your_")
        or value == "PLACEHOLDER"
    )


# ─── Text generation (OpenAI-compatible chat completions) ───────────────────

@dataclass(frozen=True)
class LLMConfig:
    api_key:         str
    base_url:        str
    model:           str
    max_tokens:      int
    temperature:     float
    timeout_seconds: float

    @property
    def is_configured(self) -> bool:
        """True when the key is a real (non-placeholder) value."""
        return bool(self.api_key) and not _is_placeholder(self.api_key)

    @property
    def is_openrouter(self) -> bool:
        return "openrouter" in self.base_url


# ─── App-level settings ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class AppConfig:
    force_mock_mode:           bool
    db_path:                   str
    default_turn_budget:       int
    case_text_char_limit:      int
    credits_warning_threshold: int
    log_level:                 str


# ─── Master settings object ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    llm: LLMConfig
    app: AppConfig

    @property
    def live_mode(self) -> bool:
        """True when LLM creds are real and FORCE_MOCK_MODE is false."""
        return self.llm.is_configured and not self.app.force_mock_mode

    def status_summary(self) -> dict[str, str]:
        """Return a dict of service → status badge for the CLI banner."""
        def badge(ok: bool) -> str:
            return "🟢 Live" if ok else "⚪ Fallback responder"

        return {
            "Text generation": badge(self.live_mode),
            "Model":           self.llm.model if self.live_mode else "rule-based",
            "Database":        self.app.db_path,
        }


def get_settings() -> Settings:
    """Load all configuration from environment variables."""
    _str   = lambda k, d="": os.getenv(k, d).strip()
    _int   = lambda k, d=0: int(os.getenv(k, str(d)) or d)
    _float = lambda k, d=0.0: float(os.getenv(k, str(d)) or d)
    _bool  = lambda k, d=False: os.getenv(k, str(d)).lower() in ("1", "true", "yes")

    api_key = (
        _str("LLM_API_KEY")
        or _str("OPENAI_API_KEY")
        or _str("OPENROUTER_API_KEY")
    )

    return Settings(
        llm=LLMConfig(
            api_key         = api_key,
            base_url        = _str("LLM_BASE_URL", "https://api.openai.com/v1").rstrip("/"),
            model           = _str("LLM_MODEL", "gpt-4o-mini"),
            max_tokens      = _int("LLM_MAX_TOKENS", 500),
            temperature     = _float("LLM_TEMPERATURE", 0.7),
            timeout_seconds = _float("LLM_TIMEOUT_SECONDS", 30.0),
        ),
        app=AppConfig(
            force_mock_mode           = _bool("FORCE_MOCK_MODE", False),
            db_path                   = _str("CASECOACH_DB_PATH", str(_DEFAULT_DB_PATH)),
            default_turn_budget       = _int("CASECOACH_TURN_BUDGET", 25),
            case_text_char_limit      = _int("CASECOACH_CASE_TEXT_LIMIT", 12000),
            credits_warning_threshold = _int("CASECOACH_CREDITS_WARNING", 5),
            log_level                 = _str("LOG_LEVEL", "INFO").upper(),
        ),
    )
