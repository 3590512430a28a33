"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key, "").strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return default


@dataclass
class Settings:
    """Application settings."""

    # Slack
    slack_bot_token: str = os.getenv("SLACK_BOT_TOKEN", "")
    slack_app_token: str = os.getenv("SLACK_APP_TOKEN", "")
    slack_signing_secret: str = os.getenv("SLACK_SIGNING_SECRET", "")
    slack_retry_attempts: int = int(os.getenv("SLACK_RETRY_ATTEMPTS", "3"))
    slack_retry_base_delay: float = float(os.getenv("SLACK_RETRY_BASE_DELAY", "1.0"))

    # Summaries (Anthropic API key, or Claude via Vertex AI)
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    google_cloud_project: str = os.getenv("GOOGLE_CLOUD_PROJECT", "")
    google_cloud_region: str = os.getenv("GOOGLE_CLOUD_REGION", "us-east5")
    claude_model: str = os.getenv("CLAUDE_MODEL", "claude-sonnet-4@20250514")
    summary_enabled: bool = _env_bool("SUMMARY_ENABLED", True)
    summary_max_retries: int = int(os.getenv("SUMMARY_MAX_RETRIES", "2"))

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///standup_bot.db")

    # Scheduling
    default_tz: str = os.getenv("DEFAULT_TZ", "Asia/Kolkata")
    collection_window_minutes: int = int(os.getenv("COLLECTION_WINDOW_MIN", "45"))
    lock_lease_seconds: int = int(os.getenv("LOCK_LEASE_SECONDS", "60"))

    # Caches (seconds)
    workspace_cache_ttl: float = float(os.getenv("WORKSPACE_CACHE_TTL", "60"))
    member_cache_ttl: float = float(os.getenv("MEMBER_CACHE_TTL", "30"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
