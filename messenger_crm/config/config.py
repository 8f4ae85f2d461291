import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[2] / ".env")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
MODEL = os.getenv("MODEL", "gpt-4o-mini")

META_GRAPH_API_VERSION = os.getenv("META_GRAPH_API_VERSION", "v19.0")
META_VERIFY_TOKEN = os.getenv("META_VERIFY_TOKEN", "")
# Optional; when set, webhook deliveries must carry a valid X-Hub-Signature-256
META_APP_SECRET = os.getenv("META_APP_SECRET", "")
HTTP_TIMEOUT_SEC = _float_env("HTTP_TIMEOUT_SEC", 10.0)

CRON_SECRET = os.getenv("CRON_SECRET", "")
DEFAULT_ACCOUNT_ID = os.getenv("DEFAULT_ACCOUNT_ID", "default")

SYNC_MAX_PAGES = _int_env("SYNC_MAX_PAGES", 6)
SYNC_PAGE_SIZE = _int_env("SYNC_PAGE_SIZE", 50)
SYNC_MESSAGES_PER_THREAD = _int_env("SYNC_MESSAGES_PER_THREAD", 5)
# 0 disables the deadline
SYNC_DEADLINE_SEC = _float_env("SYNC_DEADLINE_SEC", 25.0)

FOLLOW_UP_MIN_HOURS = _float_env("FOLLOW_UP_MIN_HOURS", 18.0)
FOLLOW_UP_MAX_HOURS = _float_env("FOLLOW_UP_MAX_HOURS", 23.0)
FOLLOW_UP_HISTORY_LIMIT = _int_env("FOLLOW_UP_HISTORY_LIMIT", 10)
FOLLOW_UP_LOCALE = os.getenv("FOLLOW_UP_LOCALE", "Romanian")

# current: active/archived/needs_follow_up, legacy: unsold/sold/follow-up
STATUS_SCHEMA = os.getenv("STATUS_SCHEMA", "current")

ATTACHMENT_PLACEHOLDER = "[Attachment]"
UNKNOWN_CUSTOMER = "Unknown"
