"""Environment-driven settings for the AI action pipeline."""

from __future__ import annotations

import os
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


def _float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


USE_DB = _flag("USE_DB")
DB_POOL_MIN = int(os.getenv("AI_ACTIONS_DB_POOL_MIN", "1"))
DB_POOL_MAX = int(os.getenv("AI_ACTIONS_DB_POOL_MAX", "10"))
QUERY_SLOW_MS = _float("AI_ACTIONS_QUERY_SLOW_MS", 200.0)
QUERY_LOG_ALL = os.getenv("AI_ACTIONS_QUERY_LOG", "").strip() == "1"

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "").strip() or "https://api.openai.com"
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "").strip() or "gpt-4o-mini"
OPENAI_TIMEOUT = _float("OPENAI_TIMEOUT", 120.0)
TEMPERATURE = _float("AI_ACTIONS_TEMPERATURE", 0.2)
LOG_PROMPTS = os.getenv("AI_ACTIONS_LOG_PROMPTS", "").strip() == "1"


def get_db_url() -> str:
    url = os.getenv("SUPABASE_DB_URL") or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("SUPABASE_DB_URL or DATABASE_URL is required when USE_DB=1")
    return url
