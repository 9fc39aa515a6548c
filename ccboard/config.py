"""ccboard configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str, default: str) -> Path:
    return Path(os.getenv(name, default)).expanduser()


# Watched sources
TASKS_PATH = _env_path("CCBOARD_TASKS_PATH", "./TASKS.md")
HOOKS_DIR = _env_path("CCBOARD_HOOKS_DIR", "~/.claude/dashboard")
WATCH_ENABLED = _env_bool("CCBOARD_WATCH_ENABLED", True)

# Loop tuning
DEBOUNCE_MS = _env_int("CCBOARD_DEBOUNCE_MS", 100)
TICK_MS = _env_int("CCBOARD_TICK_MS", 250)
# Degraded mode re-reads both sources every N ticks
POLL_TICKS = _env_int("CCBOARD_POLL_TICKS", 8)

# History bounds
ERROR_HISTORY = _env_int("CCBOARD_ERROR_HISTORY", 50)
PARSE_ERROR_HISTORY = _env_int("CCBOARD_PARSE_ERROR_HISTORY", 20)

# Observability
OTEL_ENABLED = _env_bool("CCBOARD_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("CCBOARD_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("CCBOARD_OTEL_SERVICE_NAME", "ccboard")
PROM_PORT = _env_int("CCBOARD_PROM_PORT", 9464)
