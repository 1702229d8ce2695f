"""Dashboard settings.

Settings are read once per process from environment variables. A ``.env``
file at the repository root (or the path given in ``DASHBOARD_ENV_FILE``) is
loaded first when present; real environment variables win over it.

Variables:
    DASHBOARD_DATA_MODE        mock | backend (default: mock)
    DASHBOARD_API_BASE_URL     analytics backend base URL
    DASHBOARD_TIMEOUT_SECONDS  total timeout per request
    DASHBOARD_MOCK_DELAY_MS    artificial latency of the mock source
    DASHBOARD_FALLBACK_TO_MOCK substitute mock data when the backend fails
    DASHBOARD_MAX_RETRIES      retries on 502/503/504 and network failures
    DASHBOARD_LOG_JSON         JSON log lines instead of human-readable ones
    DASHBOARD_LOG_LEVEL        DEBUG, INFO, WARNING...
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from models.dashboard import DataMode


REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_API_BASE_URL = "http://localhost:8000"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def parse_data_mode(raw: Optional[str]) -> DataMode:
    """Anything other than 'backend' selects the mock source."""
    if raw and raw.strip().lower() == DataMode.BACKEND.value:
        return DataMode.BACKEND
    return DataMode.MOCK


@dataclass(frozen=True)
class DashboardSettings:
    """Process-wide dashboard configuration."""
    data_mode: DataMode = DataMode.MOCK
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout_seconds: float = 15.0
    mock_delay_ms: int = 220
    fallback_to_mock: bool = True
    max_retries: int = 2
    log_json: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "DashboardSettings":
        """Build settings from the environment (after loading .env)."""
        env_file = os.getenv("DASHBOARD_ENV_FILE")
        env_path = Path(env_file) if env_file else REPO_ROOT / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=False)

        base_url = (os.getenv("DASHBOARD_API_BASE_URL") or "").strip() or DEFAULT_API_BASE_URL

        return cls(
            data_mode=parse_data_mode(os.getenv("DASHBOARD_DATA_MODE")),
            api_base_url=base_url,
            timeout_seconds=_env_float("DASHBOARD_TIMEOUT_SECONDS", 15.0),
            mock_delay_ms=max(0, _env_int("DASHBOARD_MOCK_DELAY_MS", 220)),
            fallback_to_mock=_env_bool("DASHBOARD_FALLBACK_TO_MOCK", True),
            max_retries=max(0, _env_int("DASHBOARD_MAX_RETRIES", 2)),
            log_json=_env_bool("DASHBOARD_LOG_JSON", False),
            log_level=(os.getenv("DASHBOARD_LOG_LEVEL") or "INFO").strip().upper(),
        )


_settings: Optional[DashboardSettings] = None


def get_settings() -> DashboardSettings:
    """Get the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = DashboardSettings.from_env()
    return _settings


def reset_settings_cache() -> None:
    """Forget loaded settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
