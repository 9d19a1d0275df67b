"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "taskflow.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Claim settings defaults and bounds
DEFAULT_LINE_COUNT = 5
DEFAULT_COOLDOWN_MINUTES = 30.0
MIN_LINE_COUNT = 1
MAX_LINE_COUNT = 100
MIN_COOLDOWN_MINUTES = 0.5
MAX_COOLDOWN_MINUTES = 1440.0

TEAM_CHAT_NAME = "Team Chat"
MAX_MESSAGE_LENGTH = 4000


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the environment."""

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    typing_ttl_seconds: float = 10.0
    typing_sweep_seconds: float = 1.0
    claim_enforce_cooldown: bool = True
    message_history_limit: int = 100
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:8080"]
    )
    api_host: str = "localhost"
    api_port: int = 8000
    log_level: str = "INFO"
    log_file: str = str(DEFAULT_LOG_PATH)


def load_settings() -> Settings:
    """Build Settings from environment variables (after .env is loaded)."""
    defaults = Settings()
    return Settings(
        jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", defaults.jwt_algorithm),
        access_token_expire_minutes=int(
            os.getenv(
                "ACCESS_TOKEN_EXPIRE_MINUTES", defaults.access_token_expire_minutes
            )
        ),
        typing_ttl_seconds=float(
            os.getenv("TYPING_TTL_SECONDS", defaults.typing_ttl_seconds)
        ),
        typing_sweep_seconds=float(
            os.getenv("TYPING_SWEEP_SECONDS", defaults.typing_sweep_seconds)
        ),
        claim_enforce_cooldown=_env_bool(
            "CLAIM_ENFORCE_COOLDOWN", defaults.claim_enforce_cooldown
        ),
        message_history_limit=int(
            os.getenv("MESSAGE_HISTORY_LIMIT", defaults.message_history_limit)
        ),
        cors_origins=_env_list("CORS_ORIGINS", defaults.cors_origins),
        api_host=os.getenv("API_HOST", defaults.api_host),
        api_port=int(os.getenv("API_PORT", defaults.api_port)),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        log_file=os.getenv("LOG_FILE", defaults.log_file),
    )
