import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class EngineSettings:
    """Runtime settings read from the environment (and .env when present)."""

    database_url: str = "sqlite:///./progression.db"
    sql_echo: bool = False
    knockout_slot_minutes: int = 60
    default_qualifiers_per_group: int = 2
    points_per_win: int = 1
    points_per_loss: int = 0
    points_per_set_won: int = 0
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=list)


@lru_cache()
def get_settings() -> EngineSettings:
    return EngineSettings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./progression.db"),
        sql_echo=os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes"),
        knockout_slot_minutes=_env_int("KNOCKOUT_SLOT_MINUTES", 60),
        default_qualifiers_per_group=_env_int("DEFAULT_QUALIFIERS_PER_GROUP", 2),
        points_per_win=_env_int("POINTS_PER_WIN", 1),
        points_per_loss=_env_int("POINTS_PER_LOSS", 0),
        points_per_set_won=_env_int("POINTS_PER_SET_WON", 0),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=_env_list("CORS_ORIGINS"),
    )
