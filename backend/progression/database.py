from pathlib import Path
from typing import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from progression.config import get_settings

settings = get_settings()
DATABASE_URL = settings.database_url

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}

if _is_sqlite and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=settings.sql_echo,
    connect_args=_connect_args,
)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Initialize database - create all tables"""
    # Import all models to ensure they're registered with SQLModel metadata
    from progression.models.category import Category  # noqa: F401
    from progression.models.entity import Entity, EntityLink  # noqa: F401
    from progression.models.league import League, LeagueStanding, LeagueTournament  # noqa: F401
    from progression.models.match import Match  # noqa: F401
    from progression.models.participant import Participant  # noqa: F401
    from progression.models.tournament import Tournament  # noqa: F401

    SQLModel.metadata.create_all(engine)
