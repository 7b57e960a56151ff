from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class League(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    # Final position -> points, e.g. {"1": 3, "2": 2, "3": 1}
    scoring_system: Dict[str, int] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    # League category name -> scale overriding scoring_system
    category_scoring_systems: Dict[str, Dict[str, int]] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)


class LeagueTournament(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("league_id", "tournament_id", name="uq_league_tournament"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="league.id", index=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    league_category: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class LeagueStanding(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("league_id", "entity_id", name="uq_league_entity"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="league.id", index=True)
    entity_id: int = Field(foreign_key="entity.id", index=True)
    total_points: int = Field(default=0)
    tournaments_played: int = Field(default=0)
    best_position: Optional[int] = Field(default=None)
    rank: int
    updated_at: datetime = Field(default_factory=datetime.utcnow)
