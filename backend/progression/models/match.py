from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from progression.models.tournament import Tournament


class Match(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "match_number", name="uq_match_tournament_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True)
    round: str  # RoundTag value; kept as text so bad rows can be audited
    match_number: int
    group_name: Optional[str] = Field(default=None)
    label: Optional[str] = Field(default=None)  # "SF1", "QF3", "J2" ...

    # Slots: {"participant_ids": [..]} or {"feeder_match_numbers": [..], "outcome": "winner"}
    side_a: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    side_b: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))

    status: str = Field(default="scheduled")  # pending_qualification | scheduled | in_progress | completed | cancelled
    sets: Optional[List[Dict[str, int]]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    court: Optional[str] = Field(default=None)
    scheduled_time: Optional[datetime] = Field(default=None)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
