from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

from progression.services.records import CategoryFormat

if TYPE_CHECKING:
    from progression.models.participant import Participant
    from progression.models.tournament import Tournament


class Category(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "name", name="uq_tournament_category"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str
    format: CategoryFormat = Field(sa_column=Column(String, nullable=False))
    number_of_groups: int = Field(default=0)
    knockout_stage: bool = Field(default=True)
    qualifiers_per_group: Optional[int] = Field(default=None)  # None = configured default
    third_place_match: bool = Field(default=True)
    # Set by an organizer to close the category without a finished bracket
    is_final: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="categories")
    participants: List["Participant"] = Relationship(back_populates="category")
