from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from progression.models.category import Category
    from progression.models.tournament import Tournament


class Participant(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    category_id: int = Field(foreign_key="category.id", index=True)
    name: str
    kind: str = Field(default="team")  # "individual" | "team"
    seed: Optional[int] = Field(default=None)  # 1-based, knockout_only draws
    group_name: Optional[str] = Field(default=None, index=True)  # None = unassigned
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="participants")
    category: "Category" = Relationship(back_populates="participants")
