from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class Entity(SQLModel, table=True):
    """Durable identity (player account) that outlives any single tournament."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class EntityLink(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("participant_id", "entity_id", name="uq_participant_entity"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    participant_id: int = Field(foreign_key="participant.id", index=True)
    entity_id: int = Field(foreign_key="entity.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
