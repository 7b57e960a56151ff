from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from progression.database import get_session
from progression.models.entity import Entity, EntityLink
from progression.models.league import League, LeagueTournament
from progression.models.participant import Participant
from progression.services.errors import ProgressionError
from progression.services.league_store import delete_standing, recompute, stored_standings
from progression.utils.guards import get_league_or_404, get_tournament_or_404, http_error

router = APIRouter()


def _validate_scale(scale: Dict[int, int]) -> Dict[int, int]:
    for position, points in scale.items():
        if position < 1:
            raise ValueError(f"positions start at 1, got {position}")
        if points < 0:
            raise ValueError(f"points must be >= 0, got {points} for position {position}")
    return scale


class LeagueCreate(BaseModel):
    name: str
    scoring_system: Dict[int, int]
    category_scoring_systems: Dict[str, Dict[int, int]] = {}

    @field_validator("scoring_system")
    @classmethod
    def validate_scoring_system(cls, v):
        return _validate_scale(v)

    @field_validator("category_scoring_systems")
    @classmethod
    def validate_category_scoring_systems(cls, v):
        return {name: _validate_scale(scale) for name, scale in v.items()}


class LeagueResponse(BaseModel):
    id: int
    name: str
    scoring_system: Dict[int, int]
    category_scoring_systems: Dict[str, Dict[int, int]]
    created_at: datetime

    class Config:
        from_attributes = True


class LeagueTournamentCreate(BaseModel):
    tournament_id: int
    league_category: Optional[str] = None


class EntityCreate(BaseModel):
    name: str
    email: Optional[str] = None


class EntityResponse(BaseModel):
    id: int
    name: str
    email: Optional[str]

    class Config:
        from_attributes = True


class EntityLinkCreate(BaseModel):
    participant_id: int


class UnresolvedResponse(BaseModel):
    tournament_id: int
    participant_id: int
    position: int


class LeagueStandingResponse(BaseModel):
    rank: int
    entity_id: int
    total_points: int
    tournaments_played: int
    best_position: Optional[int]


class RecomputeResponse(BaseModel):
    league_id: int
    standings: List[LeagueStandingResponse]
    unresolved: List[UnresolvedResponse]
    skipped_tournament_ids: List[int]


@router.post("/leagues", response_model=LeagueResponse, status_code=201)
def create_league(payload: LeagueCreate, session: Session = Depends(get_session)):
    if session.exec(select(League).where(League.name == payload.name)).first():
        raise HTTPException(status_code=409, detail=f"League '{payload.name}' already exists")
    league = League(
        name=payload.name,
        scoring_system={str(k): v for k, v in payload.scoring_system.items()},
        category_scoring_systems={
            name: {str(k): v for k, v in scale.items()} for name, scale in payload.category_scoring_systems.items()
        },
    )
    session.add(league)
    session.commit()
    session.refresh(league)
    return league


@router.get("/leagues/{league_id}", response_model=LeagueResponse)
def get_league(league_id: int, session: Session = Depends(get_session)):
    return get_league_or_404(session, league_id)


@router.post("/leagues/{league_id}/tournaments", status_code=201)
def attach_tournament(league_id: int, payload: LeagueTournamentCreate, session: Session = Depends(get_session)):
    get_league_or_404(session, league_id)
    get_tournament_or_404(session, payload.tournament_id)
    existing = session.exec(
        select(LeagueTournament).where(
            LeagueTournament.league_id == league_id, LeagueTournament.tournament_id == payload.tournament_id
        )
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Tournament already attached to league")
    attachment = LeagueTournament(league_id=league_id, **payload.model_dump())
    session.add(attachment)
    session.commit()
    session.refresh(attachment)
    return {"id": attachment.id, "league_id": league_id, "tournament_id": attachment.tournament_id}


@router.post("/entities", response_model=EntityResponse, status_code=201)
def create_entity(payload: EntityCreate, session: Session = Depends(get_session)):
    entity = Entity(**payload.model_dump())
    session.add(entity)
    session.commit()
    session.refresh(entity)
    return entity


@router.post("/entities/{entity_id}/links", status_code=201)
def link_participant(entity_id: int, payload: EntityLinkCreate, session: Session = Depends(get_session)):
    """Explicit participant -> entity link; the only way a placement earns league points."""
    if not session.get(Entity, entity_id):
        raise HTTPException(status_code=404, detail="Entity not found")
    if not session.get(Participant, payload.participant_id):
        raise HTTPException(status_code=404, detail="Participant not found")
    existing = session.exec(
        select(EntityLink).where(
            EntityLink.entity_id == entity_id, EntityLink.participant_id == payload.participant_id
        )
    ).first()
    if existing:
        return {"id": existing.id, "entity_id": entity_id, "participant_id": payload.participant_id}
    link = EntityLink(entity_id=entity_id, participant_id=payload.participant_id)
    session.add(link)
    session.commit()
    session.refresh(link)
    return {"id": link.id, "entity_id": entity_id, "participant_id": payload.participant_id}


@router.post("/leagues/{league_id}/recompute", response_model=RecomputeResponse)
def recompute_league(league_id: int, strict: bool = False, session: Session = Depends(get_session)):
    """Full rebuild of the league table from every completed attached tournament."""
    league = get_league_or_404(session, league_id)
    try:
        result = recompute(session, league, strict=strict)
    except (ProgressionError, ValueError) as e:
        raise http_error(e)
    return RecomputeResponse(
        league_id=league_id,
        standings=[
            LeagueStandingResponse(
                rank=r.rank,
                entity_id=r.entity_id,
                total_points=r.total_points,
                tournaments_played=r.tournaments_played,
                best_position=r.best_position,
            )
            for r in result.rows
        ],
        unresolved=[
            UnresolvedResponse(tournament_id=u.tournament_id, participant_id=u.participant_id, position=u.position)
            for u in result.unresolved
        ],
        skipped_tournament_ids=list(result.skipped_tournament_ids),
    )


@router.get("/leagues/{league_id}/standings", response_model=List[LeagueStandingResponse])
def get_league_standings(league_id: int, session: Session = Depends(get_session)):
    """Stored standings as of the last recompute."""
    get_league_or_404(session, league_id)
    return [
        LeagueStandingResponse(
            rank=row.rank,
            entity_id=row.entity_id,
            total_points=row.total_points,
            tournaments_played=row.tournaments_played,
            best_position=row.best_position,
        )
        for row in stored_standings(session, league_id)
    ]


@router.delete("/leagues/{league_id}/standings/{entity_id}", status_code=204)
def remove_league_standing(league_id: int, entity_id: int, session: Session = Depends(get_session)):
    """Administrative removal of an entity's standing row. Recompute never deletes rows."""
    get_league_or_404(session, league_id)
    if not delete_standing(session, league_id, entity_id):
        raise HTTPException(status_code=404, detail="League standing not found")
