from datetime import date, datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, func, select

from progression.database import get_session
from progression.models.category import Category
from progression.models.match import Match
from progression.models.participant import Participant
from progression.models.tournament import Tournament
from progression.routes.schemas import MatchResponse, match_response
from progression.services.errors import UnsupportedFormatError
from progression.services.records import MatchStatus, RoundTag, parse_category_format
from progression.utils.guards import get_category_or_404, get_tournament_or_404, http_error
from progression.utils.locks import tournament_locks

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    location: Optional[str] = None
    start_date: Optional[date] = None
    start_time: Optional[datetime] = None
    court_names: Optional[List[str]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TournamentResponse(BaseModel):
    id: int
    name: str
    location: Optional[str]
    start_date: Optional[date]
    start_time: Optional[datetime]
    court_names: Optional[List[str]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CategoryCreate(BaseModel):
    name: str
    format: str
    number_of_groups: int = 0
    knockout_stage: bool = True
    qualifiers_per_group: Optional[int] = None
    third_place_match: bool = True

    @field_validator("number_of_groups")
    @classmethod
    def validate_groups(cls, v):
        if v < 0:
            raise ValueError("number_of_groups must be >= 0")
        return v


class CategoryResponse(BaseModel):
    id: int
    tournament_id: int
    name: str
    format: str
    number_of_groups: int
    knockout_stage: bool
    qualifiers_per_group: Optional[int]
    third_place_match: bool
    is_final: bool

    class Config:
        from_attributes = True


class CategoryUpdate(BaseModel):
    is_final: Optional[bool] = None
    knockout_stage: Optional[bool] = None
    qualifiers_per_group: Optional[int] = None
    third_place_match: Optional[bool] = None


class ParticipantCreate(BaseModel):
    name: str
    kind: str = "team"
    seed: Optional[int] = None
    group_name: Optional[str] = None


class ParticipantResponse(BaseModel):
    id: int
    tournament_id: int
    category_id: int
    name: str
    kind: str
    seed: Optional[int]
    group_name: Optional[str]

    class Config:
        from_attributes = True


class GroupMatchCreate(BaseModel):
    side_a: List[int]
    side_b: List[int]
    group_name: Optional[str] = None
    court: Optional[str] = None
    scheduled_time: Optional[datetime] = None

    @field_validator("side_a", "side_b")
    @classmethod
    def validate_side(cls, v):
        if not 1 <= len(v) <= 2:
            raise ValueError("a side holds one participant, or two for doubles")
        return v


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(payload: TournamentCreate, session: Session = Depends(get_session)):
    """Create a new tournament"""
    tournament = Tournament(**payload.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    return get_tournament_or_404(session, tournament_id)


@router.post("/tournaments/{tournament_id}/categories", response_model=CategoryResponse, status_code=201)
def create_category(tournament_id: int, payload: CategoryCreate, session: Session = Depends(get_session)):
    get_tournament_or_404(session, tournament_id)
    try:
        fmt = parse_category_format(payload.format)
    except UnsupportedFormatError as e:
        raise http_error(e)

    duplicate = session.exec(
        select(Category).where(Category.tournament_id == tournament_id, Category.name == payload.name)
    ).first()
    if duplicate:
        raise HTTPException(status_code=409, detail=f"Category '{payload.name}' already exists")

    category = Category(tournament_id=tournament_id, **payload.model_dump(exclude={"format"}), format=fmt.value)
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@router.get("/tournaments/{tournament_id}/categories", response_model=List[CategoryResponse])
def list_categories(tournament_id: int, session: Session = Depends(get_session)):
    get_tournament_or_404(session, tournament_id)
    return session.exec(
        select(Category).where(Category.tournament_id == tournament_id).order_by(Category.id)
    ).all()


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
def update_category(category_id: int, payload: CategoryUpdate, session: Session = Depends(get_session)):
    """Update category flags (e.g. mark it final so its placements count)."""
    category = get_category_or_404(session, category_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(category, field, value)
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@router.post(
    "/categories/{category_id}/participants",
    response_model=List[ParticipantResponse],
    status_code=201,
)
def add_participants(
    category_id: int, payload: List[ParticipantCreate], session: Session = Depends(get_session)
):
    category = get_category_or_404(session, category_id)
    created = []
    for item in payload:
        if item.kind not in ("individual", "team"):
            raise HTTPException(status_code=422, detail=f"Invalid participant kind: {item.kind}")
        participant = Participant(
            tournament_id=category.tournament_id,
            category_id=category.id,
            **item.model_dump(),
        )
        session.add(participant)
        created.append(participant)
    session.commit()
    for participant in created:
        session.refresh(participant)
    return created


@router.get("/categories/{category_id}/participants", response_model=List[ParticipantResponse])
def list_participants(category_id: int, session: Session = Depends(get_session)):
    get_category_or_404(session, category_id)
    return session.exec(
        select(Participant).where(Participant.category_id == category_id).order_by(Participant.id)
    ).all()


@router.put("/categories/{category_id}/groups", response_model=List[ParticipantResponse])
def assign_groups(
    category_id: int, payload: Dict[str, List[int]], session: Session = Depends(get_session)
):
    """Assign participants to groups: {"A": [1, 2, 3], "B": [4, 5, 6]}.

    Participants not listed become unassigned.
    """
    category = get_category_or_404(session, category_id)
    participants = session.exec(select(Participant).where(Participant.category_id == category_id)).all()
    by_id = {p.id: p for p in participants}

    seen: Dict[int, str] = {}
    for group_name, ids in payload.items():
        for pid in ids:
            if pid not in by_id:
                raise HTTPException(status_code=422, detail=f"Participant {pid} is not in category {category_id}")
            if pid in seen:
                raise HTTPException(
                    status_code=422, detail=f"Participant {pid} listed in groups {seen[pid]} and {group_name}"
                )
            seen[pid] = group_name

    if category.number_of_groups and len(payload) > category.number_of_groups:
        raise HTTPException(
            status_code=422,
            detail=f"Category has {category.number_of_groups} groups but {len(payload)} were given",
        )

    for participant in participants:
        participant.group_name = seen.get(participant.id)
        session.add(participant)
    session.commit()
    return sorted(participants, key=lambda p: p.id)


@router.post("/categories/{category_id}/matches", response_model=MatchResponse, status_code=201)
def add_group_match(category_id: int, payload: GroupMatchCreate, session: Session = Depends(get_session)):
    """Add a group-stage match; it takes the next free match number of the tournament."""
    category = get_category_or_404(session, category_id)
    ids = payload.side_a + payload.side_b
    if len(set(ids)) != len(ids):
        raise HTTPException(status_code=422, detail="A participant cannot play on both sides")

    members = session.exec(
        select(Participant).where(Participant.category_id == category_id, Participant.id.in_(ids))
    ).all()
    if len(members) != len(ids):
        raise HTTPException(status_code=422, detail="Every participant must belong to the category")
    if payload.group_name and any(m.group_name != payload.group_name for m in members):
        raise HTTPException(status_code=422, detail=f"Every participant must be in group {payload.group_name}")

    with tournament_locks.hold(category.tournament_id):
        last = session.exec(
            select(func.max(Match.match_number)).where(Match.tournament_id == category.tournament_id)
        ).one()
        match = Match(
            tournament_id=category.tournament_id,
            category_id=category.id,
            round=RoundTag.GROUP_STAGE.value,
            match_number=(last or 0) + 1,
            group_name=payload.group_name,
            side_a={"participant_ids": payload.side_a},
            side_b={"participant_ids": payload.side_b},
            status=MatchStatus.SCHEDULED.value,
            court=payload.court,
            scheduled_time=payload.scheduled_time,
        )
        session.add(match)
        session.commit()
        session.refresh(match)
    return match_response(match)


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(tournament_id: int, category_id: Optional[int] = None, session: Session = Depends(get_session)):
    """List matches in match-number order, optionally for one category."""
    get_tournament_or_404(session, tournament_id)
    query = select(Match).where(Match.tournament_id == tournament_id)
    if category_id is not None:
        query = query.where(Match.category_id == category_id)
    matches = session.exec(query.order_by(Match.match_number)).all()
    return [match_response(m) for m in matches]
