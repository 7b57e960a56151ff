"""
Route guards and error translation.

Lookup helpers raise 404 for missing or foreign rows; engine errors become
422 (failed precondition) or 409 (bracket created concurrently) with the
engine's message as detail.
"""

from fastapi import HTTPException
from sqlmodel import Session

from progression.models.category import Category
from progression.models.league import League
from progression.models.tournament import Tournament
from progression.services.errors import DuplicateGenerationError, ProgressionError


def get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def get_category_or_404(session: Session, category_id: int, tournament_id: int = None) -> Category:
    category = session.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    if tournament_id and category.tournament_id != tournament_id:
        raise HTTPException(
            status_code=404, detail=f"Category {category_id} does not belong to tournament {tournament_id}"
        )
    return category


def get_league_or_404(session: Session, league_id: int) -> League:
    league = session.get(League, league_id)
    if not league:
        raise HTTPException(status_code=404, detail="League not found")
    return league


def http_error(exc: Exception) -> HTTPException:
    """Map an engine error (or ValueError from input validation) to an HTTPException."""
    if isinstance(exc, DuplicateGenerationError):
        return HTTPException(status_code=409, detail=f"KNOCKOUT_ALREADY_GENERATED: {exc}")
    if isinstance(exc, ProgressionError):
        return HTTPException(status_code=422, detail=f"{type(exc).__name__}: {exc}")
    return HTTPException(status_code=422, detail=str(exc))
