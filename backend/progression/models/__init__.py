from progression.models.category import Category
from progression.models.entity import Entity, EntityLink
from progression.models.league import League, LeagueStanding, LeagueTournament
from progression.models.match import Match
from progression.models.participant import Participant
from progression.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Category",
    "Participant",
    "Match",
    "League",
    "LeagueTournament",
    "LeagueStanding",
    "Entity",
    "EntityLink",
]
