# Register every SQLModel table at test discovery time, before any test
# database is created
from progression.models.category import Category  # noqa: F401
from progression.models.entity import Entity, EntityLink  # noqa: F401
from progression.models.league import League, LeagueStanding, LeagueTournament  # noqa: F401
from progression.models.match import Match  # noqa: F401
from progression.models.participant import Participant  # noqa: F401
from progression.models.tournament import Tournament  # noqa: F401
