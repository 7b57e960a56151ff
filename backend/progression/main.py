import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from progression.config import get_settings
from progression.database import init_db
from progression.routes import integrity, knockout, leagues, runtime, standings, tournaments

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Tournament Progression API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_origins.extend(settings.cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(standings.router, prefix="/api", tags=["standings"])
app.include_router(knockout.router, prefix="/api", tags=["knockout"])
app.include_router(runtime.router, prefix="/api", tags=["runtime"])
app.include_router(leagues.router, prefix="/api", tags=["leagues"])
app.include_router(integrity.router, prefix="/api", tags=["integrity"])


@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("Tournament Progression API started (%d routes)", len(app.routes))


@app.get("/api/health")
def health_check():
    return {"app_name": "Tournament Progression API", "status": "healthy"}
