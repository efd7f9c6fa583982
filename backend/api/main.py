"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import places, preferences
from db import init_db
from services.map_session import MapSession
from services.places_client import create_places_client
from services.places_loader import PlacesLoader
from services.preferences import PreferencesStore
from settings import Settings

logger = logging.getLogger(__name__)


def build_map_session(config: Settings) -> MapSession:
    """Wire store client, loader and preference store from configuration."""
    client = create_places_client(config)
    loader = PlacesLoader(
        client,
        margin=config.REGION_MARGIN,
        max_results=config.REGION_MAX_RESULTS,
        min_loading_seconds=config.MIN_LOADING_MS / 1000.0,
    )
    store = PreferencesStore(config.PLACES_PREFERENCES_PATH)
    return MapSession(loader, store, quiet_period=config.VIEWPORT_DEBOUNCE_MS / 1000.0)


# Create app
app = FastAPI(
    title="Places Map API",
    description="Viewport-driven place loading and pin clustering",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(places.router, prefix="/places", tags=["places"])
app.include_router(preferences.router, prefix="/preferences", tags=["preferences"])


@app.on_event("startup")
def startup_event():
    """Initialize database tables and the map session on startup."""
    config = Settings()
    if config.PLACES_BACKEND == "database":
        init_db()
    app.state.map_session = build_map_session(config)
    logger.info("Places backend: %s", config.PLACES_BACKEND)


@app.on_event("shutdown")
def shutdown_event():
    session = getattr(app.state, "map_session", None)
    if session is not None:
        session.close()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Places Map API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
