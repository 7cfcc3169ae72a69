"""FastAPI app, CORS, and route registration."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configure logging in the worker process (so poller INFO logs are visible with uvicorn --reload)
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(name)s: %(message)s",
)

from cadence.api.state import AppState, get_state
from cadence.config import ensure_data_dir

# Import routes after state to avoid circular imports
from cadence.api.routes import library, playback, spotify

__all__ = ["app", "AppState", "get_state"]

_state = get_state()


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_data_dir()
    controller = _state.controller
    # Reuse stored tokens; on success this loads the library and starts the poller.
    await controller.restore()

    yield

    if _state.connect_task is not None and not _state.connect_task.done():
        _state.connect_task.cancel()
    await controller.shutdown()


app = FastAPI(
    title="Cadence API",
    description="Local REST API for the Spotify session and playback sync core",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(spotify.router, prefix="/api/spotify", tags=["spotify"])
app.include_router(playback.router, prefix="/api/playback", tags=["playback"])
app.include_router(library.router, prefix="/api/library", tags=["library"])
