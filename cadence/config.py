"""Configuration: env, Spotify credentials, callback listener, polling and rate-limit tuning."""
import os
from pathlib import Path

from dotenv import load_dotenv

# Base paths (project root = parent of cadence package)
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env from project root so SPOTIFY_CLIENT_ID etc. are set
load_dotenv(BASE_DIR / ".env")

DATA_DIR = Path(os.getenv("CADENCE_DATA_DIR", str(BASE_DIR / "data")))
SESSION_STORE_PATH = DATA_DIR / ".spotify-session.json"
SETTINGS_PATH = DATA_DIR / "settings.json"

# API
API_HOST = os.getenv("CADENCE_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("CADENCE_API_PORT", "8000"))

# Spotify (OAuth authorization-code flow; tokens stored on disk after first connect)
SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID", "")
SPOTIFY_CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET", "")
SPOTIFY_SCOPES = " ".join(
    [
        "user-read-private",
        "user-read-email",
        "user-read-playback-state",
        "user-modify-playback-state",
        "user-read-currently-playing",
        "user-library-read",
        "user-read-recently-played",
        "user-top-read",
        "playlist-read-private",
        "playlist-read-collaborative",
    ]
)

# Loopback listener that receives the OAuth redirect
CALLBACK_HOST = os.getenv("CADENCE_CALLBACK_HOST", "127.0.0.1")
CALLBACK_PORT = int(os.getenv("CADENCE_CALLBACK_PORT", "8888"))
CALLBACK_PATH = "/callback"
SPOTIFY_REDIRECT_URI = f"http://{CALLBACK_HOST}:{CALLBACK_PORT}{CALLBACK_PATH}"
AUTH_TIMEOUT_SEC = float(os.getenv("CADENCE_AUTH_TIMEOUT_SEC", "120"))

# Remote API tuning
REQUESTS_TIMEOUT_SEC = 10
POLL_INTERVAL_SEC = float(os.getenv("CADENCE_POLL_INTERVAL_SEC", "1.0"))
RATE_LIMIT_COOLDOWN_SEC = float(os.getenv("CADENCE_RATE_LIMIT_COOLDOWN_SEC", "30"))
DEVICE_SETTLE_DELAY_SEC = float(os.getenv("CADENCE_DEVICE_SETTLE_SEC", "1.0"))

# Track-end detection
TRACK_END_MARGIN_MS = 2000
SEEK_JUMP_MS = 5000  # progress drift beyond this means the user seeked elsewhere

# Library loading
LIBRARY_PAGE_SIZE = 50  # Spotify API max page size for saved tracks.
LIBRARY_MAX_OFFSET = 1000
PLAYLIST_TRACK_LIMIT = 100


def is_spotify_configured() -> bool:
    return bool(SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET)


def ensure_data_dir() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
