from dotenv import load_dotenv
import os

load_dotenv()

# Base & storage directories
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DATA_DIR = os.getenv("SORTER_DATA_DIR", os.path.join(BASE_DIR, "data"))
PREFERENCES_DIR = os.path.join(DATA_DIR, "preferences")

# Spotify API constants
SPOTIFY_API_BASE = os.getenv("SPOTIFY_API_BASE", "https://api.spotify.com/v1")

SCOPES = [
    "user-library-read",
    "playlist-read-private",
    "playlist-read-collaborative",
    "playlist-modify-private",
    "playlist-modify-public",
]

# Upstream request policy
REQUEST_TIMEOUT_SECONDS = float(os.getenv("SORTER_REQUEST_TIMEOUT", "8"))
RATE_LIMIT_MAX_RETRY_MS = 1500
LIKED_TRACKS_PAGE_SIZE = 50
PLAYLISTS_PAGE_SIZE = 50
PLAYLIST_TRACKS_PAGE_SIZE = 100
ARTISTS_BATCH_SIZE = 50

# Playlist directory caches (server process-wide / per-client snapshot)
PLAYLIST_CACHE_TTL_SECONDS = 30
CLIENT_PLAYLIST_CACHE_TTL_SECONDS = 60
RATE_LIMIT_COOLDOWN_SECONDS = 60

# Sorting session limits
MAX_SELECTED_PLAYLISTS = 5
MAX_GENRES_PER_TRACK = 3
QUEUE_HEAD_SIZE = 3
SESSION_IDLE_TTL_SECONDS = float(os.getenv("SORTER_SESSION_IDLE_TTL", "1800"))

# In-memory cache bounds
MAX_CACHED_CLIENTS = 256
MAX_CACHED_DIRECTORIES = 256

# HTTP server
LOG_LEVEL = os.getenv("SORTER_LOG_LEVEL", "INFO")
SERVER_HOST = os.getenv("SORTER_HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("SORTER_PORT", "8888"))
