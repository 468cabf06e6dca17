import os
from pathlib import Path


_DATA_DIR = Path(__file__).resolve().parent / "data"


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Operator endpoints / events
    ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN", "")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Theme catalogue
    THEMES_FILE = os.environ.get("THEMES_FILE", str(_DATA_DIR / "rooms.json"))
    THEMES_DIR = os.environ.get("THEMES_DIR", str(_DATA_DIR / "themes"))

    # Lobby: "all_ready" or "full"
    START_POLICY = os.environ.get("START_POLICY", "all_ready")
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "2"))
    COUNTDOWN_SEC = float(os.environ.get("COUNTDOWN_SEC", "10"))
    RECONNECT_GRACE_SEC = float(os.environ.get("RECONNECT_GRACE_SEC", "20"))

    # Game
    TURN_PAUSE_SEC = float(os.environ.get("TURN_PAUSE_SEC", "3"))
    ROUND_PAUSE_SEC = float(os.environ.get("ROUND_PAUSE_SEC", "1.5"))
    BOARD_SIZE = int(os.environ.get("BOARD_SIZE", "9"))
    SYMBOLS_PER_PLAYER = int(os.environ.get("SYMBOLS_PER_PLAYER", "4"))
    PIECES_TO_WIN = int(os.environ.get("PIECES_TO_WIN", "4"))
