"""ChocoDrop configuration."""

import os
from pathlib import Path
from dotenv import load_dotenv

# ── Base directory ────────────────────────────────────────────
# run.py may set CHOCODROP_BASE_DIR before importing this module
_env_base = os.environ.get("CHOCODROP_BASE_DIR")
BASE_DIR = Path(_env_base) if _env_base else Path(__file__).parent.parent

# ── .env loading ──────────────────────────────────────────────
load_dotenv(BASE_DIR / ".env")


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


# Paths
LOGS_DIR = Path(os.environ.get("CHOCODROP_LOGS_DIR", str(BASE_DIR / "logs")))

# Generation server (image/video)
GENERATION_SERVER_URL = os.environ.get("GENERATION_SERVER_URL", "http://localhost:3011")
GENERATION_TIMEOUT = int(os.environ.get("GENERATION_TIMEOUT", "120"))
VIDEO_DURATION = int(os.environ.get("VIDEO_DURATION", "3"))

# Server
HOST = os.environ.get("CHOCODROP_HOST", "127.0.0.1")
PORT = int(os.environ.get("CHOCODROP_PORT", "8092"))

# Scene
DEFAULT_OBJECT_SCALE = float(os.environ.get("DEFAULT_OBJECT_SCALE", "1.0"))
TICK_HZ = int(os.environ.get("TICK_HZ", "60"))
RECOGNITION_FEEDBACK_SECONDS = float(os.environ.get("RECOGNITION_FEEDBACK_SECONDS", "3.0"))
AUTO_EFFECTS = _flag("AUTO_EFFECTS", "true")
COMMAND_HISTORY_SIZE = int(os.environ.get("COMMAND_HISTORY_SIZE", "50"))
