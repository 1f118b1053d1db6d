"""
Persona Registry configuration — all environment-driven settings in one place.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import List

# --- Database ---
DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "personas.db"


def get_db_path() -> Path:
    raw = os.environ.get("PERSONA_DB_PATH")
    return Path(raw) if raw else DEFAULT_DB_PATH


# --- Auth ---
JWT_SECRET_FILE = Path(os.environ.get(
    "PERSONA_JWT_SECRET",
    str(Path(__file__).parent.parent / "data" / ".jwt_secret"),
))
CHALLENGE_TTL_SECONDS = int(os.environ.get("PERSONA_CHALLENGE_TTL", "60"))
JWT_TTL_HOURS = int(os.environ.get("PERSONA_JWT_TTL_HOURS", "24"))


# --- Server ---
PERSONA_VERSION = "0.1.0"
HOST = os.environ.get("PERSONA_HOST", "0.0.0.0")
PORT = int(os.environ.get("PERSONA_PORT", "8000"))


def get_cors_origins() -> List[str]:
    raw = os.environ.get("PERSONA_CORS_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["http://localhost:3000", "http://localhost:5173"]  # Dev defaults


# --- Logging ---
LOG_LEVEL = os.environ.get("PERSONA_LOG_LEVEL", "INFO").upper()
