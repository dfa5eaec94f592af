"""Configuration for the tutoring platform admin API.

All values can be overridden via environment variables or a local .env file.
"""

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

# --- Document store ---

# Hosted store (MongoDB). When both are set the API uses MongoDocumentStore.
DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
DATABASE_NAME: Optional[str] = os.getenv("DATABASE_NAME")

# Local store file, used when no hosted store is configured.
# Empty string keeps the local store in memory only.
LOCAL_STORE_PATH: str = os.getenv("LOCAL_STORE_PATH", "data/store.json")

# --- Index numbers ---

# First index number handed out when the counter document does not exist yet
INDEX_ORIGIN: int = int(os.getenv("INDEX_ORIGIN", "1000"))

# Attempts per allocation before giving up on a contended counter
ALLOCATION_MAX_RETRIES: int = int(os.getenv("ALLOCATION_MAX_RETRIES", "8"))

# Upper bound for the jittered sleep between allocation attempts, in seconds
ALLOCATION_BACKOFF_SECONDS: float = float(
    os.getenv("ALLOCATION_BACKOFF_SECONDS", "0.02")
)

# --- Uploads ---

MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(1024 * 1024)))

# --- Auth ---

SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
JWT_EXP_MIN: int = int(os.getenv("JWT_EXP_MIN", "60"))

# Bcrypt cost factor for password hashes
BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Seeded on startup if no user with this contact exists
ADMIN_CONTACT: str = os.getenv("ADMIN_CONTACT", "admin")
ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "admin123")

# --- API server ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("PORT", "8000"))

_CORS_ALLOWED_ORIGINS_STR: str = os.getenv("CORS_ALLOWED_ORIGINS", "*")
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# --- Logging ---

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
