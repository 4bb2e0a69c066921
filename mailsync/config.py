"""Configuration and settings."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths (created on first use, never at import)
MAILSYNC_HOME = Path(os.getenv("MAILSYNC_HOME") or Path.cwd()).expanduser()
DATA_DIR = MAILSYNC_HOME / "data"
OUTPUT_DIR = MAILSYNC_HOME / "output"

# Database (SQLite by default; postgresql+psycopg://... in production)
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'mailsync.sqlite'}")

# Token vault: base64 of a 32-byte AES-256-GCM key
TOKEN_VAULT_KEY_ENV = "TOKEN_VAULT_KEY"

# Google OAuth client (refresh token exchange)
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_TOKEN_URL = os.getenv("GOOGLE_TOKEN_URL", "https://oauth2.googleapis.com/token")
TOKEN_SAFETY_WINDOW_SECONDS = int(os.getenv("TOKEN_SAFETY_WINDOW_SECONDS", "60"))

# Gmail REST API
GMAIL_API_BASE_URL = os.getenv("GMAIL_API_BASE_URL", "https://gmail.googleapis.com/gmail/v1").rstrip("/")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

# Retry settings for upstream calls (429 / 5xx / transport errors)
FETCH_MAX_ATTEMPTS = int(os.getenv("FETCH_MAX_ATTEMPTS", "5"))
FETCH_BASE_DELAY = float(os.getenv("FETCH_BASE_DELAY", "1.0"))

# Sync
# Number of recent messages ingested when an account has no cursor yet (no older backfill).
SYNC_BOOTSTRAP_WINDOW = int(os.getenv("SYNC_BOOTSTRAP_WINDOW", "10"))
SYNC_MAX_ACCOUNTS = int(os.getenv("SYNC_MAX_ACCOUNTS", "50"))
SYNC_CONCURRENCY = int(os.getenv("SYNC_CONCURRENCY", "1"))

# Scheduling trigger (cron endpoint)
CRON_SECRET = os.getenv("CRON_SECRET", "")
SERVER_PORT = int(os.getenv("SERVER_PORT", "8000"))

# Logging
LOG_DIR = OUTPUT_DIR / "logs"
LOG_FILE = LOG_DIR / "mailsync.jsonl"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"

# OpenTelemetry
TRACING_ENABLED = os.getenv("TRACING_ENABLED", "false").lower() == "true"
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/traces")
OTLP_HEADERS_AUTHORIZATION = os.getenv("OTLP_HEADERS_AUTHORIZATION", "")
SERVICE_NAME = os.getenv("SERVICE_NAME", "mailsync")
DEPLOYMENT_ENVIRONMENT = os.getenv("DEPLOYMENT_ENVIRONMENT", "development")
