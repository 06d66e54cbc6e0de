# src/config.py
from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

DB_PATH = Path(os.getenv("LEISURE_DB_PATH", "state.db"))

# wall-clock times (HH:MM, cover dates, "today") are all centre-local
CENTRE_TZ = ZoneInfo(os.getenv("CENTRE_TZ", "Europe/London"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DEFAULT_HOURLY_RATE = float(os.getenv("DEFAULT_HOURLY_RATE", "25"))

AUDIT_RETENTION_DAYS = int(os.getenv("AUDIT_RETENTION_DAYS", "366"))
EXPIRY_WARNING_DAYS = int(os.getenv("EXPIRY_WARNING_DAYS", "30"))

# "no end date" templates get effective_to = effective_from + N years
ENDLESS_TEMPLATE_YEARS = int(os.getenv("ENDLESS_TEMPLATE_YEARS", "100"))

MIN_SESSION_MINUTES = int(os.getenv("MIN_SESSION_MINUTES", "15"))

URGENT_HOURS = 24
NORMAL_HOURS = 72

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024
ALLOWED_DOCUMENT_EXTENSIONS = {".pdf", ".jpg", ".jpeg", ".png"}

# Slack: coordinators who may read the cover queue, and where new covers are posted
COORDINATOR_SLACK_IDS = {
    x.strip()
    for x in os.environ.get("COORDINATOR_SLACK_IDS", "").split(",")
    if x.strip()
}
COVERS_CHANNEL_ID = os.environ.get("COVERS_CHANNEL_ID", "").strip()
