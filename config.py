"""
config.py

Single source of truth for:
- Environment variable reads
- Database URL resolution
- Price watch schedule and worker settings
- Included-airline filter parsing

Nothing here should contain route handlers or business logic beyond config resolution.
"""

import os
from typing import Dict, Optional

from dotenv import load_dotenv

load_dotenv()


# =====================================================================
# SECTION: ENV VARS
# =====================================================================

PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")

# Quote provider routing
FLIGHT_PROVIDER = os.getenv("FLIGHT_PROVIDER", "amadeus").lower().strip()

# Amadeus
AMADEUS_BASE_URL = os.getenv("AMADEUS_BASE_URL", "https://test.api.amadeus.com")
AMADEUS_API_KEY = os.getenv("AMADEUS_API_KEY", "")
AMADEUS_API_SECRET = os.getenv("AMADEUS_API_SECRET", "")
QUOTE_TIMEOUT_SECONDS = float(os.getenv("QUOTE_TIMEOUT_SECONDS", "20"))

# SMTP / notifications
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME") or os.getenv("EMAIL_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD") or os.getenv("EMAIL_PASS")
ALERT_FROM_EMAIL = os.getenv("ALERT_FROM_EMAIL") or SMTP_USERNAME

# Price watch job
PRICE_WATCH_CRON = os.getenv("PRICE_WATCH_CRON", "*/5 * * * *")
PRICE_WATCH_TIMEZONE = os.getenv("PRICE_WATCH_TIMEZONE", "Asia/Kolkata")
PRICE_WATCH_WORKERS = int(os.getenv("PRICE_WATCH_WORKERS", "4"))

# Offer times are shown to users in this zone
DISPLAY_TIMEZONE = os.getenv("DISPLAY_TIMEZONE", "Asia/Kolkata")

# Search defaults
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "INR")
FLIGHT_SEARCH_MAX_RESULTS = 10

# Format: "CCJ:6E,AI,QR;TRV:6E" (origin -> comma separated carrier codes)
INCLUDED_AIRLINES_BY_ORIGIN_RAW = os.getenv("INCLUDED_AIRLINES_BY_ORIGIN", "CCJ:6E,AI,QR")


# =====================================================================
# SECTION: DATABASE URL
# =====================================================================

def resolve_database_url() -> Optional[str]:
    """
    DATABASE_URL wins. Otherwise build one from the PG_* variables.
    Returns None when neither is set.
    """
    url = os.getenv("DATABASE_URL")
    if url:
        # Heroku style services still hand out 'postgres://'
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+psycopg2://", 1)
        return url

    host = os.getenv("PG_HOST")
    database = os.getenv("PG_DATABASE")
    if not (host and database):
        return None

    user = os.getenv("PG_USER", "")
    password = os.getenv("PG_PASSWORD", "")
    port = os.getenv("PG_PORT", "5432")
    auth = f"{user}:{password}@" if user else ""
    return f"postgresql+psycopg2://{auth}{host}:{port}/{database}"


# =====================================================================
# SECTION: AIRLINE FILTER
# =====================================================================

def parse_included_airlines(raw: Optional[str]) -> Dict[str, str]:
    """Parse 'CCJ:6E,AI,QR;TRV:6E' into {'CCJ': '6E,AI,QR', 'TRV': '6E'}."""
    result: Dict[str, str] = {}
    if not raw:
        return result
    for chunk in raw.split(";"):
        if ":" not in chunk:
            continue
        origin, codes = chunk.split(":", 1)
        origin = origin.strip().upper()
        codes = ",".join(c.strip().upper() for c in codes.split(",") if c.strip())
        if origin and codes:
            result[origin] = codes
    return result


INCLUDED_AIRLINES_BY_ORIGIN = parse_included_airlines(INCLUDED_AIRLINES_BY_ORIGIN_RAW)


def included_airlines_for(origin: str) -> Optional[str]:
    return INCLUDED_AIRLINES_BY_ORIGIN.get((origin or "").upper())


# =====================================================================
# SECTION: TOGGLE HELPERS
# =====================================================================

def price_watch_enabled() -> bool:
    """Hard master switch controlled by PRICE_WATCH_ENABLED env var."""
    value = os.getenv("PRICE_WATCH_ENABLED", "true")
    return value.lower() == "true"


def smtp_configured() -> bool:
    return bool(SMTP_USERNAME and SMTP_PASSWORD and ALERT_FROM_EMAIL)


def is_admin_token(received: Optional[str]) -> bool:
    received = (received or "").strip()
    expected = (ADMIN_API_TOKEN or "").strip()
    if received.lower().startswith("bearer "):
        received = received[7:].strip()
    return expected != "" and received == expected
