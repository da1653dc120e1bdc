import logging
import os

logger = logging.getLogger(__name__)


def parse_location_ids(raw: str | None) -> list[str] | None:
    """Split RING_LOCATION_IDS into numeric ids.

    Returns None (monitor every location) when the value is unset or when
    none of the entries look like a location id.
    """
    if not raw:
        return None
    valid = [part.strip() for part in raw.split(",") if part.strip().isdigit()]
    return valid or None


def parse_excluded_events(raw: str | None) -> frozenset[str]:
    return frozenset(part.strip() for part in (raw or "").split(",") if part.strip())


# Names of numeric variables that did not parse; reported by validate_config()
INVALID_NUMBERS: list[str] = []


def env_number(name: str, default, cast=float):
    """Read a numeric variable, falling back to ``default`` when it does not parse."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        INVALID_NUMBERS.append(name)
        return default


# Ring account
RING_REFRESH_TOKEN = os.getenv("RING_REFRESH_TOKEN", "")
RING_LOCATION_IDS = parse_location_ids(os.getenv("RING_LOCATION_IDS"))
CAMERA_STATUS_POLLING_SECONDS = env_number("CAMERA_STATUS_POLLING_SECONDS", 20.0)
LOCATION_MODE_POLLING_SECONDS = env_number("LOCATION_MODE_POLLING_SECONDS", 20.0)

# Webhook sink (N8N_* names kept for older deployments)
WEBHOOK_URL = os.getenv("WEBHOOK_URL") or os.getenv("N8N_WEBHOOK_URL", "")
WEBHOOK_AUTH_HEADER = os.getenv("WEBHOOK_AUTH_HEADER") or os.getenv("N8N_AUTH_HEADER", "")
WEBHOOK_TIMEOUT_SECONDS = env_number("WEBHOOK_TIMEOUT_SECONDS", 10.0)
EVENT_SOURCE = "ring-doorbell"

# Filtering
EXCLUDED_EVENTS = parse_excluded_events(os.getenv("EXCLUDED_EVENTS"))

# Event deduplication
DEDUP_TTL_SECONDS = env_number("DEDUP_TTL_SECONDS", 60.0)
DEDUP_SWEEP_SECONDS = env_number("DEDUP_SWEEP_SECONDS", 30.0)
MOTION_BUCKET_SECONDS = 5

# Polling fallback (POLLING_INTERVAL is in milliseconds)
POLLING_INTERVAL_SECONDS = env_number("POLLING_INTERVAL", 10000, int) / 1000
HISTORY_LIMIT = env_number("HISTORY_LIMIT", 10, int)

# Status app
STATUS_PORT = env_number("STATUS_PORT", 0, int)

DEBUG = os.getenv("DEBUG", "false").lower() == "true"


def validate_config() -> list[str]:
    """Return the list of configuration problems; empty means startable."""
    errors = []
    if not RING_REFRESH_TOKEN:
        errors.append("RING_REFRESH_TOKEN is required but not set")
    if not WEBHOOK_URL:
        errors.append("WEBHOOK_URL is required but not set")
    for name in INVALID_NUMBERS:
        errors.append(f"{name} must be a number")
    return errors


def describe_config():
    """Log the active configuration without secrets."""
    logger.info(f"RING_REFRESH_TOKEN: {'set' if RING_REFRESH_TOKEN else 'missing (required)'}")
    logger.info(
        "RING_LOCATION_IDS: "
        + (", ".join(RING_LOCATION_IDS) if RING_LOCATION_IDS else "not set (monitoring all locations)")
    )
    logger.info(f"WEBHOOK_URL: {'set' if WEBHOOK_URL else 'missing (required)'}")
    logger.info(f"WEBHOOK_AUTH_HEADER: {'set' if WEBHOOK_AUTH_HEADER else 'not set'}")
    logger.info(
        "EXCLUDED_EVENTS: "
        + (", ".join(sorted(EXCLUDED_EVENTS)) if EXCLUDED_EVENTS else "none (all events will be sent)")
    )
    logger.info(f"DEBUG: {'enabled' if DEBUG else 'disabled'}")
    logger.info(f"POLLING_INTERVAL: {POLLING_INTERVAL_SECONDS:g} seconds")
