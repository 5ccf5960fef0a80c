from datetime import date, datetime

import pytz

from backend.errors import ValidationError
from models import STATUSES

DEFAULT_PRIORITY = 3
MIN_PRIORITY = 1
MAX_PRIORITY = 5
DATE_FILTERS = {'7days': 7, '30days': 30}


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ["1", "true", "yes", "on"]


def normalize_name(raw, field_name="name"):
    """Trimmed, non-empty name or ValidationError."""
    name = str(raw or "").strip()
    if not name:
        raise ValidationError(f"{field_name} is required")
    return name


def normalize_priority(raw):
    """Priorities outside 1-5 (or unparseable) fall back to the default instead of failing."""
    try:
        priority = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_PRIORITY
    if MIN_PRIORITY <= priority <= MAX_PRIORITY:
        return priority
    return DEFAULT_PRIORITY


def normalize_status(raw, default=None):
    if raw is None:
        return default
    value = str(raw).strip().capitalize()
    if value not in STATUSES:
        raise ValidationError(f"Invalid status: {raw}")
    return value


def parse_position(raw):
    try:
        position = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid queue position: {raw}")
    if position < 1:
        raise ValidationError(f"Invalid queue position: {raw}")
    return position


def parse_day_value(raw):
    if isinstance(raw, date):
        return raw
    try:
        return datetime.strptime(str(raw), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def parse_datetime_value(raw):
    if not raw:
        return None
    if isinstance(raw, datetime):
        return raw
    text = str(raw).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(pytz.UTC).replace(tzinfo=None)
    return parsed


def parse_date_filter(raw):
    """Map '7days' / '30days' to a day count; anything else means no filter."""
    if not raw:
        return None
    return DATE_FILTERS.get(str(raw).strip().lower())
