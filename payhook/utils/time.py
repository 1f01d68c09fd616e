from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from payhook.utils.config import settings

try:
    DISPLAY_TZ = ZoneInfo(settings.display_timezone)
except ZoneInfoNotFoundError:
    # Fallback for environments without tzdata installed (East Africa Time).
    DISPLAY_TZ = timezone(timedelta(hours=3))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_display(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite hands back naive datetimes; they were stored as UTC.
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(DISPLAY_TZ)
