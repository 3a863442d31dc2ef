from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    # Naive UTC everywhere in the database; outbound timestamps get a "Z"
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def iso_utc_z(dt: datetime):
    if not dt:
        return None
    # No microseconds, explicit UTC marker: safe for JS Date parsing
    return dt.replace(microsecond=0).isoformat() + "Z"


def zone(name: str) -> tzinfo:
    # UTC needs no tz database
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)
