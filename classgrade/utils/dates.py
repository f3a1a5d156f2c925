"""时间处理工具。"""

from datetime import datetime, timezone


def as_utc(dt: datetime) -> datetime:
    """SQLite 读回的时间不带时区，统一按 UTC 处理。"""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
