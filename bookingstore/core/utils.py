import uuid
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2025-09-10T12:33:06.123Z."""
    return utcnow().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_id() -> str:
    # 128-bit random identifier
    return uuid.uuid4().hex


def is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
