from datetime import datetime, timezone


def get_current_utc_time() -> datetime:
    """Current UTC time as a naive datetime at BSON (millisecond) precision"""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000, tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an incoming datetime so it compares against stored values"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
