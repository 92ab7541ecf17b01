import pytz
from datetime import datetime


def universal_now() -> datetime:
    return datetime.now().astimezone(pytz.utc)


def elapsed_s(start: datetime, end: datetime) -> float:
    """
    Returns the number of seconds between `start` and `end`, clamped at 0.
    """
    return max((end - start).total_seconds(), 0.0)
