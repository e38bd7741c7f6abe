from datetime import date, datetime
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "America/Bogota"


def today_in(timezone: str = DEFAULT_TIMEZONE) -> date:
    """Current calendar date in ``timezone`` (an IANA zone name)."""
    return datetime.now(ZoneInfo(timezone)).date()


def date_prefix(value: str) -> str:
    """The ``YYYY-MM-DD`` part of an ISO date or datetime string."""
    return value[:10]
