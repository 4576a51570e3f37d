import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings

MONTH_KEY_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

MONTH_NAMES = {
    "sv": (
        "januari", "februari", "mars", "april", "maj", "juni",
        "juli", "augusti", "september", "oktober", "november", "december",
    ),
    "en": (
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ),
}

SHORT_MONTH_NAMES = {
    "sv": (
        "jan", "feb", "mar", "apr", "maj", "jun",
        "jul", "aug", "sep", "okt", "nov", "dec",
    ),
    "en": (
        "Jan", "Feb", "Mar", "Apr", "May", "Jun",
        "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
    ),
}


class InvalidMonthKey(ValueError):
    pass


class InvalidPayday(ValueError):
    pass


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def parse_month_key(month_key: str) -> tuple[int, int]:
    match = MONTH_KEY_RE.match(month_key) if isinstance(month_key, str) else None
    if not match:
        raise InvalidMonthKey(f"Invalid month key: {month_key!r} (expected YYYY-MM)")
    return int(match.group(1)), int(match.group(2))


def format_month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def validate_payday(payday: int) -> int:
    if isinstance(payday, bool) or not isinstance(payday, int) or not 1 <= payday <= 31:
        raise InvalidPayday(f"Payday must be between 1 and 31, got {payday!r}")
    return payday


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def month_index(month_key: str) -> int:
    year, month = parse_month_key(month_key)
    return year * 12 + (month - 1)


def shift_month(month_key: str, months: int) -> str:
    total = month_index(month_key) + months
    return format_month_key(total // 12, total % 12 + 1)


def next_month_key(month_key: str) -> str:
    return shift_month(month_key, 1)


def previous_month_key(month_key: str) -> str:
    return shift_month(month_key, -1)


def _payday_in(year: int, month: int, payday: int) -> date:
    # Short months clamp to their last day.
    return date(year, month, min(payday, days_in_month(year, month)))


@dataclass(frozen=True)
class BudgetInterval:
    month_key: str
    start: date
    end: date
    locale: str = "sv"

    @property
    def start_str(self) -> str:
        return self.start.isoformat()

    @property
    def end_str(self) -> str:
        return self.end.isoformat()

    @property
    def month_label(self) -> str:
        year, month = parse_month_key(self.month_key)
        names = MONTH_NAMES.get(self.locale, MONTH_NAMES["en"])
        return f"{names[month - 1]} {year}"

    @property
    def interval_label(self) -> str:
        short = SHORT_MONTH_NAMES.get(self.locale, SHORT_MONTH_NAMES["en"])
        return (
            f"{self.start.day} {short[self.start.month - 1]} - "
            f"{self.end.day} {short[self.end.month - 1]} {self.end.year}"
        )

    def days(self) -> list[date]:
        span = (self.end - self.start).days + 1
        return [self.start + timedelta(days=offset) for offset in range(span)]


def resolve_interval(
    month_key: str, payday: int, *, locale: Optional[str] = None
) -> BudgetInterval:
    """Pay period for ``month_key``.

    Starts on the payday of the preceding calendar month and ends the day
    before the payday of ``month_key``'s own calendar month, so consecutive
    months tile the calendar without gaps or overlaps. Payday 25 makes
    ``2024-01`` run 2023-12-25 through 2024-01-24.
    """
    year, month = parse_month_key(month_key)
    validate_payday(payday)
    prev_year, prev_month = parse_month_key(previous_month_key(month_key))
    start = _payday_in(prev_year, prev_month, payday)
    end = _payday_in(year, month, payday) - timedelta(days=1)
    return BudgetInterval(
        month_key=month_key,
        start=start,
        end=end,
        locale=locale or get_settings().locale,
    )
