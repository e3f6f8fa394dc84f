"""Civil day/month calendar at a fixed UTC offset.

All reporting windows are computed here. An instant is shifted by the offset,
truncated on the shifted calendar, and shifted back, so a window start is the
UTC instant of local midnight. Month arithmetic happens on the shifted
(year, month) pair, never by adding a number of seconds.

Windows are half-open ``[start, end)``; an instant belongs to exactly one
day and one month.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

_MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_YMD_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")
_QUARTER_KEY_RE = re.compile(r"^(\d{4})-Q([1-4])$")


def as_utc(instant: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


@dataclass(frozen=True)
class Window:
    """Half-open interval of instants ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Window end {self.end} precedes start {self.start}")

    def __contains__(self, instant: object) -> bool:
        if not isinstance(instant, datetime):
            return False
        t = as_utc(instant)
        return self.start <= t < self.end


@dataclass(frozen=True)
class CivilCalendar:
    """Calendar of a business whose clock sits at a fixed offset from UTC."""

    offset: timedelta
    name: str = "UTC"

    @classmethod
    def from_offset_minutes(cls, minutes: int, name: str | None = None) -> "CivilCalendar":
        return cls(offset=timedelta(minutes=minutes), name=name or f"UTC{minutes / 60:+g}")

    # ------------------------------------------------------------------
    # Shifting
    # ------------------------------------------------------------------

    def to_civil(self, instant: datetime) -> datetime:
        """Shifted datetime whose fields read as the local wall clock."""
        return as_utc(instant) + self.offset

    def _from_civil_fields(self, year: int, month: int, day: int = 1) -> datetime:
        return datetime(year, month, day, tzinfo=UTC) - self.offset

    # ------------------------------------------------------------------
    # Window starts
    # ------------------------------------------------------------------

    def start_of_day(self, instant: datetime) -> datetime:
        local = self.to_civil(instant)
        return self._from_civil_fields(local.year, local.month, local.day)

    def add_days(self, day_start: datetime, days: int) -> datetime:
        local = self.to_civil(day_start)
        shifted = datetime(local.year, local.month, local.day, tzinfo=UTC) + timedelta(days=days)
        return shifted - self.offset

    def start_of_week(self, instant: datetime) -> datetime:
        """Local midnight of the Sunday on or before ``instant``."""
        day_start = self.start_of_day(instant)
        # isoweekday: Monday=1 .. Sunday=7
        back = self.to_civil(day_start).isoweekday() % 7
        return self.add_days(day_start, -back)

    def start_of_month(self, instant: datetime) -> datetime:
        local = self.to_civil(instant)
        return self._from_civil_fields(local.year, local.month)

    def add_months(self, instant: datetime, months: int) -> datetime:
        """Start of the month ``months`` away from the month containing ``instant``."""
        local = self.to_civil(instant)
        year, month_index = divmod(local.year * 12 + (local.month - 1) + months, 12)
        return self._from_civil_fields(year, month_index + 1)

    def start_of_quarter(self, instant: datetime) -> datetime:
        local = self.to_civil(instant)
        first_month = (local.month - 1) // 3 * 3 + 1
        return self._from_civil_fields(local.year, first_month)

    def start_of_year(self, instant: datetime) -> datetime:
        return self._from_civil_fields(self.to_civil(instant).year, 1)

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def day_window(self, instant: datetime) -> Window:
        start = self.start_of_day(instant)
        return Window(start, self.add_days(start, 1))

    def week_window(self, instant: datetime) -> Window:
        start = self.start_of_week(instant)
        return Window(start, self.add_days(start, 7))

    def month_window(self, instant: datetime) -> Window:
        start = self.start_of_month(instant)
        return Window(start, self.add_months(start, 1))

    def trailing_months_window(self, now: datetime, months: int) -> Window:
        """The current month plus the ``months - 1`` before it."""
        if months < 1:
            raise ValueError("months must be >= 1")
        current = self.start_of_month(now)
        return Window(self.add_months(current, -(months - 1)), self.add_months(current, 1))

    def iter_day_starts(self, window: Window) -> Iterator[datetime]:
        day = self.start_of_day(window.start)
        while day < window.end:
            yield day
            day = self.add_days(day, 1)

    def iter_month_starts(self, window: Window) -> Iterator[datetime]:
        month = self.start_of_month(window.start)
        while month < window.end:
            yield month
            month = self.add_months(month, 1)

    # ------------------------------------------------------------------
    # Keys and labels
    # ------------------------------------------------------------------

    def day_key(self, instant: datetime) -> str:
        return self.to_civil(instant).strftime("%Y-%m-%d")

    def month_key(self, instant: datetime) -> str:
        return self.to_civil(instant).strftime("%Y-%m")

    def quarter_key(self, instant: datetime) -> str:
        local = self.to_civil(instant)
        return f"{local.year}-Q{(local.month - 1) // 3 + 1}"

    def year_key(self, instant: datetime) -> str:
        return f"{self.to_civil(instant).year}"

    def month_label(self, instant: datetime) -> str:
        local = self.to_civil(instant)
        return f"{_MONTH_NAMES[local.month - 1]} {local.year}"

    def day_label(self, instant: datetime) -> str:
        local = self.to_civil(instant)
        return f"{_MONTH_NAMES[local.month - 1][:3]} {local.day}, {local.year}"

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def day_start_from_key(self, key: str) -> datetime | None:
        """UTC instant of local midnight for "YYYY-MM-DD"; None if malformed."""
        match = _YMD_RE.match(key.strip())
        if not match:
            return None
        year, month, day = (int(part) for part in match.groups())
        try:
            start = self._from_civil_fields(year, month, day)
        except (ValueError, OverflowError):
            return None
        return self._representable(start)

    def month_start_from_key(self, key: str) -> datetime | None:
        match = _MONTH_KEY_RE.match(key.strip())
        if not match:
            return None
        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12:
            return None
        return self._month_start(year, month)

    def quarter_start_from_key(self, key: str) -> datetime | None:
        match = _QUARTER_KEY_RE.match(key.strip())
        if not match:
            return None
        year, quarter = int(match.group(1)), int(match.group(2))
        return self._month_start(year, (quarter - 1) * 3 + 1)

    def _month_start(self, year: int, month: int) -> datetime | None:
        try:
            start = self._from_civil_fields(year, month)
        except (ValueError, OverflowError):
            return None
        return self._representable(start)

    def _representable(self, start: datetime) -> datetime | None:
        # series may roll up to the whole civil year, so that window must fit as well
        try:
            self.add_months(self.start_of_year(start), 12)
        except (ValueError, OverflowError):
            return None
        return start


PHOENIX = CivilCalendar(offset=timedelta(hours=-7), name="America/Phoenix")
