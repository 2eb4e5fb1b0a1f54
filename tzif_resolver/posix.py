import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import IO

from .errors import InvalidOffsetError, InvalidTimezoneError
from .models import (
    SECONDS_PER_DAY,
    Mode,
    Period,
    datetime_to_seconds,
    seconds_to_datetime,
)

# Transition time used when a rule omits "/time"
DEFAULT_TRANSITION_TIME = timedelta(hours=2)


def _is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


@dataclass(frozen=True)
class JulianLeap:
    """`n`: zero-based day of the year, Feb 29 counted in leap years."""

    day: int  # 0..365
    time: timedelta = DEFAULT_TRANSITION_TIME

    def evaluate(self, year: int) -> datetime:
        return datetime(year, 1, 1) + timedelta(days=self.day) + self.time


@dataclass(frozen=True)
class Julian:
    """`Jn`: one-based day of a 365-day year, Feb 29 never counted."""

    day: int  # 1..365
    time: timedelta = DEFAULT_TRANSITION_TIME

    def evaluate(self, year: int) -> datetime:
        # On leap years, days >= 60 (Mar 1 onwards) skip over Feb 29.
        day_index = self.day - 1
        if _is_leap_year(year) and self.day >= 60:
            day_index += 1
        return datetime(year, 1, 1) + timedelta(days=day_index) + self.time


@dataclass(frozen=True)
class MonthWeekDay:
    """`Mm.w.d`: the w-th weekday d of month m, w=5 meaning the last one."""

    month: int  # 1..12
    week: int  # 1..5
    weekday: int  # POSIX: Sunday=0 ... Saturday=6
    time: timedelta = DEFAULT_TRANSITION_TIME

    def evaluate(self, year: int) -> datetime:
        first_of_month = datetime(year, self.month, 1)
        # Python counts Monday=0..Sunday=6, POSIX Sunday=0..Saturday=6
        first_weekday = (first_of_month.weekday() + 1) % 7
        target = first_of_month + timedelta(days=(self.weekday - first_weekday) % 7)

        if self.week > 1:
            shifted = target + timedelta(days=7 * (self.week - 1))
            if shifted.month != self.month:
                # Past the end of the month: the last occurrence is a week earlier
                shifted -= timedelta(days=7)
            target = shifted

        return target + self.time


PosixRule = JulianLeap | Julian | MonthWeekDay


_POSIX_TZ = re.compile(
    r"""
    (?P<std>[A-Za-z]{3,}|<[A-Za-z0-9+-]{3,}>)
    (?P<stdoff>[+-]?\d{1,3}(?::\d{2}(?::\d{2})?)?)
    (?:
        (?P<dst>[A-Za-z]{3,}|<[A-Za-z0-9+-]{3,}>)
        (?P<dstoff>[+-]?\d{1,3}(?::\d{2}(?::\d{2})?)?)?
        (?:,(?P<start>[^,]+),(?P<end>[^,]+))?
    )?
    """,
    re.ASCII | re.VERBOSE,
)

_HMS = re.compile(
    r"(?P<sign>[+-])?(?P<h>\d{1,3})(:(?P<m>\d{2})(:(?P<s>\d{2}))?)?",
    re.ASCII,
)


@dataclass(frozen=True)
class PosixTimezone:
    """
    A POSIX TZ rule such as ``CST6CDT,M3.2.0,M11.1.0``.

    Offsets are stored east-positive, i.e. the seconds added to UTC to get
    local time, the opposite of the POSIX spelling. `dst_start` is expressed
    in standard wall time and `dst_end` in daylight wall time.
    """

    name: str
    std_abbr: str
    std_offset: int
    dst_abbr: str | None = None
    dst_offset: int | None = None
    dst_start: PosixRule | None = None
    dst_end: PosixRule | None = None

    def __post_init__(self) -> None:
        if (self.dst_start is None) != (self.dst_end is None):
            raise InvalidTimezoneError(
                f"{self.name!r}: DST start and end rules must be given together"
            )

    @property
    def has_dst_rules(self) -> bool:
        return self.dst_start is not None and self.dst_abbr is not None

    @property
    def dst_difference(self) -> int:
        if self.dst_offset is None:
            return 0
        return self.dst_offset - self.std_offset

    def dst_start_for(self, year: int) -> datetime | None:
        if self.dst_start is None:
            return None
        return self.dst_start.evaluate(year)

    def dst_end_for(self, year: int) -> datetime | None:
        if self.dst_end is None:
            return None
        return self.dst_end.evaluate(year)

    def is_dst(self, civil: datetime) -> bool:
        """
        Whether naive `civil` falls in DST for its year: start inclusive,
        end exclusive. Rules whose start follows their end (southern
        hemisphere) wrap over the new year.
        """
        if not self.has_dst_rules:
            return False
        start = self.dst_start_for(civil.year)
        end = self.dst_end_for(civil.year)
        if start <= end:
            return start <= civil < end
        return civil >= start or civil < end

    def is_dst_at_utc(self, seconds: int) -> bool:
        """Whether the absolute instant `seconds` falls in DST."""
        if not self.has_dst_rules:
            return False
        year = seconds_to_datetime(seconds + self.std_offset).year
        (first, first_is_dst), (second, _) = self.transitions(year)
        if first_is_dst:
            return first <= seconds < second
        return seconds < first or seconds >= second

    def transitions(self, year: int) -> list[tuple[int, bool]]:
        """
        The UTC instants (seconds) at which DST starts and ends in `year`,
        in chronological order, each paired with whether DST begins there.
        """
        if not self.has_dst_rules:
            return []
        start = datetime_to_seconds(self.dst_start.evaluate(year)) - self.std_offset
        end = datetime_to_seconds(self.dst_end.evaluate(year)) - self.dst_offset
        return sorted([(start, True), (end, False)])

    def to_period(self, civil: datetime) -> Period:
        return self._period(self.is_dst(civil))

    def period_at(self, seconds: int, mode: Mode) -> Period:
        if mode is Mode.UTC:
            return self._period(self.is_dst_at_utc(seconds))
        return self.to_period(seconds_to_datetime(seconds))

    def _period(self, in_dst: bool) -> Period:
        if in_dst:
            return Period(self.name, self.dst_abbr, self.std_offset, self.dst_difference)
        return Period(self.name, self.std_abbr, self.std_offset, 0)

    @classmethod
    def parse(cls, posix_string: str) -> "PosixTimezone":
        # Adapted from zoneinfo._zoneinfo._parse_tz_str
        match = _POSIX_TZ.fullmatch(posix_string)
        if match is None:
            raise InvalidTimezoneError(f"{posix_string!r} is not a valid TZ string")

        std_abbr = match.group("std").strip("<>")
        std_offset = cls._read_offset(match.group("stdoff"))

        dst_abbr = match.group("dst")
        dst_offset = None
        if dst_abbr:
            dst_abbr = dst_abbr.strip("<>")
            if match.group("dstoff"):
                dst_offset = cls._read_offset(match.group("dstoff"))
            else:
                # Daylight time defaults to one hour ahead of standard time
                dst_offset = std_offset + 3600
                if dst_offset >= SECONDS_PER_DAY:
                    raise InvalidOffsetError(
                        f"{posix_string!r}: implied DST offset is out of range"
                    )

        dst_start = dst_end = None
        if match.group("start") is not None:
            dst_start = cls._read_dst_transition_rule(match.group("start"))
            dst_end = cls._read_dst_transition_rule(match.group("end"))

        return cls(
            posix_string,
            std_abbr,
            std_offset,
            dst_abbr,
            dst_offset,
            dst_start,
            dst_end,
        )

    @classmethod
    def read(cls, file: IO[bytes]) -> "PosixTimezone | None":
        """Read the footer that follows the version 2+ data block."""
        _ = file.readline()
        posix_line = file.readline()
        if posix_line == b"":
            return None

        posix_string = posix_line.rstrip(b"\n\x00").decode("ascii")
        if not posix_string:
            return None
        return cls.parse(posix_string)

    @classmethod
    def _read_offset(cls, posix_offset: str) -> int:
        # Adapted from zoneinfo._zoneinfo._parse_tz_delta
        offset_match = _HMS.fullmatch(posix_offset)
        if offset_match is None:
            raise InvalidOffsetError(f"{posix_offset} is not a valid offset")

        h, m, s = (int(v or 0) for v in offset_match.group("h", "m", "s"))

        if not (0 <= m < 60 and 0 <= s < 60):
            raise InvalidOffsetError(
                f"Offset minutes/seconds must be in [0, 59]: {posix_offset}"
            )
        total = h * 3600 + m * 60 + s
        if total >= SECONDS_PER_DAY:
            raise InvalidOffsetError(f"Offset must be under 24 hours: {posix_offset}")

        # POSIX sign convention: positive means WEST of UTC => negative seconds
        if offset_match.group("sign") != "-":
            total = -total

        return total

    @classmethod
    def _read_dst_transition_rule(cls, posix_datetime: str) -> PosixRule:
        date, *time = posix_datetime.split("/", 1)
        trans_time = (
            cls._read_dst_transition_time(time[0]) if time else DEFAULT_TRANSITION_TIME
        )

        if date.startswith("M"):
            m = re.fullmatch(r"M(\d{1,2})\.(\d)\.(\d)", date)
            if m is None:
                raise InvalidTimezoneError(f"Invalid dst start/end date: {posix_datetime}")
            month, week, weekday = (int(x) for x in m.groups())
            if not (1 <= month <= 12 and 1 <= week <= 5 and 0 <= weekday <= 6):
                raise InvalidTimezoneError(f"Invalid M<m>.<w>.<d>: {posix_datetime}")
            return MonthWeekDay(month, week, weekday, trans_time)

        if date.startswith("J"):
            if not date[1:].isdigit():
                raise InvalidTimezoneError(f"Invalid J<n>: {posix_datetime}")
            n = int(date[1:])
            if not (1 <= n <= 365):
                raise InvalidTimezoneError(f"J<n> must be 1..365: {posix_datetime}")
            return Julian(n, trans_time)

        # Plain numeric day-of-year (0..365), includes Feb 29
        if date.isdigit():
            n = int(date)
            if not (0 <= n <= 365):
                raise InvalidTimezoneError(f"<n> must be 0..365: {posix_datetime}")
            return JulianLeap(n, trans_time)

        raise InvalidTimezoneError(f"Invalid dst start/end date: {posix_datetime}")

    @classmethod
    def _read_dst_transition_time(cls, time_str: str) -> timedelta:
        # Adapted from zoneinfo._zoneinfo._parse_transition_time
        match = _HMS.fullmatch(time_str)
        if match is None:
            raise InvalidTimezoneError(f"Invalid time: {time_str}")

        h, m, s = (int(v or 0) for v in match.group("h", "m", "s"))

        # bounds: hours 0..167 (RFC 8536 extension), minutes/seconds 0..59
        if h > 167:
            raise InvalidTimezoneError(f"Hour must be in [0, 167]: {time_str}")
        if not (0 <= m < 60 and 0 <= s < 60):
            raise InvalidTimezoneError(f"Minutes/seconds must be in [0, 59]: {time_str}")

        seconds = h * 3600 + m * 60 + s
        if match.group("sign") == "-":
            seconds = -seconds

        return timedelta(seconds=seconds)
