from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum
from typing import NamedTuple

from .errors import InvalidDatetimeError, InvalidPeriodError

SECONDS_PER_DAY = 86400

_EPOCH = datetime(1970, 1, 1)
_EPOCH_UTC = _EPOCH.replace(tzinfo=timezone.utc)
_ONE_SECOND = timedelta(seconds=1)


class Mode(Enum):
    """
    How a point in time is interpreted when looking up a period.
    """

    UTC = "utc"
    WALL = "wall"


class Weekday(IntEnum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class Unbounded(Enum):
    MIN = "min"
    MAX = "max"


def datetime_to_seconds(dt: datetime) -> int:
    """
    Whole seconds since the Unix epoch, flooring any microseconds.
    Naive datetimes are measured field by field, aware ones as instants.
    """
    if dt.tzinfo is None:
        return (dt - _EPOCH) // _ONE_SECOND
    return (dt - _EPOCH_UTC) // _ONE_SECOND


def seconds_to_datetime(seconds: int) -> datetime:
    """Naive datetime for `seconds` since the epoch; raises OverflowError."""
    return _EPOCH + timedelta(seconds=seconds)


def point_to_seconds(point: "int | datetime", mode: Mode) -> int:
    if isinstance(point, bool):
        raise InvalidDatetimeError(f"Not a point in time: {point!r}")
    if isinstance(point, int):
        return point
    if not isinstance(point, datetime):
        raise InvalidDatetimeError(f"Not a point in time: {point!r}")
    if point.tzinfo is not None and mode is Mode.WALL:
        raise InvalidDatetimeError(
            f"Wall-clock lookups take naive civil fields, got {point!r}"
        )
    return datetime_to_seconds(point)


class Bound(NamedTuple):
    """
    One end of a period: the transition instant as a naive datetime in UTC,
    not in the zone's local time, and the UTC weekday of that instant.
    """

    weekday: Weekday
    at: datetime

    @classmethod
    def from_seconds(
        cls, seconds: int | None, unbounded: Unbounded
    ) -> "Bound | Unbounded":
        if seconds is None:
            return unbounded
        try:
            at = seconds_to_datetime(seconds)
        except OverflowError:
            # Far past/future transitions (e.g. the -2**59 "big bang") fall
            # outside what datetime can represent.
            return unbounded
        return cls(Weekday(at.weekday()), at)


@dataclass(frozen=True)
class TimeTypeInfo:
    """
    Represents a ttinfo structure in a TZif file.
    """

    utc_offset_secs: int
    is_dst: bool
    abbrev_index: int


@dataclass(frozen=True)
class PeriodRecord:
    """
    A raw period as stored by a zone database. Bounds are UTC seconds since
    the epoch, None when unbounded.
    """

    utc_offset_seconds: int
    std_offset_seconds: int
    abbreviation: str
    valid_from: int | None = None
    valid_until: int | None = None

    @property
    def total_offset_seconds(self) -> int:
        return self.utc_offset_seconds + self.std_offset_seconds

    @property
    def wall_from(self) -> int | None:
        if self.valid_from is None:
            return None
        return self.valid_from + self.total_offset_seconds

    @property
    def wall_until(self) -> int | None:
        if self.valid_until is None:
            return None
        return self.valid_until + self.total_offset_seconds

    def contains(self, seconds: int, mode: Mode) -> bool:
        if mode is Mode.UTC:
            start, end = self.valid_from, self.valid_until
        else:
            start, end = self.wall_from, self.wall_until
        return (start is None or start <= seconds) and (end is None or seconds < end)


@dataclass(frozen=True)
class Period:
    """
    A maximal span during which a zone's UTC and DST offsets are constant.

    `offset_utc` is the standard offset from UTC and `offset_std` the extra
    DST offset applied on top of it (0 outside DST), both in seconds.
    `valid_from`/`valid_until` are transition bounds in UTC or the
    `Unbounded` sentinels.
    """

    full_name: str
    abbreviation: str
    offset_utc: int = 0
    offset_std: int = 0
    valid_from: Bound | Unbounded = Unbounded.MIN
    valid_until: Bound | Unbounded = Unbounded.MAX

    def __post_init__(self) -> None:
        for field_name in ("offset_utc", "offset_std"):
            value = getattr(self, field_name)
            if not -SECONDS_PER_DAY < value < SECONDS_PER_DAY:
                raise InvalidPeriodError(
                    f"{field_name} must be within (-86400, 86400) seconds: {value}"
                )
        if self.valid_from is Unbounded.MAX:
            raise InvalidPeriodError("A period cannot start at Unbounded.MAX")
        if self.valid_until is Unbounded.MIN:
            raise InvalidPeriodError("A period cannot end at Unbounded.MIN")

    @property
    def total_offset(self) -> int:
        return self.offset_utc + self.offset_std

    @property
    def is_dst(self) -> bool:
        return self.offset_std != 0

    def utcoffset(self) -> timedelta:
        return timedelta(seconds=self.total_offset)

    def dst(self) -> timedelta:
        return timedelta(seconds=self.offset_std)

    @classmethod
    def from_record(cls, full_name: str, record: PeriodRecord) -> "Period":
        return cls(
            full_name,
            record.abbreviation,
            record.utc_offset_seconds,
            record.std_offset_seconds,
            Bound.from_seconds(record.valid_from, Unbounded.MIN),
            Bound.from_seconds(record.valid_until, Unbounded.MAX),
        )


@dataclass(frozen=True)
class Gap:
    """
    A wall-clock reading that never happened because clocks jumped over it.
    `before`/`after` are the periods on either side of the jump, when known.
    """

    before: Period | None = None
    after: Period | None = None


@dataclass(frozen=True)
class Fold:
    """
    A wall-clock reading that happened twice. `before` is the period in force
    up to the transition, `after` the one in force from it.
    """

    before: Period
    after: Period

    def __post_init__(self) -> None:
        if self.before.total_offset == self.after.total_offset:
            raise InvalidPeriodError(
                "Periods of a fold must differ in total offset: "
                f"{self.before!r}, {self.after!r}"
            )
